"""Candidate retrieval configuration.

These settings control how candidate passages are pulled from the vector
store before relevance scoring. Distances are cosine distances where
0.0 = identical direction and larger values = less related.
"""

# =============================================================================
# Admission
# =============================================================================
# General-mode queries only admit rows whose raw distance is below
# DISTANCE_THRESHOLD. Both modes return at most RESULT_LIMIT candidates.

DISTANCE_THRESHOLD = 0.8
RESULT_LIMIT = 15

# =============================================================================
# Lexical Boost
# =============================================================================
# When the literal question text appears in a candidate, its distance is
# multiplied by a discount. A match in the content is a stronger signal than a
# match in the name, so it gets the bigger discount. Factors are <= 1.0 so a
# boost can only move a candidate closer.

CONTENT_MATCH_BOOST = 0.7
NAME_MATCH_BOOST = 0.8

# =============================================================================
# Agent Mode
# =============================================================================
# The structural agent filter (id prefix, related addresses) cannot be fully
# expressed as a vector store metadata filter, so agent queries fetch
# RESULT_LIMIT * AGENT_OVERFETCH_FACTOR neighbours and filter them afterwards.

AGENT_OVERFETCH_FACTOR = 4

# =============================================================================
# Content Types
# =============================================================================

AGENT_SCOPED_TYPES = ("component", "abi")
