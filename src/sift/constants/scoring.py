"""Relevance scoring configuration.

Candidates are scored 0-10 by an LLM in small batches. Batching bounds
prompt size and cost; sequential batches bound concurrent LLM calls.
"""

# =============================================================================
# Batching
# =============================================================================

SCORING_BATCH_SIZE = 5
SCORING_MAX_CONCURRENCY = 1

# =============================================================================
# Score Range
# =============================================================================

MIN_RELEVANCE_SCORE = 0
MAX_RELEVANCE_SCORE = 10

# =============================================================================
# Retry
# =============================================================================
# A batch whose response cannot be parsed into exactly one score per candidate
# is retried with exponential backoff plus random jitter. Delays are seconds.

SCORING_MAX_ATTEMPTS = 3
SCORING_INITIAL_DELAY = 1.0
SCORING_BACKOFF_MULTIPLIER = 2.0
SCORING_JITTER = 0.2

# =============================================================================
# LLM Parameters
# =============================================================================
# The response is a short list of integers, so a low temperature and a small
# token cap are enough.

SCORING_TEMPERATURE = 0.1
SCORING_MAX_TOKENS = 50
