"""Retrieval cache configuration."""

# =============================================================================
# Retrieval Cache
# =============================================================================
# Selected contexts are cached per request fingerprint. The "local"
# deployment scope never reads or writes the cache so development runs always
# see fresh retrieval.

RETRIEVAL_CACHE_TTL_SECONDS = 30 * 60
RETRIEVAL_CACHE_MAX_ENTRIES = 1024
LOCAL_DEPLOYMENT_SCOPE = "local"
CACHE_KEY_PREFIX = "context"

# =============================================================================
# Embedding Cache
# =============================================================================

EMBEDDING_CACHE_TTL_SECONDS = 60 * 60
EMBEDDING_CACHE_MAX_ENTRIES = 2048
