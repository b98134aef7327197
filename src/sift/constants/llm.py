"""LLM client configuration.

Default parameters for LLM API calls. These can be overridden per-call
but provide sensible defaults for most use cases.
"""

# =============================================================================
# Generation Defaults
# =============================================================================

MAX_TOKENS = 3000
DEFAULT_TEMPERATURE = 0.5

# =============================================================================
# Embeddings
# =============================================================================
# Embeddings are requested at a fixed dimension so every stored vector and
# every query vector live in the same space.

EMBEDDING_DIMENSIONS = 512
EMBEDDING_MAX_ATTEMPTS = 3
EMBEDDING_INITIAL_DELAY = 0.4
EMBEDDING_BACKOFF_MULTIPLIER = 2.0
EMBEDDING_JITTER = 0.2

# =============================================================================
# Pipeline
# =============================================================================

PIPELINE_TIMEOUT_SECONDS = 60.0
