"""Errors raised by the context retrieval pipeline."""


class ContextPipelineError(Exception):
    """Base class for failures that abort a context lookup."""

    pass


class EmbeddingFailure(ContextPipelineError):
    """Raised when the question could not be embedded."""

    pass


class RetrievalQueryFailure(ContextPipelineError):
    """Raised when a vector store query fails."""

    pass


class ScoringBatchFailure(ContextPipelineError):
    """Raised when a scoring batch never produced one valid score per candidate."""

    def __init__(self, batch_index: int, attempts: int, reason: str) -> None:
        self.batch_index = batch_index
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Scoring batch {batch_index} failed after {attempts} attempt(s): {reason}"
        )


class CacheBackendFailure(ContextPipelineError):
    """Raised by cache backends on read or write errors.

    The retrieval cache always recovers from this locally.
    """

    pass


class PipelineTimeout(ContextPipelineError):
    """Raised when a context lookup exceeds its time budget."""

    pass
