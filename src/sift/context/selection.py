"""Final context selection from scored candidates."""

import math

from sift.constants.selection import KEEP_PERCENTAGE, MAX_RESULTS, MIN_RESULTS, MIN_SCORE
from sift.context.schemas import ContextCandidate, RelevanceScore, RelevantContext


def keep_count(
    total: int,
    min_results: int = MIN_RESULTS,
    keep_percentage: float = KEEP_PERCENTAGE,
) -> int:
    """Number of top-scored candidates considered before the relevance floor."""
    return max(min_results, math.ceil(total * keep_percentage))


def select_context(
    candidates: list[ContextCandidate],
    scores: list[RelevanceScore],
    min_results: int = MIN_RESULTS,
    keep_percentage: float = KEEP_PERCENTAGE,
    min_score: int = MIN_SCORE,
    max_results: int = MAX_RESULTS,
) -> list[RelevantContext]:
    """Choose the contexts handed to the answer generator.

    Each score is matched to the candidate at its own ``index``. Pairs are
    ranked by score (ties keep retrieval order), the top ``keep_count`` are
    kept, anything under ``min_score`` is dropped and the rest is capped at
    ``max_results``.

    Args:
        candidates: Retrieved candidates, in retrieval order.
        scores: Relevance scores referencing candidates by index.
        min_results: Minimum keep size.
        keep_percentage: Share of scored candidates to keep.
        min_score: Relevance floor; lower-scored candidates are discarded.
        max_results: Maximum number of contexts returned.

    Returns:
        Selected contexts ordered by descending score.
    """
    pairs = [
        (candidates[s.index], s.score) for s in scores if 0 <= s.index < len(candidates)
    ]
    if not pairs:
        return []

    pairs.sort(key=lambda pair: pair[1], reverse=True)
    kept = pairs[: keep_count(len(pairs), min_results, keep_percentage)]
    kept = [pair for pair in kept if pair[1] >= min_score][:max_results]

    selected = [
        RelevantContext(
            content=candidate.content,
            name=candidate.name,
            location=candidate.location or "",
            type=candidate.type,
            score=score,
        )
        for candidate, score in kept
    ]
    selected.sort(key=lambda context: context.score, reverse=True)
    return selected
