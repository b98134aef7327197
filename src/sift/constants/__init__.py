"""Pipeline constants.

Re-exports all constants for convenient importing:
    from sift.constants import DISTANCE_THRESHOLD, SCORING_BATCH_SIZE
"""

from sift.constants.retrieval import *  # noqa: F403
from sift.constants.scoring import *  # noqa: F403
from sift.constants.selection import *  # noqa: F403
from sift.constants.cache import *  # noqa: F403
from sift.constants.llm import *  # noqa: F403
