"""Context selection configuration.

After scoring, the top share of candidates is kept, then a hard relevance
floor removes anything the scorer judged off-topic. The keep size is a
ceiling: fewer (even zero) contexts are returned when few clear the floor.
"""

MIN_RESULTS = 6
KEEP_PERCENTAGE = 0.35
MIN_SCORE = 4
MAX_RESULTS = 10
