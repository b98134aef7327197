"""Sift: context retrieval and relevance ranking for grounded answers."""

__version__ = "0.1.0"
