"""Content indexing into the context store."""

from sift.indexing.service import ContextItem, IndexingService, split_paragraphs

__all__ = ["ContextItem", "IndexingService", "split_paragraphs"]
