"""Vector store module for scoped semantic search."""

from sift.vectorstore.store import ContextRecord, ContextStore, StoreRow

__all__ = ["ContextRecord", "ContextStore", "StoreRow"]
