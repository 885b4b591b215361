# ABOUTME: Exposes the document store abstraction used for raw records and generated content.
# ABOUTME: Record normalization lives in .records.

from .document_store import DocumentStore, InMemoryDocumentStore, JsonDirectoryStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonDirectoryStore",
]
