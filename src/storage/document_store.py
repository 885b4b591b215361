# ABOUTME: Abstract document store holding raw sessions, submissions, and generated questions.
# ABOUTME: Provides an in-memory store for tests and a JSON-directory store with one file per collection.

from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from loguru import logger

from src.common.errors import DocumentNotFoundError

Document = Dict[str, Any]


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Document: ...

    def put(self, collection: str, doc_id: str, document: Document) -> None: ...

    def query(self, collection: str, **filters: Any) -> List[Tuple[str, Document]]: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


def _matches(document: Document, filters: Dict[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in filters.items())


class InMemoryDocumentStore:
    def __init__(self, data: Optional[Dict[str, Dict[str, Document]]] = None):
        self._collections: Dict[str, Dict[str, Document]] = copy.deepcopy(data) if data else {}

    def get(self, collection: str, doc_id: str) -> Document:
        try:
            return copy.deepcopy(self._collections[collection][doc_id])
        except KeyError:
            raise DocumentNotFoundError(collection, doc_id) from None

    def put(self, collection: str, doc_id: str, document: Document) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(document)

    def query(self, collection: str, **filters: Any) -> List[Tuple[str, Document]]:
        docs = self._collections.get(collection, {})
        return [(doc_id, copy.deepcopy(doc)) for doc_id, doc in sorted(docs.items()) if _matches(doc, filters)]

    def delete(self, collection: str, doc_id: str) -> None:
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        del docs[doc_id]

    def collections(self) -> List[str]:
        return sorted(self._collections)


class JsonDirectoryStore:
    """
    Each collection is a JSON object ``{doc_id: document}`` stored at
    ``<root>/<collection>.json``. Writes go through a temp file and an atomic
    rename so an interrupted write never leaves a truncated collection.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, collection: str) -> Path:
        if not collection or "/" in collection or "\\" in collection or collection.startswith("."):
            raise ValueError(f"Invalid collection name: {collection!r}")
        return self.root / f"{collection}.json"

    def _load(self, collection: str) -> Dict[str, Document]:
        path = self._path(collection)
        if not path.exists():
            return {}
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Collection file {path} must hold a JSON object")
        return data

    def _write(self, collection: str, docs: Dict[str, Document]) -> None:
        path = self._path(collection)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{collection}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(docs, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Wrote {} documents to {}", len(docs), path)

    def get(self, collection: str, doc_id: str) -> Document:
        docs = self._load(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        return docs[doc_id]

    def put(self, collection: str, doc_id: str, document: Document) -> None:
        docs = self._load(collection)
        docs[doc_id] = document
        self._write(collection, docs)

    def query(self, collection: str, **filters: Any) -> List[Tuple[str, Document]]:
        docs = self._load(collection)
        return [(doc_id, doc) for doc_id, doc in sorted(docs.items()) if _matches(doc, filters)]

    def delete(self, collection: str, doc_id: str) -> None:
        docs = self._load(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        del docs[doc_id]
        self._write(collection, docs)
