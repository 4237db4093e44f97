"""Remote document service port.

The remote side is a hierarchical document database: documents live at
slash-separated paths ("users/{uid}/tags/{id}") inside collections
("users/{uid}/tags"). Adapters implement DocumentService; engines only talk to
this interface so the backend can be swapped (REST, in-process, ...).
"""

from __future__ import annotations

import secrets
import string
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, NamedTuple

from pydantic import BaseModel, Field

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 20


class _ServerTimestamp:
    """Sentinel replaced by the service with its own clock at write time."""

    _instance: _ServerTimestamp | None = None

    def __new__(cls) -> _ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def generate_document_id() -> str:
    """Generate a random 20-character document id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    collection, _, doc_id = path.strip("/").rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"Not a document path: {path!r}")
    return collection, doc_id


class Document(BaseModel):
    """A document as returned by the service."""

    id: str
    path: str
    data: dict[str, Any] = Field(default_factory=dict)


class BatchOperation(NamedTuple):
    """One staged write: kind is "set", "update" or "delete"."""

    kind: str
    path: str
    data: dict[str, Any] | None = None


class WriteBatch:
    """Stages writes and commits them all-or-nothing.

    The owning service supplies the commit callable; nothing reaches the
    remote side before commit().
    """

    def __init__(self, commit: Callable[[list[BatchOperation]], Awaitable[None]]):
        self._commit = commit
        self.operations: list[BatchOperation] = []
        self._committed = False

    def set(self, path: str, data: dict[str, Any]) -> WriteBatch:
        self.operations.append(BatchOperation("set", path, dict(data)))
        return self

    def update(self, path: str, data: dict[str, Any]) -> WriteBatch:
        self.operations.append(BatchOperation("update", path, dict(data)))
        return self

    def delete(self, path: str) -> WriteBatch:
        self.operations.append(BatchOperation("delete", path))
        return self

    async def commit(self) -> None:
        """Apply every staged operation atomically.

        Raises:
            RuntimeError: If the batch was already committed
            DocumentServiceError: If the service rejected the batch
        """
        if self._committed:
            raise RuntimeError("WriteBatch already committed")
        self._committed = True
        await self._commit(list(self.operations))


class DocumentService(ABC):
    """Abstract remote document database.

    Every method raises DocumentServiceError (or a subclass) when the remote
    call fails.
    """

    @abstractmethod
    async def get(self, path: str) -> Document | None:
        """Fetch one document, or None when it does not exist."""
        raise NotImplementedError("DocumentService.get() must be implemented by adapter")

    @abstractmethod
    async def list(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        """List the documents of a collection.

        Args:
            collection: Collection path
            filters: Field equality filters, all of which must match
            limit: Optional maximum number of documents
        """
        raise NotImplementedError("DocumentService.list() must be implemented by adapter")

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any]) -> None:
        """Create or overwrite a document."""
        raise NotImplementedError("DocumentService.set() must be implemented by adapter")

    @abstractmethod
    async def update(self, path: str, data: dict[str, Any]) -> None:
        """Merge fields into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        raise NotImplementedError("DocumentService.update() must be implemented by adapter")

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        raise NotImplementedError("DocumentService.add() must be implemented by adapter")

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a document; deleting a missing document is not an error."""
        raise NotImplementedError("DocumentService.delete() must be implemented by adapter")

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        raise NotImplementedError("DocumentService.batch() must be implemented by adapter")

    def new_id(self) -> str:
        """Allocate a document id without writing anything."""
        return generate_document_id()

    async def close(self) -> None:
        """Release any resources held by the adapter."""
