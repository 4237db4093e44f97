"""In-process DocumentService.

Keeps documents in a dict keyed by path. Used by the test-suite and for
offline experiments; setting ``offline`` makes every call fail the way an
unreachable remote would.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from plansync.exceptions import DocumentNotFoundError, DocumentServiceError
from plansync.repositories.documents import (
    SERVER_TIMESTAMP,
    BatchOperation,
    Document,
    DocumentService,
    WriteBatch,
    split_path,
)


def _resolve(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v, now) for v in value]
    return copy.deepcopy(value)


class InMemoryDocumentService(DocumentService):
    """Dict-backed document service with atomic batches."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.documents: dict[str, dict[str, Any]] = {}
        self.offline = False
        self._clock = clock or (lambda: datetime.now(UTC))

    def _check(self) -> None:
        if self.offline:
            raise DocumentServiceError("Remote document service unreachable")

    def _apply(self, documents: dict[str, dict[str, Any]], op: BatchOperation) -> None:
        split_path(op.path)
        now = self._clock()
        if op.kind == "set":
            documents[op.path] = _resolve(op.data or {}, now)
        elif op.kind == "update":
            if op.path not in documents:
                raise DocumentNotFoundError(f"No document at {op.path}")
            documents[op.path].update(_resolve(op.data or {}, now))
        elif op.kind == "delete":
            documents.pop(op.path, None)
        else:
            raise ValueError(f"Unknown batch operation: {op.kind}")

    async def _commit(self, operations: list[BatchOperation]) -> None:
        self._check()
        staged = copy.deepcopy(self.documents)
        for op in operations:
            self._apply(staged, op)
        self.documents = staged

    async def get(self, path: str) -> Document | None:
        self._check()
        data = self.documents.get(path)
        if data is None:
            return None
        _, doc_id = split_path(path)
        return Document(id=doc_id, path=path, data=copy.deepcopy(data))

    async def list(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        self._check()
        collection = collection.strip("/")
        results = []
        for path, data in self.documents.items():
            parent, doc_id = split_path(path)
            if parent != collection:
                continue
            if filters and any(data.get(k) != v for k, v in filters.items()):
                continue
            results.append(Document(id=doc_id, path=path, data=copy.deepcopy(data)))
            if limit is not None and len(results) >= limit:
                break
        return results

    async def set(self, path: str, data: dict[str, Any]) -> None:
        self._check()
        self._apply(self.documents, BatchOperation("set", path, data))

    async def update(self, path: str, data: dict[str, Any]) -> None:
        self._check()
        self._apply(self.documents, BatchOperation("update", path, data))

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        self._check()
        doc_id = self.new_id()
        self._apply(self.documents, BatchOperation("set", f"{collection.strip('/')}/{doc_id}", data))
        return doc_id

    async def delete(self, path: str) -> None:
        self._check()
        self._apply(self.documents, BatchOperation("delete", path))

    def batch(self) -> WriteBatch:
        return WriteBatch(self._commit)
