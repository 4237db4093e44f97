"""REST adapter for the remote document service.

Speaks a small JSON protocol over httpx:

* ``GET    /v1/documents/{path}``        one document (404 when missing)
* ``GET    /v1/documents/{collection}``  list, ``where`` and ``limit`` params
* ``PUT    /v1/documents/{path}``        set
* ``PATCH  /v1/documents/{path}``        update (404 when missing)
* ``POST   /v1/documents/{collection}``  add, returns ``{"id": ...}``
* ``DELETE /v1/documents/{path}``        delete
* ``POST   /v1/batch``                   atomic batch of operations

Timestamps travel as ``{"__type__": "timestamp", "value": iso}`` and the
server-timestamp sentinel as ``{"__type__": "serverTimestamp"}``.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any, Optional

import httpx

from plansync.exceptions import DocumentNotFoundError, DocumentServiceError
from plansync.models.documents import parse_timestamp
from plansync.repositories.documents import (
    SERVER_TIMESTAMP,
    BatchOperation,
    Document,
    DocumentService,
    WriteBatch,
    split_path,
)
from plansync.utils.logger import get_logger

logger = get_logger("remote")

_TYPE_KEY = "__type__"


def encode_value(value: Any) -> Any:
    """Encode a document value for the wire."""
    if value is SERVER_TIMESTAMP:
        return {_TYPE_KEY: "serverTimestamp"}
    if isinstance(value, datetime):
        return {_TYPE_KEY: "timestamp", "value": value.isoformat()}
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Decode a wire value back into Python types."""
    if isinstance(value, dict):
        if value.get(_TYPE_KEY) == "timestamp":
            return parse_timestamp(value.get("value"))
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


class RestDocumentService(DocumentService):
    """DocumentService backed by an HTTP API."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: int = 30,
        retry: int = 3,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = endpoint.rstrip("/")
        self.timeout = timeout
        self.retry = retry
        self.token = token
        self._client = client

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
            )
        # Always update headers to include latest auth token
        self._client.headers.update(self._get_headers())
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, retrying server errors and transport failures.

        Client errors (4xx) are not retried.

        Raises:
            httpx.HTTPStatusError: For a 4xx response
            DocumentServiceError: When all attempts failed
        """
        client = self._get_client()
        url = path if path.startswith("/") else f"/{path}"

        last_exception: Optional[Exception] = None
        for attempt in range(self.retry + 1):
            try:
                response = await client.request(method=method, url=url, json=json, params=params)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                # Don't retry client errors (4xx)
                if 400 <= e.response.status_code < 500:
                    raise
                last_exception = e
            except httpx.RequestError as e:
                last_exception = e

            logger.warning(
                "%s %s failed (attempt %d/%d): %s",
                method,
                url,
                attempt + 1,
                self.retry + 1,
                last_exception,
            )
            if attempt < self.retry:
                await asyncio.sleep(2**attempt)

        raise DocumentServiceError(f"{method} {url} failed: {last_exception}") from last_exception

    async def _call(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            return await self.request(method, path, json=json, params=params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise DocumentNotFoundError(f"No document at {path}") from e
            raise DocumentServiceError(
                f"{method} {path} rejected with {e.response.status_code}"
            ) from e

    @staticmethod
    def _document_url(path: str) -> str:
        return f"/v1/documents/{path.strip('/')}"

    @staticmethod
    def _to_document(payload: dict[str, Any]) -> Document:
        return Document(
            id=payload["id"],
            path=payload["path"],
            data=decode_value(payload.get("data") or {}),
        )

    async def get(self, path: str) -> Document | None:
        try:
            response = await self._call("GET", self._document_url(path))
        except DocumentNotFoundError:
            return None
        return self._to_document(response.json())

    async def list(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        params: dict[str, Any] = {}
        if filters:
            params["where"] = json.dumps(encode_value(filters))
        if limit is not None:
            params["limit"] = limit
        response = await self._call("GET", self._document_url(collection), params=params or None)
        return [self._to_document(item) for item in response.json().get("documents", [])]

    async def set(self, path: str, data: dict[str, Any]) -> None:
        split_path(path)
        await self._call("PUT", self._document_url(path), json={"data": encode_value(data)})

    async def update(self, path: str, data: dict[str, Any]) -> None:
        split_path(path)
        await self._call("PATCH", self._document_url(path), json={"data": encode_value(data)})

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        response = await self._call(
            "POST", self._document_url(collection), json={"data": encode_value(data)}
        )
        return response.json()["id"]

    async def delete(self, path: str) -> None:
        try:
            await self._call("DELETE", self._document_url(path))
        except DocumentNotFoundError:
            logger.debug("Delete of missing document %s ignored", path)

    async def _commit(self, operations: list[BatchOperation]) -> None:
        payload = {
            "operations": [
                {
                    "op": op.kind,
                    "path": op.path,
                    **({"data": encode_value(op.data)} if op.data is not None else {}),
                }
                for op in operations
            ]
        }
        await self._call("POST", "/v1/batch", json=payload)

    def batch(self) -> WriteBatch:
        return WriteBatch(self._commit)
