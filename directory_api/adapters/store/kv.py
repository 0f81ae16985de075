"""Key-value record store over the Cloudflare Workers KV REST API.

Each record is a JSON document under ``<prefix><id>``. The KV API has no
query language, so ``list`` and ``count_recent`` enumerate every key under the
prefix, fetch the values in parallel and filter/sort in process. Cost grows
linearly with the number of records; this backend suits small directories.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from directory_api.adapters.store.base import (
    MAX_PAGE_SIZE,
    AbstractRecordStore,
    SubmissionPage,
    clamp_page_size,
)
from directory_api.adapters.store.cursor import decode_cursor, encode_cursor, ensure_utc
from directory_api.core.errors import (
    DuplicateIdError,
    InternalAppError,
    NotFoundAppError,
    StoreUnavailableError,
    UpstreamAppError,
)
from directory_api.schemas.submission import SubmissionRecord, SubmissionStatus

logger = logging.getLogger(__name__)

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"
KEYS_PAGE_SIZE = 1000


def matches_query(record: SubmissionRecord, query: str) -> bool:
    """Case-insensitive substring match over the searchable fields."""
    needle = query.casefold()
    haystacks = (
        record.name,
        record.url,
        record.description,
        record.contact,
        json.dumps(record.tags, ensure_ascii=False),
        json.dumps(record.disciplines, ensure_ascii=False),
    )
    return any(needle in text.casefold() for text in haystacks)


class KvRecordStore(AbstractRecordStore):
    """Record store backed by one Cloudflare KV namespace."""

    backend_name = "kv"

    def __init__(
        self,
        *,
        account_id: str,
        namespace_id: str,
        api_token: str,
        prefix: str = "submissions:",
        base_url: str = CLOUDFLARE_API_BASE,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
        fetch_concurrency: int = MAX_PAGE_SIZE,
    ) -> None:
        """Initialize the KV store.

        Args:
            account_id: Cloudflare account id.
            namespace_id: KV namespace id.
            api_token: API token with KV read/write permission.
            prefix: Key prefix for submission records.
            base_url: Cloudflare API base URL.
            timeout_seconds: Per-request timeout for the owned HTTP client.
            client: Optional pre-built client (tests inject a mock transport).
            fetch_concurrency: Max parallel value fetches during scans.
        """
        self._prefix = prefix
        self._namespace_url = (
            f"{base_url.rstrip('/')}/accounts/{account_id}/storage/kv/namespaces/{namespace_id}"
        )
        self._headers = {"authorization": f"Bearer {api_token}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._fetch_concurrency = max(1, fetch_concurrency)

    def _value_url(self, record_id: str) -> str:
        return f"{self._namespace_url}/values/{quote(self._prefix + record_id, safe='')}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one KV API request.

        Raises:
            StoreUnavailableError: On transport failures (timeout, DNS, refused).
        """
        try:
            return await self._client.request(
                method, url, headers={**self._headers, **(headers or {})}, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.error(
                "store.kv_unreachable",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Record store is unavailable",
                details={"backend": self.backend_name},
            ) from exc

    def _upstream_error(self, response: httpx.Response, operation: str) -> UpstreamAppError:
        logger.error(
            "store.kv_request_failed",
            extra={"operation": operation, "http_status": response.status_code},
        )
        return UpstreamAppError(
            code=f"kv_{operation}_failed",
            message=f"KV {operation} failed",
            details={"http_status": response.status_code, "backend": self.backend_name},
        )

    def _decode_record(self, raw: bytes, key_hint: str) -> SubmissionRecord:
        try:
            return SubmissionRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("store.kv_corrupted_record", extra={"record_key": key_hint})
            raise InternalAppError(
                code="corrupted_record",
                message="Corrupted record",
                details={"record_id": key_hint},
            ) from exc

    async def _fetch(self, record_id: str) -> SubmissionRecord | None:
        response = await self._request("GET", self._value_url(record_id), operation="get")
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise self._upstream_error(response, "get")
        return self._decode_record(response.content, record_id)

    async def _put(self, record: SubmissionRecord) -> None:
        body = record.model_dump_json(by_alias=True)
        response = await self._request(
            "PUT",
            self._value_url(record.id),
            operation="put",
            content=body.encode("utf-8"),
            headers={"content-type": "application/json"},
        )
        if not response.is_success:
            raise self._upstream_error(response, "put")

    async def _list_ids(self) -> list[str]:
        """Enumerate record ids under the prefix, following KV list cursors."""
        ids: list[str] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"prefix": self._prefix, "limit": KEYS_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            response = await self._request(
                "GET", f"{self._namespace_url}/keys", operation="list", params=params
            )
            if not response.is_success:
                raise self._upstream_error(response, "list")
            try:
                payload = response.json()
            except ValueError as exc:
                raise self._upstream_error(response, "list") from exc

            for entry in payload.get("result") or []:
                name = entry.get("name", "")
                if name.startswith(self._prefix):
                    ids.append(name[len(self._prefix):])

            cursor = (payload.get("result_info") or {}).get("cursor") or None
            if not cursor:
                return ids

    async def _scan(self) -> list[SubmissionRecord]:
        """Fetch every record in the namespace with bounded parallelism."""
        ids = await self._list_ids()
        semaphore = asyncio.Semaphore(self._fetch_concurrency)

        async def fetch_one(record_id: str) -> SubmissionRecord | None:
            async with semaphore:
                return await self._fetch(record_id)

        fetched = await asyncio.gather(*(fetch_one(record_id) for record_id in ids))
        # Keys deleted between listing and fetching come back as None.
        return [record for record in fetched if record is not None]

    async def insert(self, record: SubmissionRecord) -> None:
        if await self._fetch(record.id) is not None:
            raise DuplicateIdError(
                code="duplicate_id",
                message="A submission with this id already exists",
                details={"record_id": record.id},
            )
        await self._put(record)

    async def get(self, record_id: str) -> SubmissionRecord:
        record = await self._fetch(record_id)
        if record is None:
            raise NotFoundAppError(code="not_found", message="Not found", details={"record_id": record_id})
        return record

    async def update(
        self,
        record_id: str,
        status: SubmissionStatus,
        note: str = "",
    ) -> SubmissionRecord:
        record = await self.get(record_id)
        updated = record.model_copy(
            update={
                "status": SubmissionStatus(status),
                "admin_note": note,
                "admin_at": datetime.now(timezone.utc),
            }
        )
        await self._put(updated)
        return updated

    async def list(
        self,
        *,
        query: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> SubmissionPage:
        limit = clamp_page_size(limit)
        after: tuple[datetime, str] | None = decode_cursor(cursor) if cursor else None

        records = await self._scan()
        if query:
            records = [record for record in records if matches_query(record, query)]
        if after is not None:
            records = [record for record in records if (ensure_utc(record.ts), record.id) < after]

        records.sort(key=lambda record: (ensure_utc(record.ts), record.id), reverse=True)
        items = records[:limit]
        next_cursor = encode_cursor(items[-1].ts, items[-1].id) if items else None
        return SubmissionPage(items=items, next_cursor=next_cursor)

    async def count_recent(self, ip: str, since: datetime) -> int:
        since = ensure_utc(since)
        records = await self._scan()
        return sum(1 for record in records if record.ip == ip and ensure_utc(record.ts) > since)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
