"""Remote store client.

This module defines the `RemoteService` surface consumed by the feed core and
`HttpRemoteService`, its implementation over a PostgREST-style REST API with
object storage:

- `GET/POST /rest/v1/<table>` for posts, comments and reports
- `POST /rest/v1/rpc/<function>` for atomic counter increments
- `POST /storage/v1/object/<bucket>/<path>` for media uploads

Transport errors, non-2xx responses and unreadable bodies are wrapped into
`RemoteReadFailure` or `RemoteWriteFailure` so callers never see raw httpx
or pydantic exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from cancelme_feed.core.errors import (
    RemoteError,
    RemoteReadFailure,
    RemoteWriteFailure,
    UploadFailure,
)
from cancelme_feed.core.settings import Settings, settings
from cancelme_feed.schemas.comment import Comment, CommentCreate, CommentPage
from cancelme_feed.schemas.feed import OrderBy, PostQuery
from cancelme_feed.schemas.post import Post, PostCreate, ReactionKind
from cancelme_feed.schemas.report import ReportCreate, ReportRecord

logger = logging.getLogger(__name__)

POSTS_VIEW = "posts_with_profiles"
_CONTENT_RANGE = re.compile(r"/(\d+)$")

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class RemoteService(Protocol):
    """Operations the feed core needs from the remote store."""

    async def query_posts(self, query: PostQuery) -> list[Post]: ...

    async def get_post(self, post_id: str) -> Post | None: ...

    async def insert_post(self, fields: PostCreate) -> Post: ...

    async def insert_comment(
        self, post_id: str, content: str, display_name: str | None = None
    ) -> Comment: ...

    async def query_comments(self, post_id: str, offset: int, limit: int) -> CommentPage: ...

    async def count_comments(self, post_ids: Sequence[str]) -> dict[str, int]: ...

    async def insert_report(self, report: ReportCreate) -> None: ...

    async def query_reports(
        self, post_ids: Sequence[str], since: datetime
    ) -> list[ReportRecord]: ...

    async def increment_reaction(self, post_id: str, kind: ReactionKind, delta: int = 1) -> None: ...

    async def increment_view(self, post_id: str, delta: int = 1) -> None: ...

    async def upload_media(self, filename: str, content: bytes, content_type: str) -> str: ...


def order_clause(order_by: OrderBy) -> str:
    """Return the PostgREST `order` parameter; ties break on recency."""
    if order_by is OrderBy.SCORE:
        return "score.desc,created_at.desc"
    return "created_at.desc"


def post_query_params(query: PostQuery) -> dict[str, str]:
    """Translate a `PostQuery` into PostgREST query parameters."""
    params = {
        "select": "*",
        "order": order_clause(query.order_by),
        "offset": str(query.offset),
        "limit": str(query.limit),
    }
    if query.since is not None:
        params["created_at"] = f"gte.{query.since.isoformat()}"
    if query.tag:
        params["tags"] = f"cs.{{{_quote(query.tag.lower())}}}"
    return params


def _quote(value: str) -> str:
    """Quote one element of a PostgREST list or array literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_total(content_range: str | None) -> int | None:
    """Extract the total from a `Content-Range: 0-19/57` header."""
    if not content_range:
        return None
    match = _CONTENT_RANGE.search(content_range)
    return int(match.group(1)) if match else None


def _in_filter(values: Sequence[str]) -> str:
    quoted = ",".join(_quote(value) for value in values)
    return f"in.({quoted})"


def _rows(model: type[M]) -> Callable[[Any], list[M]]:
    return lambda body: [model.model_validate(row) for row in body]


def _first_row(model: type[M]) -> Callable[[Any], M]:
    """Parse a `return=representation` body; an empty one is an error."""
    return lambda body: model.model_validate(body[0])


class HttpRemoteService:
    """`RemoteService` implementation over httpx."""

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        path: str
        json_data: Any | None = None
        content: bytes | None = None
        params: Mapping[str, str] | None = None
        headers: dict[str, str] | None = None
        write: bool = False

    def __init__(
        self,
        config: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or settings
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.remote_base_url,
                    timeout=httpx.Timeout(self.config.remote_timeout_seconds),
                )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        if not self.config.remote_api_key:
            return {}
        return {
            "apikey": self.config.remote_api_key,
            "Authorization": f"Bearer {self.config.remote_api_key}",
        }

    async def _request(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()
        headers = self._auth_headers()
        if params.headers:
            headers.update(params.headers)
        failure: type[RemoteError] = RemoteWriteFailure if params.write else RemoteReadFailure
        endpoint = f"{params.method} {params.path}"

        try:
            response = await client.request(
                params.method,
                params.path,
                json=params.json_data,
                content=params.content,
                params=params.params,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise failure(f"{endpoint} failed: {exc}") from exc

        if response.status_code >= 400:
            raise failure(f"{endpoint} responded with {response.status_code}")
        return response

    def _decode(
        self,
        params: RequestParams,
        response: httpx.Response,
        parse: Callable[[Any], T],
    ) -> T:
        """Decode a JSON body with `parse`.

        A body that is not JSON or does not fit the expected rows raises the
        same failure type as a transport error on that endpoint.
        """
        try:
            return parse(response.json())
        except (ValueError, TypeError, KeyError, IndexError, SchemaError) as exc:
            failure: type[RemoteError] = RemoteWriteFailure if params.write else RemoteReadFailure
            raise failure(f"{params.method} {params.path} returned an unreadable body: {exc}") from exc

    async def _fetch(self, params: RequestParams, parse: Callable[[Any], T]) -> T:
        return self._decode(params, await self._request(params), parse)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this service created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # --- Posts ----------------------------------------------------------------------
    async def query_posts(self, query: PostQuery) -> list[Post]:
        return await self._fetch(
            self.RequestParams(
                method="GET",
                path=f"/rest/v1/{POSTS_VIEW}",
                params=post_query_params(query),
            ),
            _rows(Post),
        )

    async def get_post(self, post_id: str) -> Post | None:
        """Return one post by id, or None if the store has no such post."""
        posts = await self._fetch(
            self.RequestParams(
                method="GET",
                path=f"/rest/v1/{POSTS_VIEW}",
                params={"select": "*", "id": f"eq.{post_id}", "limit": "1"},
            ),
            _rows(Post),
        )
        return posts[0] if posts else None

    async def insert_post(self, fields: PostCreate) -> Post:
        return await self._fetch(
            self.RequestParams(
                method="POST",
                path="/rest/v1/posts",
                json_data=[fields.model_dump(mode="json")],
                headers={"Prefer": "return=representation"},
                write=True,
            ),
            _first_row(Post),
        )

    # --- Comments -------------------------------------------------------------------
    async def insert_comment(
        self, post_id: str, content: str, display_name: str | None = None
    ) -> Comment:
        payload = CommentCreate(post_id=post_id, content=content, display_name=display_name)
        return await self._fetch(
            self.RequestParams(
                method="POST",
                path="/rest/v1/comments",
                json_data=[payload.model_dump(mode="json")],
                headers={"Prefer": "return=representation"},
                write=True,
            ),
            _first_row(Comment),
        )

    async def query_comments(self, post_id: str, offset: int, limit: int) -> CommentPage:
        params = self.RequestParams(
            method="GET",
            path="/rest/v1/comments",
            params={
                "select": "*",
                "post_id": f"eq.{post_id}",
                "order": "created_at.desc",
                "offset": str(offset),
                "limit": str(limit),
            },
            headers={"Prefer": "count=exact"},
        )
        response = await self._request(params)
        items = self._decode(params, response, _rows(Comment))
        return CommentPage(items=items, total=parse_total(response.headers.get("content-range")))

    async def count_comments(self, post_ids: Sequence[str]) -> dict[str, int]:
        """Return exact comment totals; ids whose count fails are left out."""
        counts: dict[str, int] = {}
        for post_id in post_ids:
            try:
                response = await self._request(
                    self.RequestParams(
                        method="HEAD",
                        path="/rest/v1/comments",
                        params={"select": "*", "post_id": f"eq.{post_id}"},
                        headers={"Prefer": "count=exact"},
                    )
                )
            except RemoteReadFailure as exc:
                logger.warning("Comment count unavailable for %s: %s", post_id, exc)
                continue
            total = parse_total(response.headers.get("content-range"))
            if total is not None:
                counts[post_id] = total
        return counts

    # --- Reports --------------------------------------------------------------------
    async def insert_report(self, report: ReportCreate) -> None:
        await self._request(
            self.RequestParams(
                method="POST",
                path="/rest/v1/reports",
                json_data=[report.model_dump(mode="json")],
                headers={"Prefer": "return=minimal"},
                write=True,
            )
        )

    async def query_reports(self, post_ids: Sequence[str], since: datetime) -> list[ReportRecord]:
        if not post_ids:
            return []
        return await self._fetch(
            self.RequestParams(
                method="GET",
                path="/rest/v1/reports",
                params={
                    "select": "post_id,created_at",
                    "created_at": f"gte.{since.isoformat()}",
                    "post_id": _in_filter(post_ids),
                },
            ),
            _rows(ReportRecord),
        )

    # --- Counters -------------------------------------------------------------------
    async def increment_reaction(self, post_id: str, kind: ReactionKind, delta: int = 1) -> None:
        await self._request(
            self.RequestParams(
                method="POST",
                path="/rest/v1/rpc/increment_reaction",
                json_data={"pid": post_id, "kind": ReactionKind(kind).value, "delta": delta},
                write=True,
            )
        )

    async def increment_view(self, post_id: str, delta: int = 1) -> None:
        await self._request(
            self.RequestParams(
                method="POST",
                path="/rest/v1/rpc/increment_view",
                json_data={"pid": post_id, "delta": delta},
                write=True,
            )
        )

    # --- Media ----------------------------------------------------------------------
    async def upload_media(self, filename: str, content: bytes, content_type: str) -> str:
        """Upload a blob to the media bucket and return its public URL."""
        ext = filename.rsplit(".", 1)[-1] if "." in filename else ""
        if not ext:
            ext = "mp4" if content_type.startswith("video") else "jpg"
        path = f"public/{uuid.uuid4()}.{ext}"
        bucket = self.config.media_bucket
        try:
            await self._request(
                self.RequestParams(
                    method="POST",
                    path=f"/storage/v1/object/{bucket}/{path}",
                    content=content,
                    headers={"Content-Type": content_type, "x-upsert": "false"},
                    write=True,
                )
            )
        except RemoteWriteFailure as exc:
            logger.error("Upload failed for %s: %s", filename, exc)
            raise UploadFailure("Upload impossible") from exc
        base = self.config.remote_base_url.rstrip("/")
        return f"{base}/storage/v1/object/public/{bucket}/{path}"
