"""HTTP store client implementing :class:`~studio_match.adapters.base.StoreClient`.

Requests go to a Supabase-style backend: PostgREST for tables and procedures,
the storage API for blobs and the auth API for the session. It uses
:mod:`httpx` so every call stays asynchronous.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from ..config import Settings
from ..core.models import Session
from ..errors import StoreError
from .base import Filter, Query, Row, StoreClient
from .realtime import RealtimeBroker

_PREFER = {
    "insert": "return=representation",
    "upsert": "resolution=merge-duplicates,return=representation",
    "update": "return=representation",
    "delete": "return=representation",
}
_METHODS = {
    "select": "GET",
    "insert": "POST",
    "upsert": "POST",
    "update": "PATCH",
    "delete": "DELETE",
}


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quoted(value: Any) -> str:
    text = _literal(value)
    if any(ch in text for ch in ',()" '):
        text = '"' + text.replace('"', '\\"') + '"'
    return text


def encode_filter(f: Filter) -> tuple[str, str]:
    """Translate a :class:`Filter` into a PostgREST query parameter."""
    if f.op == "eq":
        return f.column, f"eq.{_literal(f.value)}"
    if f.op == "neq":
        return f.column, f"neq.{_literal(f.value)}"
    if f.op == "in":
        return f.column, "in.(" + ",".join(_quoted(v) for v in f.value) + ")"
    if f.op == "not_null":
        return f.column, "not.is.null"
    raise ValueError(f"Unsupported filter operator: {f.op}")


class SupabaseClient(StoreClient):
    """Store client that talks to the backend over HTTP."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        client: httpx.AsyncClient | None = None,
        access_token: str | None = None,
        realtime: RealtimeBroker | None = None,
    ) -> None:
        """Store the project ``url``, its public key and an optional ``client``."""
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self.client = client or httpx.AsyncClient()
        self.realtime = realtime or RealtimeBroker()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> SupabaseClient:
        return cls(settings.url, settings.anon_key, **kwargs)

    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {url} failed: {exc}") from exc
        if response.is_error:
            message = response.text or response.reason_phrase
            code = None
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("message") or body.get("error") or message
                code = body.get("code")
            raise StoreError(message, code=code, status=response.status_code)
        return response

    # ------------------------------------------------------------------
    async def execute(self, query: Query) -> list[Row]:
        """Run ``query`` against ``/rest/v1/<table>``.

        Parameters
        ----------
        query:
            The request built through :meth:`StoreClient.table`.

        """
        params: list[tuple[str, str]] = []
        if query.action == "select":
            params.append(("select", query.columns))
        params.extend(encode_filter(f) for f in query.filters)
        if query.orders:
            params.append(
                (
                    "order",
                    ",".join(
                        f"{col}.{'asc' if asc else 'desc'}" for col, asc in query.orders
                    ),
                )
            )
        if query.row_limit is not None:
            params.append(("limit", str(query.row_limit)))
        if query.on_conflict:
            params.append(("on_conflict", query.on_conflict))

        headers = {}
        if query.action in _PREFER:
            headers["Prefer"] = _PREFER[query.action]

        response = await self._send(
            _METHODS[query.action],
            f"{self.url}/rest/v1/{query.table}",
            params=params,
            json=query.payload,
            headers=headers,
        )
        if not response.content:
            return []
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return list(data or [])

    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        response = await self._send(
            "POST", f"{self.url}/rest/v1/rpc/{name}", json=dict(params or {})
        )
        if not response.content:
            return None
        return response.json()

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> None:
        await self._send(
            "POST",
            f"{self.url}/storage/v1/object/{bucket}/{path}",
            content=content,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if upsert else "false",
            },
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"

    async def get_session(self) -> Session | None:
        if not self.access_token:
            return None
        response = await self._send("GET", f"{self.url}/auth/v1/user")
        data: dict[str, Any] = response.json()
        return Session(
            access_token=self.access_token,
            user_id=str(data["id"]),
            email=data.get("email"),
        )

    async def sign_out(self) -> None:
        if self.access_token:
            await self._send("POST", f"{self.url}/auth/v1/logout")
        self.access_token = None

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()
