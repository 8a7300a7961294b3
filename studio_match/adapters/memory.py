"""In-process store client.

Rows live in plain dictionaries and every request is recorded in
:attr:`MemoryClient.calls`, which makes the client a convenient stand-in for
the HTTP backend in tests and local runs. Writes are published to the
client's :class:`~studio_match.adapters.realtime.RealtimeBroker` the same way
the real backend pushes row changes.
"""

from __future__ import annotations

import asyncio
import copy
import datetime
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC
from typing import Any

from ..core.models import CONFIRMED, Session
from ..core.transforms import parse_timestamp
from ..errors import StoreError
from .base import Filter, Query, Row, StoreClient
from .realtime import RealtimeBroker, RowChange

Procedure = Callable[[Mapping[str, Any]], Any]


def _now() -> str:
    return datetime.datetime.now(tz=UTC).isoformat()


def _matches(row: Row, f: Filter) -> bool:
    value = row.get(f.column)
    if f.op == "eq":
        return value == f.value
    if f.op == "neq":
        return value != f.value
    if f.op == "in":
        return value in f.value
    if f.op == "not_null":
        return value is not None
    raise ValueError(f"Unsupported filter operator: {f.op}")


def _sort_key(value: Any) -> tuple[bool, str]:
    return (value is None, "" if value is None else str(value))


def _project(row: Row, columns: str) -> Row:
    if columns.strip() == "*":
        return dict(row)
    wanted = [c.strip() for c in columns.split(",") if c.strip()]
    return {c: row.get(c) for c in wanted}


class MemoryClient(StoreClient):
    """Store client keeping every table in memory."""

    def __init__(
        self,
        tables: Mapping[str, list[Row]] | None = None,
        session: Session | None = None,
        latency: float = 0.0,
    ) -> None:
        self.tables: dict[str, list[Row]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.session = session
        self.latency = latency
        self.realtime = RealtimeBroker()
        self.blobs: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, StoreError] = {}
        self.unique: dict[str, tuple[str, ...]] = {
            "message_reads": ("user_id", "conversation_id"),
        }
        self.procedures: dict[str, Procedure] = {
            "get_unread_count": self._get_unread_count,
            "create_team_with_owner": self._create_team_with_owner,
            "has_role": self._has_role,
            "log_audit_event": self._log_audit_event,
            "export_user_data": self._export_user_data,
        }

    # ------------------------------------------------------------------
    # Test helpers
    def rows(self, table: str) -> list[Row]:
        return self.tables.setdefault(table, [])

    def fail(self, target: str, message: str = "simulated failure") -> None:
        """Make requests for ``target`` raise :class:`StoreError`.

        ``target`` is a table name (``"profiles"``), an action on a table
        (``"insert:conversations"``) or a procedure (``"rpc:get_unread_count"``).
        """
        self.failures[target] = StoreError(message)

    def count(self, action: str, target: str) -> int:
        return sum(1 for call in self.calls if call == (action, target))

    async def _enter(self, action: str, target: str, keys: tuple[str, ...]) -> None:
        self.calls.append((action, target))
        await asyncio.sleep(self.latency)
        for key in keys:
            if key in self.failures:
                raise self.failures[key]

    # ------------------------------------------------------------------
    # StoreClient
    async def execute(self, query: Query) -> list[Row]:
        await self._enter(
            query.action,
            query.table,
            (query.table, f"{query.action}:{query.table}"),
        )
        handler = getattr(self, f"_{query.action}")
        return handler(query)

    def _filtered(self, query: Query) -> list[Row]:
        return [
            row
            for row in self.rows(query.table)
            if all(_matches(row, f) for f in query.filters)
        ]

    def _select(self, query: Query) -> list[Row]:
        rows = self._filtered(query)
        for column, ascending in reversed(query.orders):
            rows = sorted(rows, key=lambda r: _sort_key(r.get(column)), reverse=not ascending)
        if query.row_limit is not None:
            rows = rows[: query.row_limit]
        return [_project(r, query.columns) for r in rows]

    def _payload(self, query: Query) -> list[Row]:
        payload = query.payload or []
        return [payload] if isinstance(payload, dict) else list(payload)

    def _store(self, table: str, row: Row) -> Row:
        stored = dict(row)
        stored.setdefault("id", uuid.uuid4().hex)
        stored.setdefault("created_at", _now())
        self.rows(table).append(stored)
        self.realtime.publish(RowChange(table, "INSERT", dict(stored)))
        return dict(stored)

    def _insert(self, query: Query) -> list[Row]:
        return [self._store(query.table, row) for row in self._payload(query)]

    def _upsert(self, query: Query) -> list[Row]:
        if query.on_conflict:
            keys = tuple(c.strip() for c in query.on_conflict.split(","))
        else:
            keys = self.unique.get(query.table, ("id",))
        result = []
        for row in self._payload(query):
            existing = next(
                (
                    r
                    for r in self.rows(query.table)
                    if all(r.get(k) == row.get(k) for k in keys)
                ),
                None,
            )
            if existing is None:
                result.append(self._store(query.table, row))
                continue
            old = dict(existing)
            existing.update(row)
            self.realtime.publish(RowChange(query.table, "UPDATE", dict(existing), old))
            result.append(dict(existing))
        return result

    def _update(self, query: Query) -> list[Row]:
        result = []
        for row in self._filtered(query):
            old = dict(row)
            row.update(query.payload or {})
            self.realtime.publish(RowChange(query.table, "UPDATE", dict(row), old))
            result.append(dict(row))
        return result

    def _delete(self, query: Query) -> list[Row]:
        doomed = self._filtered(query)
        table = self.rows(query.table)
        for row in doomed:
            table.remove(row)
            self.realtime.publish(RowChange(query.table, "DELETE", {}, dict(row)))
        return [dict(r) for r in doomed]

    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        await self._enter("rpc", name, (f"rpc:{name}",))
        procedure = self.procedures.get(name)
        if procedure is None:
            raise StoreError(f"Could not find the function {name}", code="PGRST202")
        return copy.deepcopy(procedure(dict(params or {})))

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> None:
        key = f"{bucket}/{path}"
        await self._enter("upload", key, (f"upload:{bucket}",))
        if key in self.blobs and not upsert:
            raise StoreError("The resource already exists", status=409)
        self.blobs[key] = bytes(content)

    def public_url(self, bucket: str, path: str) -> str:
        return f"memory://{bucket}/{path}"

    async def get_session(self) -> Session | None:
        await self._enter("auth", "session", ("auth",))
        return self.session

    async def sign_out(self) -> None:
        await self._enter("auth", "sign_out", ("auth",))
        self.session = None

    # ------------------------------------------------------------------
    # Built-in procedures
    def _get_unread_count(self, params: Mapping[str, Any]) -> int:
        user_id = params["p_user_id"]
        conversations = {
            p["conversation_id"]
            for p in self.rows("conversation_participants")
            if p.get("user_id") == user_id
        }
        reads = {
            r["conversation_id"]: r["last_read_at"]
            for r in self.rows("message_reads")
            if r.get("user_id") == user_id
        }
        total = 0
        for m in self.rows("messages"):
            if m.get("conversation_id") not in conversations:
                continue
            if m.get("sender_id") == user_id:
                continue
            last_read = reads.get(m["conversation_id"])
            sent = parse_timestamp(m["created_at"])
            if last_read is None or sent > parse_timestamp(last_read):
                total += 1
        return total

    def _create_team_with_owner(self, params: Mapping[str, Any]) -> dict[str, str]:
        user_id = params["p_user_id"]
        name = (params.get("p_name") or "").strip()
        if not name:
            raise StoreError("Team name is required")
        team = self._store(
            "teams",
            {
                "name": name,
                "description": params.get("p_description"),
                "studio": params.get("p_studio"),
                "looking_for": params.get("p_looking_for"),
                "skills_needed": list(params.get("p_skills_needed") or []),
                "created_by": user_id,
            },
        )
        self._store(
            "team_members",
            {"team_id": team["id"], "user_id": user_id, "role": "owner", "status": CONFIRMED},
        )
        conversation = self._store("conversations", {"type": "team", "team_id": team["id"]})
        self._store(
            "conversation_participants",
            {"conversation_id": conversation["id"], "user_id": user_id},
        )
        return {"team_id": team["id"], "conversation_id": conversation["id"]}

    def _has_role(self, params: Mapping[str, Any]) -> bool:
        return any(
            r.get("user_id") == params.get("_user_id")
            and r.get("role") == params.get("_role")
            for r in self.rows("user_roles")
        )

    def _log_audit_event(self, params: Mapping[str, Any]) -> None:
        self._store(
            "audit_logs",
            {"action": params.get("p_action"), "metadata": params.get("p_metadata")},
        )

    def _export_user_data(self, params: Mapping[str, Any]) -> dict[str, Any]:
        user_id = params["p_user_id"]
        return {
            "profile": next(
                (p for p in self.rows("profiles") if p.get("user_id") == user_id), None
            ),
            "matches": [m for m in self.rows("matches") if m.get("user_id") == user_id],
            "messages": [m for m in self.rows("messages") if m.get("sender_id") == user_id],
        }
