"""Row-store abstractions for the hosted backend, a SQLite demo store and a fallback wrapper."""
from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

import requests

from models.timestamps import format_timestamp, utc_now
from tailor_app.errors import (
    CollaboratorUnavailable,
    Forbidden,
    NotFound,
    TailorError,
    Unauthenticated,
    ValidationError,
)
from tailor_app.logging_config import get_logger, log_event
from tools.change_channel import ChangeChannel, ChangeEvent
from tools.demo_data import demo_rows

LOGGER = get_logger(__name__)

Row = Dict[str, Any]
Filters = Dict[str, Any]

# Tables whose rows carry an ``updated_at`` column maintained on every write.
_UPDATED_AT_TABLES = {"profiles", "products", "measurements", "orders"}


def _matches(row: Row, filters: Optional[Filters]) -> bool:
    for key, expected in (filters or {}).items():
        value = row.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


def _sort_key(column: str):
    def key(row: Row) -> Tuple[bool, Any]:
        value = row.get(column)
        return (value is None, value if value is not None else "")

    return key


class Backend:
    """Persistence interface over the ``profiles``, ``products``, ``fabrics``,
    ``product_fabrics``, ``measurements``, ``orders`` and ``order_items`` tables.

    Filters are equality matches; a list, tuple or set value matches any of its
    members. Every write returns the written row(s).
    """

    mode = "abstract"

    def __init__(self, channel: Optional[ChangeChannel] = None) -> None:
        self.channel = channel

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        raise NotImplementedError

    def select_one(self, table: str, filters: Filters) -> Optional[Row]:
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, row: Row) -> Row:
        raise NotImplementedError

    def update(self, table: str, filters: Filters, changes: Row) -> List[Row]:
        raise NotImplementedError

    def delete(self, table: str, filters: Filters) -> int:
        raise NotImplementedError

    def insert_with_children(
        self,
        table: str,
        row: Row,
        child_table: str,
        child_rows: Sequence[Row],
        foreign_key: str,
    ) -> Tuple[Row, List[Row]]:
        """Write a parent row and its children so that neither exists without the other."""

        raise NotImplementedError

    def _publish(self, table: str, event_type: str, record: Optional[Row]) -> None:
        if self.channel is not None:
            self.channel.publish(ChangeEvent(table=table, event_type=event_type, record=record))


class SQLiteBackend(Backend):
    """Local SQLite-backed row store used for demo and offline runs.

    Rows are kept as JSON documents per table, which keeps the demo store
    schema-free while still giving transactional writes.
    """

    mode = "demo"

    def __init__(
        self,
        database_path: str | Path = "data/etailor_demo.db",
        channel: Optional[ChangeChannel] = None,
        seed: bool = True,
    ) -> None:
        super().__init__(channel)
        self.database_path = Path(database_path)
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()
        if seed:
            self._seed_catalog()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS row_store (
                    table_name TEXT NOT NULL,
                    row_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    PRIMARY KEY (table_name, row_id)
                );
                """
            )

    def _seed_catalog(self) -> None:
        if self.select("products", limit=1):
            return
        with self._connect() as conn:
            for table, rows in demo_rows().items():
                for row in rows:
                    self._write_new(conn, table, row)
        log_event(LOGGER, logging.INFO, "demo_catalog_seeded", database=str(self.database_path))

    @staticmethod
    def _with_defaults(table: str, row: Row) -> Row:
        now = format_timestamp(utc_now())
        stamped = {"id": str(uuid4()), "created_at": now, **row}
        if table in _UPDATED_AT_TABLES:
            stamped.setdefault("updated_at", now)
        return stamped

    def _write_new(self, conn: sqlite3.Connection, table: str, row: Row) -> Row:
        stamped = self._with_defaults(table, row)
        conn.execute(
            "INSERT OR REPLACE INTO row_store (table_name, row_id, payload) VALUES (?, ?, ?)",
            (table, str(stamped["id"]), json.dumps(stamped)),
        )
        return stamped

    def _load(self, conn: sqlite3.Connection, table: str) -> List[Row]:
        cursor = conn.execute(
            "SELECT payload FROM row_store WHERE table_name = ? ORDER BY rowid",
            (table,),
        )
        return [json.loads(row["payload"]) for row in cursor.fetchall()]

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        with self._connect() as conn:
            rows = [row for row in self._load(conn, table) if _matches(row, filters)]
        if order_by:
            if descending:
                # Ties keep newest-inserted first.
                rows.reverse()
            rows.sort(key=_sort_key(order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def insert(self, table: str, row: Row) -> Row:
        with self._connect() as conn:
            written = self._write_new(conn, table, row)
        self._publish(table, "INSERT", written)
        return written

    def update(self, table: str, filters: Filters, changes: Row) -> List[Row]:
        updated: List[Row] = []
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            for row in self._load(conn, table):
                if not _matches(row, filters):
                    continue
                merged = {**row, **changes, "id": row["id"]}
                if table in _UPDATED_AT_TABLES and "updated_at" not in changes:
                    merged["updated_at"] = format_timestamp(utc_now())
                conn.execute(
                    "UPDATE row_store SET payload = ? WHERE table_name = ? AND row_id = ?",
                    (json.dumps(merged), table, str(row["id"])),
                )
                updated.append(merged)
        for row in updated:
            self._publish(table, "UPDATE", row)
        return updated

    def delete(self, table: str, filters: Filters) -> int:
        removed: List[Row] = []
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            for row in self._load(conn, table):
                if _matches(row, filters):
                    conn.execute(
                        "DELETE FROM row_store WHERE table_name = ? AND row_id = ?",
                        (table, str(row["id"])),
                    )
                    removed.append(row)
        for row in removed:
            self._publish(table, "DELETE", {"id": row["id"]})
        return len(removed)

    def insert_with_children(
        self,
        table: str,
        row: Row,
        child_table: str,
        child_rows: Sequence[Row],
        foreign_key: str,
    ) -> Tuple[Row, List[Row]]:
        # One connection context is one transaction: both writes commit or neither does.
        with self._connect() as conn:
            parent = self._write_new(conn, table, row)
            children = [
                self._write_new(conn, child_table, {**child, foreign_key: parent["id"]})
                for child in child_rows
            ]
        self._publish(table, "INSERT", parent)
        for child in children:
            self._publish(child_table, "INSERT", child)
        return parent, children


class RestBackend(Backend):
    """Hosted PostgREST-style backend reached over HTTPS with ``requests``."""

    mode = "live"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 5.0,
        channel: Optional[ChangeChannel] = None,
        http: Optional[requests.Session] = None,
        max_retries: int = 2,
    ) -> None:
        super().__init__(channel)
        if not base_url or not api_key:
            raise ValueError("base_url and api_key are required for the hosted backend")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.http = http or requests.Session()
        self.max_retries = max_retries

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _headers(self, prefer: str = "return=representation") -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": prefer,
        }

    @staticmethod
    def _encode(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "null"
        return str(value)

    def _filter_params(self, filters: Optional[Filters]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for key, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set, frozenset)):
                params[key] = "in.(" + ",".join(self._encode(v) for v in value) + ")"
            elif value is None:
                params[key] = "is.null"
            else:
                params[key] = f"eq.{self._encode(value)}"
        return params

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: str = "return=representation",
    ) -> List[Row]:
        try:
            response = self.http.request(
                method,
                self._url(table),
                params=params,
                json=payload,
                headers=self._headers(prefer),
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as exc:
            log_event(LOGGER, logging.WARNING, "backend_timeout", table=table, method=method)
            raise CollaboratorUnavailable(f"Backend timed out on {method} {table}") from exc
        except requests.RequestException as exc:
            log_event(LOGGER, logging.WARNING, "backend_unreachable", table=table, method=method)
            raise CollaboratorUnavailable(f"Backend unreachable on {method} {table}") from exc

        self._raise_for_status(response, table)
        if not response.content:
            return []
        body = response.json()
        if isinstance(body, dict):
            return [body]
        return list(body)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or "backend error"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    def _raise_for_status(self, response: requests.Response, table: str) -> None:
        status = response.status_code
        if status < 400:
            return
        message = self._error_message(response)
        if status >= 500 or status == 429:
            raise CollaboratorUnavailable(f"Backend error on {table}: {message}")
        if status == 401:
            raise Unauthenticated(message)
        if status == 403:
            raise Forbidden(message)
        if status == 404:
            raise NotFound(f"{table}: {message}")
        raise ValidationError(message, {"__root__": message})

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        params = {"select": "*", **self._filter_params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", table, params=params)

    def insert(self, table: str, row: Row) -> Row:
        written = self._request("POST", table, payload=row)
        if not written:
            raise CollaboratorUnavailable(f"Backend returned no row for insert into {table}")
        self._publish(table, "INSERT", written[0])
        return written[0]

    def update(self, table: str, filters: Filters, changes: Row) -> List[Row]:
        written = self._request("PATCH", table, params=self._filter_params(filters), payload=changes)
        for row in written:
            self._publish(table, "UPDATE", row)
        return written

    def delete(self, table: str, filters: Filters) -> int:
        removed = self._request("DELETE", table, params=self._filter_params(filters))
        for row in removed:
            self._publish(table, "DELETE", {"id": row.get("id")})
        return len(removed)

    def insert_with_children(
        self,
        table: str,
        row: Row,
        child_table: str,
        child_rows: Sequence[Row],
        foreign_key: str,
    ) -> Tuple[Row, List[Row]]:
        """Create the parent, then upsert children with client ids so retries are idempotent.

        If the children still cannot be written the parent is deleted again, so
        callers never observe an order without its items.
        """

        created = self._request("POST", table, payload=row)
        if not created:
            raise CollaboratorUnavailable(f"Backend returned no row for insert into {table}")
        parent = created[0]
        children = [
            {"id": child.get("id") or str(uuid4()), **child, foreign_key: parent["id"]}
            for child in child_rows
        ]

        last_error: Optional[CollaboratorUnavailable] = None
        for attempt in range(self.max_retries + 1):
            try:
                written = self._request(
                    "POST",
                    child_table,
                    payload=children,
                    prefer="return=representation,resolution=merge-duplicates",
                )
            except CollaboratorUnavailable as exc:
                last_error = exc
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "child_rows_retry",
                    table=child_table,
                    attempt=attempt + 1,
                )
                continue
            except TailorError as exc:
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "child_rows_rejected",
                    table=child_table,
                    error=exc.code,
                )
                self._rollback_parent(table, parent["id"])
                raise
            self._publish(table, "INSERT", parent)
            for child in written:
                self._publish(child_table, "INSERT", child)
            return parent, written

        self._rollback_parent(table, parent["id"])
        raise CollaboratorUnavailable(
            f"Could not write {child_table} rows; {table} row {parent['id']} was rolled back"
        ) from last_error

    def _rollback_parent(self, table: str, row_id: str) -> None:
        try:
            self._request("DELETE", table, params=self._filter_params({"id": row_id}))
        except TailorError:
            log_event(
                LOGGER,
                logging.ERROR,
                "parent_rollback_failed",
                table=table,
                row_id=row_id,
                exc_info=True,
            )


@dataclass
class DeferredWrite:
    """A write accepted by the fallback store while the hosted backend was down."""

    operation: str
    table: str
    payload: Dict[str, Any]


class ResilientBackend(Backend):
    """Offline-fallback policy: reads degrade to the fallback store, writes are deferred.

    Deferred writes are kept in order and pushed to the primary backend by
    :meth:`replay_deferred`; nothing accepted while offline is dropped.
    """

    mode = "resilient"

    def __init__(self, primary: Backend, fallback: Backend) -> None:
        super().__init__(primary.channel)
        self.primary = primary
        self.fallback = fallback
        self.deferred: List[DeferredWrite] = []

    def _degraded(self, operation: str, table: str) -> None:
        log_event(LOGGER, logging.WARNING, "backend_degraded", operation=operation, table=table)

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        try:
            return self.primary.select(table, filters, order_by, descending, limit)
        except CollaboratorUnavailable:
            self._degraded("select", table)
            return self.fallback.select(table, filters, order_by, descending, limit)

    def insert(self, table: str, row: Row) -> Row:
        try:
            return self.primary.insert(table, row)
        except CollaboratorUnavailable:
            self._degraded("insert", table)
            written = self.fallback.insert(table, row)
            self.deferred.append(DeferredWrite("insert", table, {"row": written}))
            return written

    def update(self, table: str, filters: Filters, changes: Row) -> List[Row]:
        try:
            return self.primary.update(table, filters, changes)
        except CollaboratorUnavailable:
            self._degraded("update", table)
            written = self.fallback.update(table, filters, changes)
            self.deferred.append(
                DeferredWrite("update", table, {"filters": dict(filters), "changes": dict(changes)})
            )
            return written

    def delete(self, table: str, filters: Filters) -> int:
        try:
            return self.primary.delete(table, filters)
        except CollaboratorUnavailable:
            self._degraded("delete", table)
            removed = self.fallback.delete(table, filters)
            self.deferred.append(DeferredWrite("delete", table, {"filters": dict(filters)}))
            return removed

    def insert_with_children(
        self,
        table: str,
        row: Row,
        child_table: str,
        child_rows: Sequence[Row],
        foreign_key: str,
    ) -> Tuple[Row, List[Row]]:
        try:
            return self.primary.insert_with_children(table, row, child_table, child_rows, foreign_key)
        except CollaboratorUnavailable:
            self._degraded("insert_with_children", table)
            parent, children = self.fallback.insert_with_children(
                table, row, child_table, child_rows, foreign_key
            )
            self.deferred.append(
                DeferredWrite(
                    "insert_with_children",
                    table,
                    {
                        "row": parent,
                        "child_table": child_table,
                        "child_rows": children,
                        "foreign_key": foreign_key,
                    },
                )
            )
            return parent, children

    def replay_deferred(self) -> int:
        """Apply deferred writes to the primary backend in order; return how many succeeded."""

        replayed = 0
        while self.deferred:
            write = self.deferred[0]
            try:
                self._apply(write)
            except CollaboratorUnavailable:
                log_event(LOGGER, logging.WARNING, "deferred_replay_paused", pending=len(self.deferred))
                break
            self.deferred.pop(0)
            replayed += 1
        return replayed

    def _apply(self, write: DeferredWrite) -> None:
        payload = write.payload
        if write.operation == "insert":
            self.primary.insert(write.table, payload["row"])
        elif write.operation == "update":
            self.primary.update(write.table, payload["filters"], payload["changes"])
        elif write.operation == "delete":
            self.primary.delete(write.table, payload["filters"])
        elif write.operation == "insert_with_children":
            self.primary.insert_with_children(
                write.table,
                payload["row"],
                payload["child_table"],
                payload["child_rows"],
                payload["foreign_key"],
            )
        else:
            raise ValueError(f"Unknown deferred operation {write.operation}")


__all__ = [
    "Backend",
    "SQLiteBackend",
    "RestBackend",
    "ResilientBackend",
    "DeferredWrite",
]
