"""
Database-backed SessionStore (Postgres).

Why: In-memory sessions are lost on restart and do not work across several
instances behind a proxy. This store keeps the session payload in Postgres
while the cookie stays opaque.

Schema (created by the operator):

    create table public.app_sessions (
        session_id text primary key,
        payload    jsonb not null,
        expires_at timestamptz not null
    );

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use a fake psycopg driver.
"""
from __future__ import annotations

from typing import Optional
import os
import re

import psycopg
from psycopg import sql
from psycopg.types.json import Json

from identity_access.stores import SessionRecord, SessionStoreError

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Falls back to `DATABASE_URL`.
    table:
        Optionally schema-qualified table name. Defaults to `public.app_sessions`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSessionStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    def _identifier(self) -> sql.Identifier:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return sql.Identifier(schema, name)

    def set(self, record: SessionRecord) -> None:
        stmt = sql.SQL(
            "insert into {} (session_id, payload, expires_at) values (%s, %s, to_timestamp(%s)) "
            "on conflict (session_id) do update set payload = excluded.payload, expires_at = excluded.expires_at"
        ).format(self._identifier())
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, (record.session_id, Json(record.to_payload()), record.expires_at))
        except psycopg.Error as exc:
            raise SessionStoreError("session_write_failed") from exc

    def get(self, session_id: str) -> Optional[SessionRecord]:
        stmt = sql.SQL(
            "select payload from {} where session_id = %s and expires_at > now()"
        ).format(self._identifier())
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, (session_id,))
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise SessionStoreError("session_read_failed") from exc
        if not row or not isinstance(row[0], dict):
            return None
        return SessionRecord.from_payload(row[0])

    def delete(self, session_id: str) -> None:
        stmt = sql.SQL("delete from {} where session_id = %s").format(self._identifier())
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, (session_id,))
        except psycopg.Error as exc:
            raise SessionStoreError("session_delete_failed") from exc


__all__ = ["DBSessionStore"]
