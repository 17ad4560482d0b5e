"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` returns an in-memory table. Supports the subset of SQL used
by DBSessionStore (upsert / select payload / delete). Statements arrive as
``psycopg.sql.Composed`` objects; the fake matches on their text.
"""
from __future__ import annotations

from dataclasses import dataclass
import time
import types
from typing import Any, Dict


class FakeJson:
    """Minimal replacement for psycopg.types.json.Json used in tests."""

    def __init__(self, obj: Any) -> None:
        self.obj = obj


class FakeDatabaseError(Exception):
    """Stands in for psycopg.Error."""


@dataclass
class _Row:
    payload: dict
    expires_at: int


class _FakeCursor:
    def __init__(self, table: Dict[str, _Row], now_func, fail: bool) -> None:
        self._table = table
        self._row = None
        self._now = now_func
        self._fail = fail

    def execute(self, stmt: Any, params: tuple | list) -> None:
        if self._fail:
            raise FakeDatabaseError("connection lost")
        text = str(stmt).lower()
        if "insert into" in text:
            sid, payload, expires_at = params
            self._table[str(sid)] = _Row(payload=dict(getattr(payload, "obj", payload)), expires_at=int(expires_at))
            self._row = None
        elif "select payload" in text:
            row = self._table.get(str(params[0]))
            self._row = (row.payload,) if row and row.expires_at > int(self._now()) else None
        elif "delete from" in text:
            self._table.pop(str(params[0]), None)
            self._row = None
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {stmt}")

    def fetchone(self):
        return self._row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeConn:
    def __init__(self, table: Dict[str, _Row], now_func, fail: bool) -> None:
        self._table = table
        self._now = now_func
        self._fail = fail

    def cursor(self):
        return _FakeCursor(self._table, self._now, self._fail)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def install_fake_psycopg(monkeypatch, target_module, now_func=time.time, fail: bool = False):
    """
    Patch ``target_module`` so psycopg operations go against an in-memory table.

    With ``fail=True`` every statement raises the fake driver error.
    Returns the mutable dictionary acting as the backing table.
    """
    table: Dict[str, _Row] = {}

    def fake_connect(dsn: str, autocommit: bool | None = None):
        return _FakeConn(table, now_func, fail)

    fake_psycopg = types.SimpleNamespace(connect=fake_connect, Error=FakeDatabaseError)

    monkeypatch.setattr(target_module, "psycopg", fake_psycopg, raising=False)
    monkeypatch.setattr(target_module, "Json", FakeJson, raising=False)
    return table


__all__ = ["FakeDatabaseError", "FakeJson", "install_fake_psycopg"]
