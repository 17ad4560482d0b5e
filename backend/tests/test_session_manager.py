"""
SessionManager and in-memory store tests.

Covers: composite fields survive a round trip, fixed 24h TTL, expiry, token
rotation on re-login, idempotent destroy and wrapping of store failures.
"""
from __future__ import annotations

import time

import pytest

from identity_access.domain import ProviderIdentity, Role, RosterRecord
from identity_access.sessions import SESSION_TTL_SECONDS, SessionManager
from identity_access.stores import InMemorySessionStore, SessionStoreError

IDENTITY = ProviderIdentity(id="123", username="jane", discriminator="0", avatar="hash1")
RECORD = RosterRecord(
    discord_id="123",
    name="Jane Doe",
    grade="Chef Atelier",
    employee_id="E1",
    rib="RIB1",
    tel="555",
    gmail="jane@x.com",
)


class BrokenStore:
    def set(self, record):
        raise OSError("disk full")

    def get(self, session_id):
        raise OSError("unreachable")

    def delete(self, session_id):
        raise OSError("unreachable")


def test_created_session_is_readable_with_all_fields():
    mgr = SessionManager(InMemorySessionStore())
    created = mgr.create(identity=IDENTITY, record=RECORD, role=Role.EMPLOYEE)

    got = mgr.read(created.session_id)
    assert got is not None
    assert got.to_public() == {
        "id": "123",
        "username": "jane",
        "discriminator": "0",
        "avatar": "https://cdn.discordapp.com/avatars/123/hash1.png",
        "role": "employee",
        "employeeName": "Jane Doe",
        "grade": "Chef Atelier",
        "employeeId": "E1",
        "rib": "RIB1",
        "tel": "555",
        "gmail": "jane@x.com",
    }


def test_default_ttl_is_24_hours():
    mgr = SessionManager(InMemorySessionStore())
    before = int(time.time())
    rec = mgr.create(identity=IDENTITY, record=RECORD, role=Role.ADMIN)
    assert SESSION_TTL_SECONDS == 86400
    assert rec.ttl_seconds == 86400
    assert before + 86400 <= rec.expires_at <= int(time.time()) + 86400


def test_session_is_absent_after_ttl(monkeypatch: pytest.MonkeyPatch):
    mgr = SessionManager(InMemorySessionStore(), ttl_seconds=60)
    rec = mgr.create(identity=IDENTITY, record=RECORD, role=Role.EMPLOYEE)
    assert mgr.read(rec.session_id) is not None

    real_time = time.time
    monkeypatch.setattr(time, "time", lambda: real_time() + 61)
    assert mgr.read(rec.session_id) is None


def test_tokens_are_fresh_and_previous_session_is_dropped():
    mgr = SessionManager(InMemorySessionStore())
    first = mgr.create(identity=IDENTITY, record=RECORD, role=Role.EMPLOYEE)
    second = mgr.create(identity=IDENTITY, record=RECORD, role=Role.EMPLOYEE, previous_session_id=first.session_id)
    assert first.session_id != second.session_id
    assert mgr.read(first.session_id) is None
    assert mgr.read(second.session_id) is not None


def test_sessions_do_not_share_state():
    mgr = SessionManager(InMemorySessionStore())
    a = mgr.create(identity=IDENTITY, record=RECORD, role=Role.EMPLOYEE)
    other = ProviderIdentity(id="456", username="bob")
    b = mgr.create(identity=other, record=RosterRecord(discord_id="456", grade="DRH"), role=Role.RH)
    mgr.destroy(a.session_id)
    assert mgr.read(a.session_id) is None
    assert mgr.read(b.session_id).role == "rh"


def test_destroy_is_idempotent():
    mgr = SessionManager(InMemorySessionStore())
    rec = mgr.create(identity=IDENTITY, record=RECORD, role=Role.VISITOR)
    mgr.destroy(rec.session_id)
    mgr.destroy(rec.session_id)
    mgr.destroy("never-existed")
    mgr.destroy(None)
    assert mgr.read(rec.session_id) is None


def test_read_without_token_is_absent():
    mgr = SessionManager(InMemorySessionStore())
    assert mgr.read(None) is None
    assert mgr.read("") is None


def test_store_failures_surface_as_session_store_error():
    mgr = SessionManager(BrokenStore())
    with pytest.raises(SessionStoreError):
        mgr.create(identity=IDENTITY, record=RECORD, role=Role.EMPLOYEE)
    with pytest.raises(SessionStoreError):
        mgr.read("sid")
    with pytest.raises(SessionStoreError):
        mgr.destroy("sid")
