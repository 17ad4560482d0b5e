"""
Session storage: the record type, the store contract and an in-memory store.

Why: Keep sessions opaque to the client. The cookie carries only the session
id; identity, roster profile and role stay server-side. The in-memory store
suits a single process; `stores_db.DBSessionStore` persists across restarts.

Concurrency: Operations are point reads/writes by session id. The in-memory
store guards its dict with a lock so concurrent requests (threadpool) never
observe a half-applied write.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Protocol
import threading
import time


def _now() -> int:
    return int(time.time())


class SessionStoreError(Exception):
    """Raised when the backing store cannot commit or read a session."""

    def __init__(self, code: str = "session_store_failed"):
        super().__init__(code)
        self.code = code


@dataclass
class SessionRecord:
    session_id: str
    # Discord identity
    discord_id: str
    username: str
    discriminator: str
    avatar_url: str
    # Roster profile
    employee_name: str
    grade: str
    employee_id: str
    rib: str
    tel: str
    gmail: str
    # Authorization
    role: str
    expires_at: Optional[int] = None
    ttl_seconds: int = 86400

    def is_expired(self, now: Optional[int] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now if now is not None else _now())

    def to_public(self) -> Dict[str, str]:
        """Return the user payload in the front-end's field naming."""
        return {
            "id": self.discord_id,
            "username": self.username,
            "discriminator": self.discriminator,
            "avatar": self.avatar_url,
            "role": self.role,
            "employeeName": self.employee_name,
            "grade": self.grade,
            "employeeId": self.employee_id,
            "rib": self.rib,
            "tel": self.tel,
            "gmail": self.gmail,
        }

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SessionRecord":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in payload.items() if k in known})


class SessionStore(Protocol):
    def set(self, record: SessionRecord) -> None: ...

    def get(self, session_id: str) -> Optional[SessionRecord]: ...

    def delete(self, session_id: str) -> None: ...


class InMemorySessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def set(self, record: SessionRecord) -> None:
        with self._lock:
            self._data[record.session_id] = record

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            rec = self._data.get(session_id)
            if not rec:
                return None
            if rec.is_expired():
                self._data.pop(session_id, None)
                return None
            return rec

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)


__all__ = [
    "InMemorySessionStore",
    "SessionRecord",
    "SessionStore",
    "SessionStoreError",
]
