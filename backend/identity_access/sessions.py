"""
SessionManager: create/read/destroy the composite login session.

A session binds the Discord identity, the roster profile and the derived role
under a fresh opaque token with a fixed absolute lifetime (24 hours from
creation). Storage is delegated to an injected `SessionStore`.
"""
from __future__ import annotations

from typing import Optional
import logging
import secrets
import time

from identity_access.domain import ProviderIdentity, Role, RosterRecord
from identity_access.stores import SessionRecord, SessionStore, SessionStoreError

logger = logging.getLogger("paleto.identity.sessions")

SESSION_TTL_SECONDS = 24 * 60 * 60


class SessionManager:
    def __init__(self, store: SessionStore, *, ttl_seconds: int = SESSION_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds

    def create(
        self,
        *,
        identity: ProviderIdentity,
        record: RosterRecord,
        role: Role,
        previous_session_id: Optional[str] = None,
    ) -> SessionRecord:
        """Persist a new session and return it.

        Always issues a fresh token; a session bound to `previous_session_id`
        is dropped so a re-login never keeps the old token alive.
        Raises SessionStoreError when the store cannot commit.
        """
        rec = SessionRecord(
            session_id=secrets.token_urlsafe(32),
            discord_id=identity.id,
            username=identity.username,
            discriminator=identity.discriminator or "0",
            avatar_url=identity.avatar_url,
            employee_name=record.name,
            grade=record.grade,
            employee_id=record.employee_id,
            rib=record.rib,
            tel=record.tel,
            gmail=record.gmail,
            role=Role(role).value,
            expires_at=int(time.time()) + self.ttl_seconds,
            ttl_seconds=self.ttl_seconds,
        )
        try:
            self.store.set(rec)
        except SessionStoreError:
            raise
        except Exception as exc:
            raise SessionStoreError() from exc
        if previous_session_id:
            try:
                self.store.delete(previous_session_id)
            except Exception as exc:
                logger.warning("session.rotate_delete_failed error=%s", exc.__class__.__name__)
        return rec

    def read(self, session_id: Optional[str]) -> Optional[SessionRecord]:
        """Return the live session for `session_id`, or None."""
        if not session_id:
            return None
        try:
            rec = self.store.get(session_id)
        except SessionStoreError:
            raise
        except Exception as exc:
            raise SessionStoreError("session_read_failed") from exc
        if rec is None or rec.is_expired():
            return None
        return rec

    def destroy(self, session_id: Optional[str]) -> None:
        """Remove the session. Destroying an absent session is a no-op."""
        if not session_id:
            return
        try:
            self.store.delete(session_id)
        except SessionStoreError:
            raise
        except Exception as exc:
            raise SessionStoreError("session_delete_failed") from exc


__all__ = ["SESSION_TTL_SECONDS", "SessionManager"]
