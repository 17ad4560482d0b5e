"""
AuthPipeline: Discord code → roster profile → role → session.

Intent:
    A single linear pass with no retries. Each stage either hands its result
    to the next one or ends the run with a short machine-readable tag that the
    web adapter turns into a redirect to the front end.

Outcomes:
    success | no_code | auth_failed | not_employee | session_error
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
import logging

from identity_access.domain import ProviderIdentity, RosterRecord
from identity_access.oauth import OAuthExchangeError
from identity_access.roles import resolve_role
from identity_access.sessions import SessionManager
from identity_access.stores import SessionRecord, SessionStoreError

logger = logging.getLogger("paleto.identity.pipeline")

SUCCESS = "success"
NO_CODE = "no_code"
AUTH_FAILED = "auth_failed"
NOT_EMPLOYEE = "not_employee"
SESSION_ERROR = "session_error"


class IdentityExchanger(Protocol):
    def exchange(self, code: str | None) -> ProviderIdentity: ...


class ProfileLookup(Protocol):
    def lookup(self, discord_id: str) -> Optional[RosterRecord]: ...


@dataclass(frozen=True)
class AuthOutcome:
    status: str
    session: Optional[SessionRecord] = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    def redirect_url(self, frontend_url: str) -> str:
        """Append `auth=success` or `error=<tag>` to the front-end URL."""
        parts = urlsplit(frontend_url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        query.append(("auth", SUCCESS) if self.ok else ("error", self.status))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class AuthPipeline:
    def __init__(self, *, oauth: IdentityExchanger, roster: ProfileLookup, sessions: SessionManager):
        self.oauth = oauth
        self.roster = roster
        self.sessions = sessions

    def run(self, code: Optional[str], *, previous_session_id: Optional[str] = None) -> AuthOutcome:
        if not code:
            logger.info("auth.callback outcome=%s", NO_CODE)
            return AuthOutcome(NO_CODE)

        try:
            identity = self.oauth.exchange(code)
        except OAuthExchangeError as exc:
            logger.warning("auth.callback outcome=%s reason=%s", AUTH_FAILED, exc.code)
            return AuthOutcome(AUTH_FAILED)

        record = self.roster.lookup(identity.id)
        if record is None:
            logger.info("auth.callback outcome=%s id=%s", NOT_EMPLOYEE, identity.id)
            return AuthOutcome(NOT_EMPLOYEE)

        role = resolve_role(record.grade)

        try:
            session = self.sessions.create(
                identity=identity,
                record=record,
                role=role,
                previous_session_id=previous_session_id,
            )
        except SessionStoreError as exc:
            logger.error("auth.callback outcome=%s reason=%s", SESSION_ERROR, exc.code)
            return AuthOutcome(SESSION_ERROR)

        logger.info(
            "auth.callback outcome=%s id=%s grade=%s role=%s",
            SUCCESS,
            identity.id,
            record.grade,
            role.value,
        )
        return AuthOutcome(SUCCESS, session=session)


__all__ = [
    "AUTH_FAILED",
    "AuthOutcome",
    "AuthPipeline",
    "NOT_EMPLOYEE",
    "NO_CODE",
    "SESSION_ERROR",
    "SUCCESS",
]
