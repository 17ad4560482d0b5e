"""
Minimal Discord OAuth2 client (authorization-code flow).

Why: Keep web framework independent logic in a separate module. The web
adapter (FastAPI) calls into this client to build the authorization URL and to
turn the callback `code` into a Discord identity.

Security: The authorization code is single-use, so failed exchanges are never
retried. Access tokens are used once to read `/users/@me` and are not stored
or logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict
from urllib.parse import urlencode
import logging

# Small indirection to ease monkeypatching in tests
import requests as http

from identity_access.domain import ProviderIdentity

logger = logging.getLogger("paleto.identity.oauth")

DEFAULT_TIMEOUT_SECONDS = 5.0


def http_post(url: str, data: Dict[str, str], headers: Dict[str, str], timeout: float = DEFAULT_TIMEOUT_SECONDS):
    return http.post(url, data=data, headers=headers, timeout=timeout)


def http_get(url: str, headers: Dict[str, str], timeout: float = DEFAULT_TIMEOUT_SECONDS):
    return http.get(url, headers=headers, timeout=timeout)


class OAuthExchangeError(Exception):
    """Raised when the code → identity exchange cannot complete."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class DiscordOAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str  # e.g., https://api.example.com/auth/discord/callback
    api_base_url: str = "https://discord.com/api"
    scope: str = "identify"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def auth_endpoint(self) -> str:
        return f"{self.api_base_url}/oauth2/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.api_base_url}/oauth2/token"

    @property
    def identity_endpoint(self) -> str:
        return f"{self.api_base_url}/users/@me"


class DiscordOAuthClient:
    def __init__(self, config: DiscordOAuthConfig):
        self.cfg = config

    def build_authorization_url(self) -> str:
        """Return the Discord authorization URL for the configured application."""
        params = {
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "response_type": "code",
            "scope": self.cfg.scope,
        }
        return f"{self.cfg.auth_endpoint}?{urlencode(params)}"

    def exchange_code_for_token(self, *, code: str) -> str:
        """Exchange the authorization code for a bearer access token.

        Raises OAuthExchangeError("token_exchange_failed") when Discord rejects
        the code or is unreachable, "token_missing" when the response lacks
        an access token.
        """
        data = {
            "client_id": self.cfg.client_id,
            "client_secret": self.cfg.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.cfg.redirect_uri,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            resp = http_post(self.cfg.token_endpoint, data=data, headers=headers, timeout=self.cfg.timeout_seconds)
        except http.RequestException as exc:
            logger.warning("oauth.token_exchange error=%s", exc.__class__.__name__)
            raise OAuthExchangeError("token_exchange_failed") from exc
        if resp.status_code != 200:
            logger.warning("oauth.token_exchange status=%s", resp.status_code)
            raise OAuthExchangeError("token_exchange_failed")
        try:
            payload = resp.json() or {}
        except ValueError as exc:
            raise OAuthExchangeError("token_missing") from exc
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token or not isinstance(token, str):
            raise OAuthExchangeError("token_missing")
        return token

    def fetch_identity(self, *, access_token: str) -> ProviderIdentity:
        """Read the authenticated user's public identity from `/users/@me`."""
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            resp = http_get(self.cfg.identity_endpoint, headers=headers, timeout=self.cfg.timeout_seconds)
        except http.RequestException as exc:
            logger.warning("oauth.identity_fetch error=%s", exc.__class__.__name__)
            raise OAuthExchangeError("identity_fetch_failed") from exc
        if resp.status_code != 200:
            logger.warning("oauth.identity_fetch status=%s", resp.status_code)
            raise OAuthExchangeError("identity_fetch_failed")
        try:
            user = resp.json() or {}
        except ValueError as exc:
            raise OAuthExchangeError("identity_invalid") from exc
        if not isinstance(user, dict) or not user.get("id"):
            raise OAuthExchangeError("identity_invalid")
        return ProviderIdentity(
            id=str(user["id"]),
            username=str(user.get("username") or ""),
            discriminator=str(user.get("discriminator") or "0"),
            avatar=user.get("avatar") or None,
        )

    def exchange(self, code: str | None) -> ProviderIdentity:
        """Turn an authorization code into a ProviderIdentity.

        A missing code is a caller error and never reaches Discord.
        """
        if not code:
            raise OAuthExchangeError("missing_code")
        token = self.exchange_code_for_token(code=code)
        identity = self.fetch_identity(access_token=token)
        logger.info("oauth.identity username=%s id=%s", identity.username, identity.id)
        return identity


__all__ = [
    "DiscordOAuthClient",
    "DiscordOAuthConfig",
    "OAuthExchangeError",
    "http_get",
    "http_post",
]
