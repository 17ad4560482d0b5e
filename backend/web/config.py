"""
Configuration loading and startup security checks.

Why: Keep all environment parsing in one place so the app factory, the
startup guard and tests agree on names and defaults. A single guard prevents
accidental insecure deployments without burdening local development.

Permissions: The caller needs no special privileges. The functions read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlsplit

from identity_access.oauth import DEFAULT_TIMEOUT_SECONDS, DiscordOAuthConfig
from identity_access.roster import SheetsConfig

_PLACEHOLDERS = ("CHANGE_ME", "DUMMY", "SECRET-A-CHANGER")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw!r}")
    if value <= 0 or value > 60:
        raise ValueError(f"{name} out of range (0..60], got: {value}")
    return value


@dataclass(frozen=True)
class AppSettings:
    environment: str
    frontend_url: str
    sessions_backend: str  # "memory" | "db"
    port: int = 3000


def frontend_origin(frontend_url: str) -> str:
    """Return scheme://host[:port] of the front-end URL (the CORS origin)."""
    parts = urlsplit(frontend_url)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}"
    return frontend_url.rstrip("/")


def current_environment() -> str:
    return (os.getenv("PALETO_ENV", "dev") or "dev").strip().lower()


def load_app_settings() -> AppSettings:
    backend = (os.getenv("SESSIONS_BACKEND") or "memory").strip().lower()
    if backend not in {"memory", "db"}:
        raise ValueError("SESSIONS_BACKEND must be 'memory' or 'db'")
    return AppSettings(
        environment=current_environment(),
        frontend_url=(os.getenv("FRONTEND_URL") or "http://localhost:5173").strip(),
        sessions_backend=backend,
        port=int(os.getenv("PORT", "3000")),
    )


def load_discord_config() -> DiscordOAuthConfig:
    return DiscordOAuthConfig(
        client_id=os.getenv("DISCORD_CLIENT_ID", ""),
        client_secret=os.getenv("DISCORD_CLIENT_SECRET", ""),
        redirect_uri=os.getenv("DISCORD_REDIRECT_URI", "http://localhost:3000/auth/discord/callback"),
        timeout_seconds=_float_env("DISCORD_HTTP_TIMEOUT", DEFAULT_TIMEOUT_SECONDS),
    )


def load_sheets_config() -> SheetsConfig:
    return SheetsConfig(
        sheet_id=os.getenv("GOOGLE_SHEET_ID", ""),
        api_key=os.getenv("GOOGLE_API_KEY", ""),
        sheet_name=os.getenv("SHEET_NAME") or "Info Employé",
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - Discord client secret and Google API key are set and not placeholders.
    - FRONTEND_URL and DISCORD_REDIRECT_URI use https (the session cookie is
      Secure and SameSite=None, which browsers only honor over TLS).
    - The DB session DSN does not explicitly disable TLS.
    """
    if not _is_prod_like(current_environment()):
        return  # dev/test remain permissive

    for var in ("DISCORD_CLIENT_SECRET", "GOOGLE_API_KEY"):
        value = (os.getenv(var, "") or "").strip()
        if not value or value.upper().startswith(_PLACEHOLDERS):
            raise SystemExit(f"Refusing to start: {var} is unset or a placeholder in production.")

    for var in ("FRONTEND_URL", "DISCORD_REDIRECT_URI"):
        value = (os.getenv(var, "") or "").strip().lower()
        if not value.startswith("https://"):
            raise SystemExit(f"Refusing to start: {var} must use https in production.")

    if (os.getenv("SESSIONS_BACKEND") or "memory").strip().lower() == "db":
        dsn = os.getenv("DATABASE_URL", "")
        if not dsn:
            raise SystemExit("Refusing to start: SESSIONS_BACKEND=db requires DATABASE_URL.")
        if "sslmode=disable" in dsn:
            raise SystemExit(
                "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require."
            )
