"Paleto Garage auth gateway"
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import asyncio
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from identity_access.oauth import DiscordOAuthClient
from identity_access.pipeline import AuthPipeline
from identity_access.roster import GoogleSheetsSource, RosterLookup
from identity_access.sessions import SessionManager
from identity_access.stores import InMemorySessionStore, SessionStore, SessionStoreError

from auth_utils import SESSION_COOKIE_NAME, cookie_opts
import config
from routes.auth import auth_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via PALETO_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("PALETO_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
config.ensure_secure_config_on_startup()

logger = logging.getLogger("paleto.web")

NO_STORE = {"Cache-Control": "private, no-store"}


def build_session_store(settings: config.AppSettings) -> SessionStore:
    if settings.sessions_backend == "db":
        from identity_access.stores_db import DBSessionStore

        return DBSessionStore()
    return InMemorySessionStore()


def create_app(
    *,
    settings: Optional[config.AppSettings] = None,
    oauth: Optional[DiscordOAuthClient] = None,
    roster: Optional[RosterLookup] = None,
    sessions: Optional[SessionManager] = None,
) -> FastAPI:
    """Build the FastAPI app with its collaborators.

    Every collaborator is injectable; missing ones are built from the
    environment. Tests pass fakes for the OAuth client, roster and store.
    """
    settings = settings or config.load_app_settings()
    oauth = oauth or DiscordOAuthClient(config.load_discord_config())
    roster = roster or RosterLookup(GoogleSheetsSource(config.load_sheets_config()))
    sessions = sessions or SessionManager(build_session_store(settings))

    app = FastAPI(title="Paleto Garage auth gateway", version="1.0.0")
    app.state.settings = settings
    app.state.oauth = oauth
    app.state.sessions = sessions
    app.state.pipeline = AuthPipeline(oauth=oauth, roster=roster, sessions=sessions)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_origin(settings.frontend_url)],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse({"error": "not_found", "path": request.url.path}, status_code=404)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    app.include_router(auth_router)

    @app.get("/health")
    async def health_check():
        # Minimal health endpoint used by orchestrators; never touches upstreams.
        return JSONResponse(
            {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()},
            headers=dict(NO_STORE),
        )

    @app.get("/api/check-auth")
    async def check_auth(request: Request):
        """Report whether the caller's cookie maps to a live session.

        Never errors: store failures are logged and reported as unauthenticated.
        """
        sid = request.cookies.get(SESSION_COOKIE_NAME)
        rec = None
        try:
            rec = await asyncio.to_thread(request.app.state.sessions.read, sid)
        except SessionStoreError as exc:
            logger.warning("session.check_failed reason=%s", exc.code)
        if rec is None:
            return JSONResponse({"authenticated": False}, headers=dict(NO_STORE))
        logger.debug("session.check authenticated=true role=%s", rec.role)
        return JSONResponse({"authenticated": True, "user": rec.to_public()}, headers=dict(NO_STORE))

    @app.post("/api/logout")
    async def logout(request: Request):
        """Destroy the server-side session and expire the cookie."""
        sid = request.cookies.get(SESSION_COOKIE_NAME)
        try:
            await asyncio.to_thread(request.app.state.sessions.destroy, sid)
        except SessionStoreError as exc:
            logger.error("session.logout_failed reason=%s", exc.code)
            return JSONResponse({"error": "logout_failed"}, status_code=500, headers=dict(NO_STORE))
        resp = JSONResponse({"success": True}, headers=dict(NO_STORE))
        opts = cookie_opts(request.app.state.settings.environment)
        resp.set_cookie(
            key=SESSION_COOKIE_NAME,
            value="",
            httponly=opts["httponly"],
            secure=opts["secure"],
            samesite=opts["samesite"],
            path="/",
            expires=0,
            max_age=0,
        )
        logger.info("session.logout")
        return resp

    return app


app = create_app()


def run() -> None:
    """Entry point: `python main.py` from backend/web."""
    import uvicorn

    level = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")
    settings = app.state.settings
    logger.info("startup port=%s env=%s sessions=%s", settings.port, settings.environment, settings.sessions_backend)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, proxy_headers=True, forwarded_allow_ips="*")


if __name__ == "__main__":
    run()
