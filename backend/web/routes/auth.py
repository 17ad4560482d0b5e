"""
Authentication routes (Discord OAuth2).

Why:
    Keep the login entry point and the OAuth callback in a dedicated router.
    The router holds no state: the pipeline, session manager and settings are
    attached to `app.state` by the app factory, so tests inject fakes there.

Notes:
    Every callback outcome, success or failure, is a 302 to the front end
    carrying `auth=success` or `error=<tag>`. Exceptions never reach the user.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from auth_utils import SESSION_COOKIE_NAME, cookie_opts
from identity_access.pipeline import AUTH_FAILED, AuthOutcome

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("paleto.web.auth")

NO_STORE = {"Cache-Control": "private, no-store"}


@auth_router.get("/auth/discord")
async def auth_discord(request: Request):
    """
    Redirect the browser to Discord's authorization endpoint.

    Permissions:
        Public.
    """
    url = request.app.state.oauth.build_authorization_url()
    logger.info("auth.login redirect=discord")
    return RedirectResponse(url=url, status_code=302, headers=dict(NO_STORE))


@auth_router.get("/auth/discord/callback")
async def auth_discord_callback(request: Request, code: str | None = None):
    """
    Complete the login: code → Discord identity → roster → role → session.

    Behavior:
        - Runs the pipeline off the event loop (blocking HTTP calls).
        - On success, sets the session cookie and redirects with `auth=success`.
        - On failure, redirects with `error=<tag>` and sets no cookie.
    Permissions:
        Public.
    """
    state = request.app.state
    previous = request.cookies.get(SESSION_COOKIE_NAME)
    try:
        outcome = await asyncio.to_thread(state.pipeline.run, code, previous_session_id=previous)
    except Exception as exc:  # last-resort guard: the client only ever sees a redirect
        logger.exception("auth.callback unexpected_error=%s", exc.__class__.__name__)
        outcome = AuthOutcome(AUTH_FAILED)

    resp = RedirectResponse(url=outcome.redirect_url(state.settings.frontend_url), status_code=302)
    resp.headers.update(NO_STORE)
    if outcome.ok and outcome.session is not None:
        opts = cookie_opts(state.settings.environment)
        resp.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=outcome.session.session_id,
            httponly=opts["httponly"],
            secure=opts["secure"],
            samesite=opts["samesite"],
            path="/",
            max_age=outcome.session.ttl_seconds,
        )
    return resp
