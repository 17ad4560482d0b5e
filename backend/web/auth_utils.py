"""
Shared authentication utilities.

Why:
    Avoid duplicating cookie policy logic between the auth router (set on
    callback) and the session endpoints (clear on logout).

Design:
    The helper is framework-agnostic and pure: callers apply the returned
    flags to their response object.
"""

from __future__ import annotations

SESSION_COOKIE_NAME = "paleto_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    The front end lives on another site and calls the API with credentials,
    so the cookie must travel on cross-site requests.

    Returns a mapping with keys:
      - secure: True
      - httponly: True
      - samesite: "none"
    """
    # SameSite=None requires Secure; browsers drop the cookie otherwise.
    return {"secure": True, "httponly": True, "samesite": "none"}
