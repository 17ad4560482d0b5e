"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make `backend/` and
`backend/web/` importable the way the container runs them, and provide fakes
for the two upstreams (Discord, Google Sheets) so no test touches the network.
"""
import os
import sys
from pathlib import Path
import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
WEB_DIR = BACKEND_DIR / "web"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(WEB_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Keep import-time config deterministic (main builds the default app on import).
for _var in ("PALETO_ENV", "SESSIONS_BACKEND", "FRONTEND_URL"):
    os.environ.pop(_var, None)

from identity_access.roster import RosterLookup  # noqa: E402
from utils.upstream_fakes import FRONTEND_URL, FakeDiscord, FakeSheet  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch):
    """Clear env-driven toggles so each test starts from dev defaults."""
    for var in (
        "PALETO_ENV",
        "SESSIONS_BACKEND",
        "DATABASE_URL",
        "FRONTEND_URL",
        "DISCORD_CLIENT_SECRET",
        "DISCORD_REDIRECT_URI",
        "DISCORD_HTTP_TIMEOUT",
        "GOOGLE_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def fake_discord() -> FakeDiscord:
    return FakeDiscord()


@pytest.fixture
def fake_sheet() -> FakeSheet:
    return FakeSheet()


@pytest.fixture
def app_factory(fake_discord: FakeDiscord, fake_sheet: FakeSheet):
    """Return a builder for the FastAPI app wired to fakes and a fresh store."""
    import main  # type: ignore
    import config  # type: ignore
    from identity_access.sessions import SessionManager
    from identity_access.stores import InMemorySessionStore

    def _build(*, store=None, oauth=None, source=None):
        settings = config.AppSettings(environment="dev", frontend_url=FRONTEND_URL, sessions_backend="memory")
        sessions = SessionManager(store if store is not None else InMemorySessionStore())
        return main.create_app(
            settings=settings,
            oauth=oauth or fake_discord,
            roster=RosterLookup(source or fake_sheet),
            sessions=sessions,
        )

    return _build
