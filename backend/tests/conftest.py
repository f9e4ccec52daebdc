"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

import pytest

# Add backend directory to path for imports (main.py lives there)
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Test defaults: no log files, in-memory database, no live site access
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("QUOTA_BACKEND", "memory")
os.environ.setdefault("RUN_LIVE_TESTS", "0")

from testpilot.core.config import get_settings  # noqa: E402
from testpilot.core.environments import get_current_environment  # noqa: E402
from testpilot.core.service_registry import reset_service_registry  # noqa: E402


def _clear_caches():
    get_settings.cache_clear()
    get_current_environment.cache_clear()
    reset_service_registry()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Every test starts from an unset ENVIRONMENT and fresh caches"""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("ENVIRONMENT_FALLBACK", raising=False)
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def use_environment(monkeypatch):
    """Set ENVIRONMENT (None unsets it) and drop everything resolved from the old value"""
    def _use(value):
        if value is None:
            monkeypatch.delenv("ENVIRONMENT", raising=False)
        else:
            monkeypatch.setenv("ENVIRONMENT", value)
        _clear_caches()
    return _use


@pytest.fixture
def db_session_factory():
    """Session factory bound to a fresh in-memory SQLite database"""
    from testpilot.core.database import Base, init_engine, get_session_local
    import testpilot.models  # noqa: F401

    engine = init_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield get_session_local()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client; services are resolved per test from the current ENVIRONMENT"""
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Test-run safety: skip `live` marked tests by default unless explicit flag
# ---------------------------------------------------------------------------
def pytest_collection_modifyitems(config, items):
    """Skip live-site tests unless RUN_LIVE_TESTS=1 is set in env."""
    if os.environ.get("RUN_LIVE_TESTS", "0") == "1":
        return
    skip_marker = pytest.mark.skip(reason="Live site tests disabled. Set RUN_LIVE_TESTS=1 to enable.")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_marker)
