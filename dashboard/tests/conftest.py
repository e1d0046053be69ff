"""
Shared test fixtures for the dashboard tests.

Cleans every DashboardSettings environment variable before each test and
isolates the working directory from stray .env files. API tests get a
TestClient whose lifespan runs against a throwaway SQLite database.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

_ALL_DASHBOARD_ENV_VARS = (
    "COMPUTE_BASE_URL",
    "COMPUTE_API_KEY",
    "COMPUTE_TIMEOUT_S",
    "SERIES_FUNCTION",
    "LATEST_FUNCTION",
    "REDIS_URL",
    "DATABASE_URL",
    "API_TOKENS",
    "CACHE_TTL_S",
    "POLL_INTERVAL_S",
    "PROGRESS_STEP_INTERVAL_S",
    "IN_FLIGHT_TIMEOUT_S",
    "PROGRESSIVE_RENDER",
    "PROGRESSIVE_THRESHOLD",
    "CONTROLLER_DEVICE_ID",
    "PRELOAD_DEVICE_IDS",
    "LOG_LEVEL",
)

TEST_TOKEN = "test-token-abc"
TEST_USER = "user-001"
OTHER_TOKEN = "test-token-xyz"
OTHER_USER = "user-002"


@pytest.fixture(autouse=True)
def _clean_dashboard_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all dashboard env vars and run each test inside tmp_path."""
    for var in _ALL_DASHBOARD_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables."""
    env = {
        "COMPUTE_BASE_URL": "https://compute.example.com",
        "API_TOKENS": f"{TEST_TOKEN}:{TEST_USER}",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def app_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> dict[str, str]:
    """Set the environment used by the API TestClient."""
    env = {
        "COMPUTE_BASE_URL": "https://compute.example.com",
        "API_TOKENS": f"{TEST_TOKEN}:{TEST_USER},{OTHER_TOKEN}:{OTHER_USER}",
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'dashboard-test.db'}",
        "REDIS_URL": "redis://localhost:6379/0",
        "PROGRESS_STEP_INTERVAL_S": "0",
        "LOG_LEVEL": "DEBUG",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def client(app_env: dict[str, str]) -> Generator[TestClient, None, None]:
    """Create a TestClient with the application lifespan running."""
    from dashboard.src.api.main import app

    with TestClient(app) as test_client:
        yield test_client
