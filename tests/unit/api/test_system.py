"""
Tests for the system router (/ping and /system-info).
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from httpobs.api.routes.system import router as system_router
from httpobs.core.config import Settings, get_settings


@pytest.fixture
def client() -> TestClient:
    settings = Settings(build_commit_id="abc1234", build_time="2026-10-01T12:00:00Z")
    app = FastAPI()
    app.dependency_overrides[get_settings] = lambda: settings
    app.include_router(system_router)
    return TestClient(app)


class TestPing:
    def test_ping_returns_build_info(self, client: TestClient):
        response = client.get("/ping")

        assert response.status_code == 200
        data = response.json()
        assert data["commit_hash"] == "abc1234"
        assert data["build_time"] == "2026-10-01T12:00:00Z"
        assert "startup_time" in data

    def test_uptime_increases(self, client: TestClient):
        first = client.get("/ping").json()["uptime_ns"]
        second = client.get("/ping").json()["uptime_ns"]

        assert first > 0
        assert second >= first

    def test_uptime_string_is_duration(self, client: TestClient):
        uptime_string = client.get("/ping").json()["uptime_string"]

        # timedelta formatting: H:MM:SS[.ffffff]
        assert uptime_string.count(":") == 2


class TestSystemInfo:
    def test_system_info_schema(self, client: TestClient):
        response = client.get("/system-info")

        assert response.status_code == 200
        data = response.json()
        assert data["max_rss_kb"] > 0
        assert data["gc_objects"] > 0
        assert len(data["gc_counts"]) == 3
        assert len(data["gc_thresholds"]) == 3
        assert len(data["gc_generations"]) == 3
        assert set(data["gc_generations"][0]) == {"collections", "collected", "uncollectable"}
        assert data["thread_count"] >= 1
        assert data["python_version"].count(".") == 2
