"""
Pytest configuration and shared fixtures.

Provides a fake fetcher, Canvas API response fixtures, and a client wired
to both for exercising the Canvas tools without a network.
"""

import json
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlsplit

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from canvas_mcp.canvas.client import CanvasClient

BASE_URL = "https://canvas.test"
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# HTTP Fakes
# ============================================================================

def make_response(
    body=None,
    status: int = 200,
    link: Optional[str] = None,
    raw_body: Optional[bytes] = None,
    reason: str = "OK",
) -> requests.Response:
    """Build a real requests.Response with a buffered body."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.headers = CaseInsensitiveDict()
    if link is not None:
        response.headers["Link"] = link
    response._content = raw_body if raw_body is not None else json.dumps(body).encode("utf-8")
    return response


class FakeFetcher:
    """
    Stands in for HttpFetcher.

    Routes map a URL path to a response, an exception, or a list of either
    (consumed in order). Every call is recorded.
    """

    def __init__(self, routes: Optional[dict] = None, timeout_ms: int = 15000):
        self.routes = dict(routes or {})
        self.timeout_ms = timeout_ms
        self.calls: list[tuple[str, Optional[dict]]] = []

    def fetch(self, url: str, params: Optional[dict] = None) -> requests.Response:
        self.calls.append((url, params))
        path = urlsplit(url).path
        if path not in self.routes:
            raise AssertionError(f"Unexpected request to {url}")

        outcome = self.routes[path]
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome



@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def client(fetcher: FakeFetcher) -> CanvasClient:
    """Canvas client on the fake fetcher with a frozen clock."""
    return CanvasClient(
        base_url=BASE_URL,
        access_token="test_token",
        fetcher=fetcher,
        clock=lambda: NOW,
    )


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    """Minimal valid environment, isolated from any local .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "CANVAS_TIMEOUT_MS", "PORT", "HOST", "BASE_PATH",
        "ALLOWED_ORIGINS", "MCP_AUTH_TOKEN", "LOG_LEVEL",
    ):
        # setenv first so monkeypatch restores whatever a loader writes later
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("CANVAS_BASE_URL", "https://canvas.test/")
    monkeypatch.setenv("CANVAS_API_TOKEN", "test_token")


# ============================================================================
# API Response Fixtures
# ============================================================================

@pytest.fixture
def canvas_course_response() -> dict:
    """Sample Canvas API course response."""
    return {
        "id": 12345,
        "name": "Introduction to Computer Science",
        "course_code": "CS101",
        "enrollment_state": "active",
        "workflow_state": "available",
        "enrollments": [{"type": "student", "enrollment_state": "active"}],
        "uuid": "a1b2c3",
    }


@pytest.fixture
def canvas_assignment_response() -> dict:
    """Sample Canvas API assignment response with embedded submission."""
    return {
        "id": 67890,
        "name": "Homework 1: Python Basics",
        "description": "<p>Complete the exercises.</p>",
        "due_at": "2026-03-05T23:59:00Z",
        "unlock_at": "2026-02-20T00:00:00Z",
        "lock_at": None,
        "points_possible": 100.0,
        "submission_types": ["online_upload"],
        "html_url": "https://canvas.test/courses/12345/assignments/67890",
        "has_submitted_submissions": True,
        "published": True,
        "submission": {
            "assignment_id": 67890,
            "workflow_state": "submitted",
            "submitted_at": "2026-02-28T14:30:00Z",
            "missing": False,
            "late": False,
            "score": None,
        },
    }


@pytest.fixture
def canvas_submission_response() -> dict:
    """Sample submissions/self response with include[]=assignment."""
    return {
        "id": 555,
        "assignment_id": 67890,
        "workflow_state": "graded",
        "submitted_at": "2026-02-28T14:30:00Z",
        "graded_at": "2026-03-01T09:00:00Z",
        "score": 95.0,
        "grade": "A",
        "late": False,
        "missing": False,
        "excused": None,
        "assignment": {"id": 67890, "name": "Homework 1: Python Basics"},
    }


@pytest.fixture
def canvas_enrollment_response() -> dict:
    """Sample enrollment with posted grades."""
    return {
        "id": 9001,
        "course_id": 12345,
        "type": "StudentEnrollment",
        "enrollment_state": "active",
        "enrollment_term_id": 7,
        "grades": {
            "current_score": 91.5,
            "current_grade": "A-",
            "final_score": 88.0,
            "final_grade": "B+",
        },
        "computed_current_score": 90.0,
        "computed_current_grade": "A-",
        "course": {"start_at": "2026-01-10T00:00:00Z", "end_at": "2026-05-10T00:00:00Z"},
    }
