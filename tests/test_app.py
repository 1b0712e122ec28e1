"""
Integration tests for the HTTP application.

The session-negotiation stream never ends on its own, so it is covered in
test_session.py; here every MCP request names a session id.
"""

import json

import pytest
from fastapi.testclient import TestClient

from canvas_mcp.canvas.errors import CanvasTimeoutError
from canvas_mcp.server.app import create_app
from config.settings import ServerConfig

from conftest import make_response


@pytest.fixture
def http(client) -> TestClient:
    app = create_app(client, ServerConfig(port=8080))
    return TestClient(app, base_url="http://localhost:8080")


def _rpc(method: str, params=None, request_id=1) -> dict:
    body = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    return body


def test_healthz(http):
    response = http.get("/healthz")

    assert response.status_code == 200
    assert response.text == "OK"
    assert response.headers["content-type"].startswith("text/plain")


def test_tools_list(http):
    response = http.post("/mcp?sessionId=s1", json=_rpc("tools/list"))

    assert response.status_code == 200
    body = response.json()
    assert body["jsonrpc"] == "2.0"
    assert body["id"] == 1
    assert {t["name"] for t in body["result"]["tools"]} == {
        "list_courses", "list_assignments", "get_submission_status",
        "get_course_grades", "list_upcoming",
    }


def test_tools_call_against_canvas(http, fetcher, canvas_course_response):
    fetcher.routes["/api/v1/courses"] = make_response([canvas_course_response])

    response = http.post(
        "/mcp?sessionId=s1",
        json=_rpc("tools/call", {"name": "list_courses", "arguments": {}}, request_id="r-1"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "r-1"
    assert json.loads(body["result"]["content"][0]["text"]) == [{
        "id": 12345,
        "name": "Introduction to Computer Science",
        "course_code": "CS101",
        "enrollment_state": "active",
    }]


def test_tool_failure_is_a_result(http, fetcher):
    fetcher.routes["/api/v1/courses"] = CanvasTimeoutError(15000)

    response = http.post("/mcp?sessionId=s1", json=_rpc("tools/call", {"name": "list_courses"}))

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error [timeout]: Canvas request timed out after 15000ms"


def test_grades_never_fail(http, fetcher):
    fetcher.routes["/api/v1/courses/12345/enrollments"] = make_response({}, status=403, reason="Forbidden")

    response = http.post(
        "/mcp?sessionId=s1",
        json=_rpc("tools/call", {"name": "get_course_grades", "arguments": {"course_id": 12345}}),
    )

    result = response.json()["result"]
    assert "isError" not in result
    assert json.loads(result["content"][0]["text"]) == {
        "course_id": 12345,
        "available": False,
        "reason": "hidden_or_unavailable",
    }


def test_unparseable_body(http):
    response = http.post(
        "/mcp?sessionId=s1",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32600


def test_invalid_envelope(http):
    response = http.post("/mcp?sessionId=s1", json={"id": 5, "method": "tools/list"})

    assert response.status_code == 400
    assert response.json() == {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"code": -32600, "message": "Invalid JSON-RPC 2.0 request"},
    }


def test_unknown_method(http):
    response = http.post("/mcp?sessionId=s1", json=_rpc("prompts/list"))

    assert response.status_code == 200
    assert response.json()["error"] == {"code": -32601, "message": "Method not found"}


def test_only_post_on_mcp_path(http):
    assert http.get("/mcp").status_code == 405
