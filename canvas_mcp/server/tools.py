"""
MCP tool definitions for the Canvas API.

All tools are read-only. Each one validates its arguments, calls one
CanvasClient operation, and returns the normalized result as pretty-printed
JSON text content.
"""

import json
import math
from typing import Any, Optional

from ..canvas.client import CanvasClient
from ..canvas.filters import StatusFilter
from ..canvas.models import serialize_grade_summary

_ID_SCHEMA = {"type": ["string", "number"]}

TOOLS = [
    {
        "name": "list_courses",
        "description": (
            "List all active Canvas courses for the authenticated user. "
            "Returns course ID, name, course code, and enrollment state."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "list_assignments",
        "description": (
            "List assignments for a specific Canvas course with due dates, points possible, "
            "submission types, and the caller's submission status. Supports filtering by "
            "future availability and submission status."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "course_id": {**_ID_SCHEMA, "description": "The Canvas course ID"},
                "include_future": {
                    "type": "boolean",
                    "description": (
                        "Include assignments that are not unlocked yet (default: true). "
                        "Best-effort, based on unlock_at; assignments without unlock_at are always included."
                    ),
                    "default": True,
                },
                "status_filter": {
                    "type": "string",
                    "enum": [f.value for f in StatusFilter],
                    "description": (
                        '"missing": flagged missing, or past due with nothing submitted. '
                        '"unsubmitted": nothing submitted, regardless of due date. '
                        '"submitted": submitted_at set, or workflow_state submitted/graded. '
                        '"all": no filtering (default).'
                    ),
                    "default": "all",
                },
            },
            "required": ["course_id"],
        },
    },
    {
        "name": "get_submission_status",
        "description": (
            "Get the caller's submission for one assignment: assignment name, workflow state, "
            "submission and grading timestamps, score, and late/missing/excused flags."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "course_id": {**_ID_SCHEMA, "description": "The Canvas course ID"},
                "assignment_id": {**_ID_SCHEMA, "description": "The Canvas assignment ID"},
            },
            "required": ["course_id", "assignment_id"],
        },
    },
    {
        "name": "get_course_grades",
        "description": (
            "Get the caller's grade summary for a course. Never fails: returns available:false "
            'with reason "no_grades_yet" or "hidden_or_unavailable" when there is nothing to show, '
            "otherwise current/final scores and grades with enrollment metadata."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "course_id": {**_ID_SCHEMA, "description": "The Canvas course ID"},
            },
            "required": ["course_id"],
        },
    },
    {
        "name": "list_upcoming",
        "description": (
            "List assignments due within the next N days (default 14) across active courses, "
            "optionally including overdue ones. Sorted by due date, overdue first."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "days": {
                    "type": "number",
                    "description": "Number of days to look ahead (default: 14)",
                    "default": 14,
                },
                "include_overdue": {
                    "type": "boolean",
                    "description": "Include overdue assignments (default: true)",
                    "default": True,
                },
                "course_ids": {
                    "type": "array",
                    "items": _ID_SCHEMA,
                    "description": "Only check these course IDs. Defaults to all active courses.",
                },
            },
            "required": [],
        },
    },
]

class ToolError(Exception):
    """Raised for tool-level failures that are not Canvas errors."""

    code = "tool_error"


class InvalidArgumentsError(ToolError):
    """Raised when a tool argument is missing or has the wrong type."""

    code = "invalid_arguments"


class UnknownToolError(ToolError):
    """Raised when the requested tool does not exist."""

    code = "invalid_tool"


def _require_id(arguments: dict, name: str):
    value = arguments.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, str)) or value in ("", 0):
        raise InvalidArgumentsError(f"{name} is required")
    return value


def _optional_bool(arguments: dict, name: str, default: bool) -> bool:
    value = arguments.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidArgumentsError(f"{name} must be a boolean")
    return value


def _status_filter(arguments: dict) -> StatusFilter:
    value = arguments.get("status_filter") or StatusFilter.ALL.value
    try:
        return StatusFilter(value)
    except ValueError:
        allowed = ", ".join(f.value for f in StatusFilter)
        raise InvalidArgumentsError(f"status_filter must be one of: {allowed}") from None


def _days(arguments: dict) -> float:
    value = arguments.get("days")
    if value is None:
        return 14
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgumentsError("days must be a number")
    if value < 0:
        raise InvalidArgumentsError("days must not be negative")
    return value


def _course_ids(arguments: dict) -> Optional[list]:
    value = arguments.get("course_ids")
    if value is None:
        return None
    if not isinstance(value, list) or any(
        isinstance(item, bool) or not isinstance(item, (int, str)) for item in value
    ):
        raise InvalidArgumentsError("course_ids must be a list of course IDs")
    return value


def _text_content(result: Any) -> dict:
    return {
        "content": [{
            "type": "text",
            "text": json.dumps(result, indent=2),
        }],
    }


def handle_tool_call(name: Optional[str], arguments: Optional[dict], client: CanvasClient) -> dict:
    """
    Run one tool against the Canvas client.

    Args:
        name: Tool name from the catalog
        arguments: Tool arguments (may be None)
        client: Configured Canvas client

    Returns:
        MCP tool result with a single JSON text content block

    Raises:
        UnknownToolError: If the tool name is not in the catalog
        InvalidArgumentsError: If arguments are missing or malformed
        CanvasError: If Canvas fails (timeout, non-2xx, bad body)
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArgumentsError("arguments must be an object")

    if name == "list_courses":
        courses = client.list_courses()
        return _text_content([c.to_dict() for c in courses])

    if name == "list_assignments":
        course_id = _require_id(arguments, "course_id")
        assignments = client.list_assignments(
            course_id,
            include_future=_optional_bool(arguments, "include_future", True),
            status_filter=_status_filter(arguments),
        )
        return _text_content([a.to_dict() for a in assignments])

    if name == "get_submission_status":
        course_id = _require_id(arguments, "course_id")
        assignment_id = _require_id(arguments, "assignment_id")
        submission = client.get_submission_status(course_id, assignment_id)
        return _text_content(submission.to_dict())

    if name == "get_course_grades":
        course_id = _require_id(arguments, "course_id")
        return _text_content(serialize_grade_summary(client.get_course_grades(course_id)))

    if name == "list_upcoming":
        upcoming = client.list_upcoming(
            days=_days(arguments),
            include_overdue=_optional_bool(arguments, "include_overdue", True),
            course_ids=_course_ids(arguments),
        )
        return _text_content([item.to_dict() for item in upcoming])

    raise UnknownToolError(f"Unknown tool: {name}")
