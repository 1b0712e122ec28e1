"""
Filtering and selection rules applied to normalized Canvas data.

Everything here is a pure function of its inputs; "now" is always passed
in so the rules can be checked against fixed timestamps.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from .models import Assignment, UpcomingStatus, parse_timestamp


class StatusFilter(Enum):
    """
    Submission status filters for assignment listings.

    The predicates overlap: an overdue assignment with no submission
    matches both MISSING and UNSUBMITTED.
    """
    ALL = "all"
    MISSING = "missing"
    UNSUBMITTED = "unsubmitted"
    SUBMITTED = "submitted"


def is_unlocked(assignment: Assignment, now: datetime) -> bool:
    """
    Best-effort "not in the future" check based on ``unlock_at``.

    Assignments without ``unlock_at`` always count as unlocked.
    """
    unlock_at = assignment.unlock_datetime
    if unlock_at is None:
        return True
    return unlock_at <= now


def matches_status(assignment: Assignment, status_filter: StatusFilter, now: datetime) -> bool:
    """
    Check one assignment against a status filter.

    Rules:
    - MISSING: submission.missing is true, OR due date passed with no submitted_at
    - UNSUBMITTED: no submission, OR no submitted_at (due date irrelevant)
    - SUBMITTED: submitted_at exists, OR workflow_state is submitted/graded
    - ALL: everything
    """
    submission = assignment.submission_status
    has_submitted_at = submission is not None and submission.has_submitted_at

    if status_filter is StatusFilter.MISSING:
        if submission is not None and submission.missing:
            return True
        due_at = assignment.due_datetime
        is_past_due = due_at is not None and due_at < now
        return is_past_due and not has_submitted_at

    if status_filter is StatusFilter.UNSUBMITTED:
        return submission is None or not has_submitted_at

    if status_filter is StatusFilter.SUBMITTED:
        if has_submitted_at:
            return True
        return submission is not None and submission.workflow_state in ("submitted", "graded")

    return True


def filter_assignments(
    assignments: Iterable[Assignment],
    now: datetime,
    include_future: bool = True,
    status_filter: StatusFilter = StatusFilter.ALL,
) -> list[Assignment]:
    """Apply the future filter and then the status filter, keeping order."""
    filtered = list(assignments)

    if not include_future:
        filtered = [a for a in filtered if is_unlocked(a, now)]

    if status_filter is not StatusFilter.ALL:
        filtered = [a for a in filtered if matches_status(a, status_filter, now)]

    return filtered


# ---------------------------------------------------------------------------
# Grades
# ---------------------------------------------------------------------------

_GRADE_FIELDS = ("current_score", "current_grade", "final_score", "final_grade")
_COMPUTED_CURRENT_FIELDS = ("computed_current_score", "computed_current_grade")


def _enrollment_sort_key(enrollment: dict) -> tuple:
    end_at = parse_timestamp((enrollment.get("course") or {}).get("end_at"))
    enrollment_id = enrollment.get("id") or 0
    if end_at is None:
        # no end date: treat as ongoing, ahead of any dated enrollment
        return (0, 0.0, -enrollment_id)
    return (1, -end_at.timestamp(), -enrollment_id)


def select_enrollment(enrollments: list[dict]) -> Optional[dict]:
    """
    Pick the single most relevant enrollment.

    Active enrollments win over the rest when there are any. Among the
    candidates, undated (ongoing) courses come first, then later course end
    dates, then higher enrollment IDs.
    """
    if not enrollments:
        return None

    active = [e for e in enrollments if e.get("enrollment_state") == "active"]
    candidates = active or enrollments
    return sorted(candidates, key=_enrollment_sort_key)[0]


def has_grade_data(enrollment: dict) -> bool:
    """
    Check whether an enrollment carries any grade at all.

    Zero is a grade: only None counts as absent.
    """
    grades = enrollment.get("grades") or {}
    if any(grades.get(name) is not None for name in _GRADE_FIELDS):
        return True
    return any(enrollment.get(name) is not None for name in _COMPUTED_CURRENT_FIELDS)


def first_present(*values):
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Upcoming
# ---------------------------------------------------------------------------

def in_upcoming_window(
    due_at: datetime,
    now: datetime,
    days: float,
    include_overdue: bool = True,
) -> bool:
    """
    Check a due date against the upcoming window.

    Included when overdue (and overdue items are wanted) or when the due
    date falls within ``[now, now + days]``, both ends inclusive. A window
    reaching past the last representable date has no upper bound.
    """
    try:
        horizon = now + timedelta(days=days)
    except OverflowError:
        horizon = None

    is_overdue = due_at < now
    is_upcoming = now <= due_at and (horizon is None or due_at <= horizon)
    return (include_overdue and is_overdue) or is_upcoming


def upcoming_status(assignment: Assignment) -> UpcomingStatus:
    """Derive the three-way status shown in upcoming listings."""
    submission = assignment.submission_status
    if submission is not None:
        if submission.missing:
            return UpcomingStatus.MISSING
        if submission.submitted_at:
            return UpcomingStatus.SUBMITTED
    return UpcomingStatus.UNSUBMITTED
