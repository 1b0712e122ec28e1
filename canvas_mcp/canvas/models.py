"""
Canvas LMS data models.

These are the normalized shapes returned to tool callers. Each one is built
fresh from a Canvas API response and keeps only the documented fields;
anything else Canvas sends is dropped. Timestamps are kept as the ISO-8601
strings Canvas returns and parsed on demand.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a Canvas ISO-8601 timestamp, returning None for empty values."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class Course:
    """
    Represents an active Canvas course.

    Attributes:
        id: Canvas course ID
        name: Course display name
        course_code: Course code (e.g., "CS101")
        enrollment_state: Enrollment state, "active" when Canvas omits it
    """
    id: int
    name: str
    course_code: str
    enrollment_state: str = "active"

    @classmethod
    def from_api_response(cls, data: dict) -> "Course":
        """Create Course from Canvas API response."""
        return cls(
            id=data["id"],
            name=data.get("name"),
            course_code=data.get("course_code"),
            enrollment_state=data.get("enrollment_state") or "active",
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SubmissionStatus:
    """
    The caller's submission as embedded in an assignment listing.

    Attributes:
        workflow_state: Canvas state (unsubmitted, submitted, graded, ...)
        submitted_at: Timestamp when submitted, None if not submitted
        missing: Canvas missing flag
        late: Canvas late flag
    """
    workflow_state: Optional[str]
    submitted_at: Optional[str] = None
    missing: bool = False
    late: bool = False

    @property
    def has_submitted_at(self) -> bool:
        return self.submitted_at is not None

    @classmethod
    def from_api_response(cls, data: dict) -> "SubmissionStatus":
        """Create SubmissionStatus from an embedded Canvas submission."""
        return cls(
            workflow_state=data.get("workflow_state"),
            submitted_at=data.get("submitted_at") or None,
            missing=bool(data.get("missing") or False),
            late=bool(data.get("late") or False),
        )


@dataclass(frozen=True)
class Assignment:
    """
    Represents a Canvas assignment with the caller's submission status.

    Attributes:
        id: Canvas assignment ID
        name: Assignment name
        due_at: Due timestamp, None if no due date
        unlock_at: Timestamp the assignment becomes available
        lock_at: Timestamp the assignment locks
        points_possible: Maximum points, 0 when Canvas omits it
        submission_types: Accepted submission types
        submission_status: Embedded submission, None when Canvas sent none
    """
    id: int
    name: str
    due_at: Optional[str] = None
    unlock_at: Optional[str] = None
    lock_at: Optional[str] = None
    points_possible: float = 0
    submission_types: list[str] = field(default_factory=list)
    submission_status: Optional[SubmissionStatus] = None

    @property
    def due_datetime(self) -> Optional[datetime]:
        return parse_timestamp(self.due_at)

    @property
    def unlock_datetime(self) -> Optional[datetime]:
        return parse_timestamp(self.unlock_at)

    @classmethod
    def from_api_response(cls, data: dict) -> "Assignment":
        """Create Assignment from Canvas API response (with include[]=submission)."""
        submission = data.get("submission")
        return cls(
            id=data["id"],
            name=data.get("name"),
            due_at=data.get("due_at"),
            unlock_at=data.get("unlock_at"),
            lock_at=data.get("lock_at"),
            points_possible=data.get("points_possible") or 0,
            submission_types=list(data.get("submission_types") or []),
            submission_status=(
                SubmissionStatus.from_api_response(submission)
                if isinstance(submission, dict) else None
            ),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SubmissionDetail:
    """Detailed status of the caller's submission for one assignment."""
    assignment_id: Optional[int]
    name: Optional[str]
    workflow_state: Optional[str]
    submitted_at: Optional[str] = None
    graded_at: Optional[str] = None
    score: Optional[float] = None
    late: bool = False
    missing: bool = False
    excused: bool = False

    @classmethod
    def from_api_response(cls, data: dict) -> "SubmissionDetail":
        """Create SubmissionDetail from a submissions/self response (with include[]=assignment)."""
        assignment = data.get("assignment") or {}
        return cls(
            assignment_id=data.get("assignment_id"),
            name=assignment.get("name") or None,
            workflow_state=data.get("workflow_state"),
            submitted_at=data.get("submitted_at") or None,
            graded_at=data.get("graded_at") or None,
            score=data.get("score"),
            late=bool(data.get("late") or False),
            missing=bool(data.get("missing") or False),
            excused=bool(data.get("excused") or False),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class GradeUnavailableReason(Enum):
    """Why a grade summary could not be produced."""
    NO_GRADES_YET = "no_grades_yet"
    HIDDEN_OR_UNAVAILABLE = "hidden_or_unavailable"


@dataclass(frozen=True)
class EnrollmentMetadata:
    """Enrollment context reported alongside a grade summary."""
    enrollment_state: Optional[str]
    term_id: Optional[int] = None
    course_start_at: Optional[str] = None
    course_end_at: Optional[str] = None

    @classmethod
    def from_enrollment(cls, enrollment: dict) -> "EnrollmentMetadata":
        course = enrollment.get("course") or {}
        return cls(
            enrollment_state=enrollment.get("enrollment_state"),
            term_id=enrollment.get("enrollment_term_id") or None,
            course_start_at=course.get("start_at") or None,
            course_end_at=course.get("end_at") or None,
        )


@dataclass(frozen=True)
class GradeUnavailable:
    """
    Grade summary variant for when no grades can be reported.

    ``metadata`` is only known for ``NO_GRADES_YET``; hidden or inaccessible
    courses carry nothing beyond the reason.
    """
    course_id: Any
    reason: GradeUnavailableReason
    metadata: Optional[EnrollmentMetadata] = None


@dataclass(frozen=True)
class GradeAvailable:
    """Grade summary variant carrying current and final grades."""
    course_id: Any
    metadata: EnrollmentMetadata
    current_score: Optional[float] = None
    current_grade: Optional[str] = None
    final_score: Optional[float] = None
    final_grade: Optional[str] = None
    # Canvas does not report a grade timestamp on the enrollments endpoint
    last_updated: None = None


GradeSummary = Union[GradeUnavailable, GradeAvailable]


def serialize_grade_summary(summary: GradeSummary) -> dict:
    """Render either grade summary variant with an ``available`` discriminator."""
    if isinstance(summary, GradeAvailable):
        return {
            "course_id": summary.course_id,
            "available": True,
            "current_score": summary.current_score,
            "current_grade": summary.current_grade,
            "final_score": summary.final_score,
            "final_grade": summary.final_grade,
            **asdict(summary.metadata),
            "last_updated": summary.last_updated,
        }
    if isinstance(summary, GradeUnavailable):
        result = {
            "course_id": summary.course_id,
            "available": False,
            "reason": summary.reason.value,
        }
        if summary.metadata is not None:
            result.update(asdict(summary.metadata))
        return result
    raise TypeError(f"Unknown grade summary type: {type(summary).__name__}")


class UpcomingStatus(Enum):
    """Submission status reported for upcoming assignments."""
    SUBMITTED = "submitted"
    UNSUBMITTED = "unsubmitted"
    MISSING = "missing"


@dataclass(frozen=True)
class UpcomingItem:
    """An assignment due soon (or overdue) in one of the caller's courses."""
    course_id: int
    course_name: str
    assignment_id: int
    name: str
    due_at: str
    status: UpcomingStatus
    points_possible: float

    @property
    def due_datetime(self) -> datetime:
        return parse_timestamp(self.due_at)

    def to_dict(self) -> dict:
        result = asdict(self)
        result["status"] = self.status.value
        return result
