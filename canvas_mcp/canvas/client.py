"""
Canvas LMS API client.

Read-only access to courses, assignments, submissions, and grades for the
token's owner. Every call fetches fresh data; nothing is cached.
All tokens are passed via configuration and never logged.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

import requests

from .errors import CanvasAPIError, CanvasError, InvalidResponseError
from .fetcher import DEFAULT_TIMEOUT_MS, HttpFetcher
from .filters import (
    StatusFilter,
    filter_assignments,
    first_present,
    has_grade_data,
    in_upcoming_window,
    select_enrollment,
    upcoming_status,
)
from .models import (
    Assignment,
    Course,
    EnrollmentMetadata,
    GradeAvailable,
    GradeSummary,
    GradeUnavailable,
    GradeUnavailableReason,
    SubmissionDetail,
    UpcomingItem,
)
from .pagination import LinkPaginator

logger = logging.getLogger(__name__)

CourseId = Union[int, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_id(value: CourseId) -> CourseId:
    """Canvas IDs are integers; accept their string form too."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


class CanvasClient:
    """
    Client for the Canvas LMS API.

    Handles:
    - Authentication via Personal Access Token
    - Link header pagination
    - Per-request wall-clock timeout
    - Normalization and filtering of Canvas responses

    Usage:
        client = CanvasClient(base_url="https://canvas.example.com", access_token="...")

        for course in client.list_courses():
            for assignment in client.list_assignments(course.id, status_filter="missing"):
                print(assignment.name)
    """

    # API endpoints
    COURSES_ENDPOINT = "/api/v1/courses"
    ASSIGNMENTS_ENDPOINT = "/api/v1/courses/{course_id}/assignments"
    SUBMISSION_ENDPOINT = "/api/v1/courses/{course_id}/assignments/{assignment_id}/submissions/self"
    ENROLLMENTS_ENDPOINT = "/api/v1/courses/{course_id}/enrollments"

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        fetcher: Optional[HttpFetcher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize Canvas client.

        Args:
            base_url: Canvas instance URL (e.g., https://canvas.instructure.com)
            access_token: Personal Access Token (never logged)
            timeout_ms: Wall-clock budget per request in milliseconds
            fetcher: Optional pre-built fetcher (used by tests)
            clock: Returns the current time as an aware datetime
        """
        self.base_url = base_url.rstrip("/")
        self.fetcher = fetcher or HttpFetcher(access_token, timeout_ms=timeout_ms)
        self.paginator = LinkPaginator(self.fetcher)
        self.clock = clock

        logger.info(f"Canvas client initialized for {self.base_url}")

    def __repr__(self) -> str:
        """Never expose token in repr."""
        return f"CanvasClient(base_url='{self.base_url}')"

    @property
    def timeout_ms(self) -> int:
        return self.fetcher.timeout_ms

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _get_json(self, endpoint: str, params: Optional[dict] = None):
        """
        Make a single (unpaginated) request and parse its JSON body.

        Raises:
            CanvasAPIError: If Canvas answers with a non-2xx status
            InvalidResponseError: If the body is not JSON
        """
        response = self.fetcher.fetch(self._url(endpoint), params=params)

        if not response.ok:
            raise CanvasAPIError(
                f"Canvas API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError() from e

    @staticmethod
    def _normalize(items: Iterable[dict], factory, kind: str) -> list:
        normalized = []
        for item in items:
            try:
                normalized.append(factory(item))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed {kind} data: {e!r}")
        return normalized

    def list_courses(self) -> list[Course]:
        """
        Fetch all active courses for the current user.

        Returns:
            Courses reduced to id, name, course_code and enrollment_state
        """
        logger.debug("Fetching active courses...")

        raw_courses = self.paginator.fetch_all_pages(
            self._url(self.COURSES_ENDPOINT),
            params={
                "enrollment_state": "active",
                "include[]": "enrollment_state",
            },
        )
        courses = self._normalize(raw_courses, Course.from_api_response, "course")

        logger.debug(f"Found {len(courses)} active courses")
        return courses

    def list_assignments(
        self,
        course_id: CourseId,
        include_future: bool = True,
        status_filter: Union[StatusFilter, str] = StatusFilter.ALL,
    ) -> list[Assignment]:
        """
        Fetch assignments for a course with the caller's submission status.

        Args:
            course_id: Canvas course ID
            include_future: If False, drop assignments whose unlock_at is
                still ahead (assignments without unlock_at are kept)
            status_filter: all, missing, unsubmitted or submitted

        Returns:
            Filtered assignments in Canvas order

        Raises:
            ValueError: If status_filter is not a known filter
        """
        status_filter = StatusFilter(status_filter)
        logger.debug(f"Fetching assignments for course {course_id}")

        endpoint = self.ASSIGNMENTS_ENDPOINT.format(course_id=course_id)
        raw_assignments = self.paginator.fetch_all_pages(
            self._url(endpoint),
            params={"include[]": "submission"},
        )
        assignments = self._normalize(raw_assignments, Assignment.from_api_response, "assignment")

        return filter_assignments(
            assignments,
            now=self.clock(),
            include_future=include_future,
            status_filter=status_filter,
        )

    def get_submission_status(self, course_id: CourseId, assignment_id: CourseId) -> SubmissionDetail:
        """
        Fetch the caller's submission for one assignment.

        Uses a single request with include[]=assignment to get the
        assignment name alongside the submission.
        """
        logger.debug(f"Fetching submission for assignment {assignment_id} in course {course_id}")

        endpoint = self.SUBMISSION_ENDPOINT.format(
            course_id=course_id,
            assignment_id=assignment_id,
        )
        data = self._get_json(endpoint, params={"include[]": "assignment"})
        if not isinstance(data, dict):
            raise InvalidResponseError()

        return SubmissionDetail.from_api_response(data)

    def get_course_grades(self, course_id: CourseId) -> GradeSummary:
        """
        Fetch the caller's grade summary for a course.

        Best-effort: this never raises. Access problems, timeouts, bad
        responses and missing enrollments all come back as
        ``GradeUnavailable(HIDDEN_OR_UNAVAILABLE)``; an enrollment with no
        grades posted comes back as ``GradeUnavailable(NO_GRADES_YET)``.
        """
        course_key = _coerce_id(course_id)
        hidden = GradeUnavailable(
            course_id=course_key,
            reason=GradeUnavailableReason.HIDDEN_OR_UNAVAILABLE,
        )

        endpoint = self.ENROLLMENTS_ENDPOINT.format(course_id=course_id)
        try:
            enrollments = self._get_json(
                endpoint,
                params={"user_id": "self", "type[]": "StudentEnrollment"},
            )
        except (CanvasError, requests.RequestException) as e:
            logger.info(f"Grades unavailable for course {course_id}: {e}")
            return hidden

        if not isinstance(enrollments, list):
            return hidden

        matching = [
            e for e in enrollments
            if isinstance(e, dict) and e.get("course_id") == course_key
        ]
        try:
            enrollment = select_enrollment(matching)
            if enrollment is None:
                return hidden

            metadata = EnrollmentMetadata.from_enrollment(enrollment)

            if not has_grade_data(enrollment):
                return GradeUnavailable(
                    course_id=course_key,
                    reason=GradeUnavailableReason.NO_GRADES_YET,
                    metadata=metadata,
                )

            grades = enrollment.get("grades") or {}
            return GradeAvailable(
                course_id=course_key,
                metadata=metadata,
                current_score=first_present(grades.get("current_score"), enrollment.get("computed_current_score")),
                current_grade=first_present(grades.get("current_grade"), enrollment.get("computed_current_grade")),
                final_score=first_present(grades.get("final_score"), enrollment.get("computed_final_score")),
                final_grade=first_present(grades.get("final_grade"), enrollment.get("computed_final_grade")),
            )
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed enrollment data for course {course_id}: {e!r}")
            return hidden

    def list_upcoming(
        self,
        days: float = 14,
        include_overdue: bool = True,
        course_ids: Optional[list[CourseId]] = None,
    ) -> list[UpcomingItem]:
        """
        List assignments due soon across active courses.

        A course whose assignments cannot be fetched is skipped; items from
        the other courses are still returned.

        Args:
            days: Look-ahead window in days
            include_overdue: Also return assignments already past due
            course_ids: Restrict to these course IDs (int or string form)

        Returns:
            Items sorted by due date, overdue ones first
        """
        courses = self.list_courses()

        if course_ids is not None:
            wanted = set(course_ids)
            courses = [c for c in courses if c.id in wanted or str(c.id) in wanted]

        now = self.clock()
        upcoming: list[UpcomingItem] = []

        for course in courses:
            try:
                assignments = self.list_assignments(course.id, True, StatusFilter.ALL)
            except (CanvasError, requests.RequestException) as e:
                logger.warning(f"Skipping course {course.id} in upcoming listing: {e}")
                continue

            for assignment in assignments:
                try:
                    due_at = assignment.due_datetime
                    if due_at is None:
                        continue
                    if not in_upcoming_window(due_at, now, days, include_overdue):
                        continue
                except (TypeError, ValueError):
                    logger.warning(f"Skipping assignment {assignment.id} with unreadable due_at")
                    continue

                upcoming.append(UpcomingItem(
                    course_id=course.id,
                    course_name=course.name,
                    assignment_id=assignment.id,
                    name=assignment.name,
                    due_at=assignment.due_at,
                    status=upcoming_status(assignment),
                    points_possible=assignment.points_possible,
                ))

        upcoming.sort(key=lambda item: item.due_datetime)
        logger.debug(f"Found {len(upcoming)} upcoming assignments across {len(courses)} courses")
        return upcoming
