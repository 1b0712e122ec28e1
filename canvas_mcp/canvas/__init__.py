"""Canvas LMS API client module."""

from .client import CanvasClient
from .errors import CanvasAPIError, CanvasError, CanvasTimeoutError, InvalidResponseError
from .filters import StatusFilter
from .models import Assignment, Course, SubmissionDetail, UpcomingItem

__all__ = [
    "CanvasClient",
    "CanvasError",
    "CanvasAPIError",
    "CanvasTimeoutError",
    "InvalidResponseError",
    "StatusFilter",
    "Course",
    "Assignment",
    "SubmissionDetail",
    "UpcomingItem",
]
