"""API throttling classes."""

from rest_framework.throttling import UserRateThrottle

class SubmissionRateThrottle(UserRateThrottle):
    """Throttle limiting answer submissions per student.

    The rate comes from ``REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]["submission_create"]``.
    """
    scope = "submission_create"
