"""Custom DRF permission classes for role, classroom and submission access control."""

from rest_framework.request import Request
from typing import Any

from rest_framework.permissions import BasePermission, SAFE_METHODS

from ClassroomApp.core.choices import UserRole
from ClassroomApp.core.access import (
    classroom_from, has_role, is_owner_or_admin, is_enrolled, is_submission_participant
)


class IsTeacherOrAdmin(BasePermission):
    """Allow users whose account role is TEACHER or ADMIN."""
    message = "Teacher role required."

    def has_permission(self, request: Request, view: Any) -> bool:
        return has_role(request.user, UserRole.TEACHER, UserRole.ADMIN)


class IsStudent(BasePermission):
    """Allow users whose account role is STUDENT."""
    message = "Only students can do this."

    def has_permission(self, request: Request, view: Any) -> bool:
        return has_role(request.user, UserRole.STUDENT)


class IsUserManager(BasePermission):
    """Account administration: ADMIN and MANAGER roles."""
    message = "Account management requires an admin or manager."

    def has_permission(self, request: Request, view: Any) -> bool:
        return has_role(request.user, UserRole.ADMIN, UserRole.MANAGER)


class IsClassroomOwnerOrAdmin(BasePermission):
    """Writes limited to the classroom's teacher or an admin (reads allowed to members)."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        classroom = classroom_from(obj)
        if is_owner_or_admin(request.user, classroom):
            return True
        if request.method in SAFE_METHODS:
            return is_enrolled(request.user, classroom)
        return False


class IsSubmissionParticipant(BasePermission):
    """Allow access to the submission's student, the classroom teacher or an admin (managers read only)."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        if request.method in SAFE_METHODS and has_role(request.user, UserRole.MANAGER):
            return True
        return is_submission_participant(request.user, obj)
