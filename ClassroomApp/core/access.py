"""Role & object access helpers."""

from typing import Any
from ClassroomApp.classrooms.models import Classroom, ClassEnrollment
from ClassroomApp.learning.models import (
    Assignment, Question, Submission, Feedback
)
from ClassroomApp.core.choices import UserRole, EnrollmentStatus


def classroom_from(obj: Any) -> Classroom | None:
    if obj is None:
        return None
    if isinstance(obj, Classroom):
        return obj
    if isinstance(obj, Assignment):
        return obj.classroom
    if isinstance(obj, Question):
        return obj.assignment.classroom
    if isinstance(obj, Submission):
        return obj.assignment.classroom
    if isinstance(obj, Feedback):
        return obj.submission.assignment.classroom
    return getattr(obj, "classroom", None)


def has_role(user, *roles: str) -> bool:
    return bool(user and user.is_authenticated and user.role in roles)


def is_admin(user) -> bool:
    return has_role(user, UserRole.ADMIN)


def is_owner(user, classroom: Classroom | None) -> bool:
    return bool(user and classroom and classroom.teacher_id == user.id)


def is_owner_or_admin(user, classroom: Classroom | None) -> bool:
    return is_owner(user, classroom) or is_admin(user)


def is_enrolled(user, classroom: Classroom | None) -> bool:
    """True when the user holds an ACTIVE enrollment in the classroom."""
    if not (user and classroom):
        return False
    return ClassEnrollment.objects.filter(
        classroom=classroom, student=user, status=EnrollmentStatus.ACTIVE
    ).exists()


def is_submission_participant(user, obj: Any) -> bool:
    """User is the submitting student, the classroom teacher, or an admin."""
    classroom = classroom_from(obj)
    if not classroom:
        return False
    if isinstance(obj, Submission) and obj.student_id == user.id:
        return True
    if isinstance(obj, Feedback) and obj.submission.student_id == user.id:
        return True
    return is_owner_or_admin(user, classroom)
