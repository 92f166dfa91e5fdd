"""Domain service functions for classroom lifecycle and enrollment management.

These helpers encapsulate business rules (e.g., only the owning teacher manages
the roster, students join with a class code) and keep view/serializer layers
thin. Mutating operations run inside atomic transactions. Enrollments are never
deleted: leaving or removal changes their status, and joining again
reactivates the same row.
"""
import logging
import secrets
import string
from typing import Any

from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomApp.classrooms.models import Classroom, ClassEnrollment
from ClassroomApp.core.access import is_owner_or_admin
from ClassroomApp.core.choices import ClassroomStatus, EnrollmentStatus, UserRole
from ClassroomApp.core.exceptions import InvalidState
from ClassroomApp.users.models import User

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_class_code(length: int | None = None) -> str:
    """Random join code of upper-case letters and digits."""
    if length is None:
        length = getattr(settings, "CLASSROOM_CODE_LENGTH", 6)
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _unique_class_code() -> str:
    code = generate_class_code()
    while Classroom.objects.filter(code=code).exists():
        code = generate_class_code()
    return code


def _ensure_classroom_owner(user: User, classroom: Classroom) -> None:
    """Raise PermissionDenied if user is neither the classroom teacher nor an admin."""
    if not is_owner_or_admin(user, classroom):
        raise PermissionDenied("Only the classroom teacher can do this.")


@transaction.atomic
def create_classroom(teacher: User, data: dict[str, Any]) -> Classroom:
    """Create a classroom owned by ``teacher`` with a fresh unique join code.

    Args:
        teacher: Creating user (TEACHER or ADMIN role).
        data: Validated payload (name, description, subject).

    Returns:
        The newly created Classroom instance.
    """
    if teacher.role not in (UserRole.TEACHER, UserRole.ADMIN):
        raise PermissionDenied("Teacher role required")
    classroom = Classroom.objects.create(teacher=teacher, code=_unique_class_code(), **data)
    logger.info("Classroom created: id=%s code=%s teacher=%s", classroom.pk, classroom.code, teacher.pk)
    return classroom


@transaction.atomic
def update_classroom(actor: User, classroom: Classroom, data: dict[str, Any]) -> Classroom:
    """Update name/description/subject/status (owner or admin)."""
    _ensure_classroom_owner(actor, classroom)
    for field, value in data.items():
        setattr(classroom, field, value)
    classroom.save()
    return classroom


@transaction.atomic
def delete_classroom(actor: User, classroom: Classroom) -> None:
    _ensure_classroom_owner(actor, classroom)
    logger.info("Classroom deleted: id=%s by=%s", classroom.pk, actor.pk)
    classroom.delete()


def _activate(classroom: Classroom, student: User) -> tuple[ClassEnrollment, bool]:
    """Create or reactivate an enrollment. Returns (enrollment, reactivated)."""
    enrollment, created = ClassEnrollment.objects.select_for_update().get_or_create(
        classroom=classroom,
        student=student,
    )
    if created:
        return enrollment, False
    if enrollment.status == EnrollmentStatus.ACTIVE:
        raise InvalidState("Student is already enrolled in this classroom.")
    enrollment.status = EnrollmentStatus.ACTIVE
    enrollment.save(update_fields=["status", "updated_at"])
    return enrollment, True


@transaction.atomic
def join_classroom(student: User, code: str) -> tuple[ClassEnrollment, bool]:
    """Join a classroom by its code (case-insensitive).

    Returns:
        (enrollment, reactivated) where ``reactivated`` is True when a former
        LEFT/REMOVED enrollment was brought back.
    """
    if student.role != UserRole.STUDENT:
        raise PermissionDenied("Only students can join a classroom.")
    classroom = Classroom.objects.filter(code=code.strip().upper()).first()
    if classroom is None:
        raise NotFound("No classroom with this code.")
    if classroom.status != ClassroomStatus.ACTIVE:
        raise InvalidState("This classroom is archived.")
    enrollment, reactivated = _activate(classroom, student)
    logger.info("Student %s joined classroom %s (reactivated=%s)", student.pk, classroom.pk, reactivated)
    return enrollment, reactivated


@transaction.atomic
def leave_classroom(student: User, classroom: Classroom) -> ClassEnrollment:
    """Mark the student's enrollment as LEFT."""
    enrollment = ClassEnrollment.objects.filter(
        classroom=classroom, student=student, status=EnrollmentStatus.ACTIVE
    ).first()
    if enrollment is None:
        raise NotFound("You are not a member of this classroom.")
    enrollment.status = EnrollmentStatus.LEFT
    enrollment.save(update_fields=["status", "updated_at"])
    logger.info("Student %s left classroom %s", student.pk, classroom.pk)
    return enrollment


@transaction.atomic
def add_student(actor: User, classroom: Classroom, email: str) -> ClassEnrollment:
    """Enroll a student by email (owner or admin).

    Raises:
        NotFound: No account with this email.
        ValidationError: The account is not a student.
        InvalidState: The student is already actively enrolled.
    """
    _ensure_classroom_owner(actor, classroom)
    student = User.objects.filter(email__iexact=email).first()
    if student is None:
        raise NotFound("No student with this email.")
    if student.role != UserRole.STUDENT:
        raise ValidationError({"email": ["This user is not a student."]})
    enrollment, _ = _activate(classroom, student)
    logger.info("Student %s added to classroom %s by %s", student.pk, classroom.pk, actor.pk)
    return enrollment


@transaction.atomic
def remove_student(actor: User, classroom: Classroom, student_id: int) -> None:
    """Mark a student's enrollment as REMOVED (owner or admin)."""
    _ensure_classroom_owner(actor, classroom)
    enrollment = ClassEnrollment.objects.filter(
        classroom=classroom, student_id=student_id, status=EnrollmentStatus.ACTIVE
    ).first()
    if enrollment is None:
        raise NotFound("Student is not in this classroom.")
    enrollment.status = EnrollmentStatus.REMOVED
    enrollment.save(update_fields=["status", "updated_at"])
    logger.info("Student %s removed from classroom %s by %s", student_id, classroom.pk, actor.pk)
