"""Classroom domain models: Classroom and ClassEnrollment."""

from django.db import models
from django.conf import settings

from simple_history.models import HistoricalRecords

from ClassroomApp.core.choices import ClassroomStatus, EnrollmentStatus
from ClassroomApp.classrooms.querysets import ClassroomQuerySet, EnrollmentQuerySet


User = settings.AUTH_USER_MODEL

class Classroom(models.Model):
    """A teacher-owned group of students joined through a short code.

    Fields:
        name: Human readable class name.
        description / subject: Optional free text.
        code: Unique join code (upper-case letters and digits).
        status: ClassroomStatus; archived classrooms refuse new joins.
        teacher: FK to the owning teacher.
        created_at / updated_at: Timestamps.
        history: Audit history (django-simple-history).
    """
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    subject = models.CharField(max_length=120, blank=True)
    code = models.CharField(max_length=12, unique=True)
    status = models.CharField(max_length=16, choices=ClassroomStatus.choices, default=ClassroomStatus.ACTIVE)
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="owned_classrooms")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = ClassroomQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class ClassEnrollment(models.Model):
    """Membership of a student in a classroom.

    Leaving or being removed changes ``status`` instead of deleting the row,
    so rejoining reactivates the same enrollment.

    Constraints:
        uq_enrollment_student_classroom: one row per (student, classroom).
    """
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    status = models.CharField(max_length=16, choices=EnrollmentStatus.choices, default=EnrollmentStatus.ACTIVE)
    joined_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["student", "classroom"], name="uq_enrollment_student_classroom"),
        ]

    def __str__(self) -> str:
        return f"{self.student} -> {self.classroom} ({self.status})"
