"""Custom querysets encapsulating role-based visibility for classrooms, assignments and submissions."""

from django.db.models import QuerySet, Q
from typing import Self


from ClassroomApp.core.choices import UserRole, EnrollmentStatus, AssignmentStatus

class ClassroomQuerySet(QuerySet):
    """QuerySet with helpers for classroom visibility and ownership."""

    def for_teacher(self, user) -> Self:
        """Classrooms owned by the given teacher."""
        return self.filter(teacher=user)

    def where_student_active(self, user) -> Self:
        """Classrooms where the user holds an active enrollment."""
        return self.filter(
            enrollments__student=user,
            enrollments__status=EnrollmentStatus.ACTIVE,
        ).distinct()

    def visible_to(self, user) -> Self:
        """Classrooms visible to user:
        - Admin / manager: all
        - Teacher: owned classrooms
        - Student: classrooms with an active enrollment
        """
        if not user or not user.is_authenticated:
            return self.none()
        if user.role in (UserRole.ADMIN, UserRole.MANAGER):
            return self.all()
        if user.role == UserRole.TEACHER:
            return self.for_teacher(user)
        return self.where_student_active(user)


class EnrollmentQuerySet(QuerySet):
    """QuerySet helpers for enrollments."""

    def active(self) -> Self:
        return self.filter(status=EnrollmentStatus.ACTIVE)


class AssignmentQuerySet(QuerySet):
    """QuerySet helpers for assignment visibility."""

    def visible_to(self, user) -> Self:
        """Assignments visible to user:
        - Admin / manager: all
        - Teacher: every assignment of owned classrooms
        - Student: non-draft assignments of actively enrolled classrooms
        """
        if not user or not user.is_authenticated:
            return self.none()
        if user.role in (UserRole.ADMIN, UserRole.MANAGER):
            return self.all()
        if user.role == UserRole.TEACHER:
            return self.filter(classroom__teacher=user)
        return self.filter(
            ~Q(status=AssignmentStatus.DRAFT),
            classroom__enrollments__student=user,
            classroom__enrollments__status=EnrollmentStatus.ACTIVE,
        ).distinct()


class SubmissionQuerySet(QuerySet):
    """QuerySet helpers for filtering submissions by role."""

    def for_teacher(self, user):
        """Submissions for assignments in classrooms owned by the teacher."""
        return self.filter(assignment__classroom__teacher=user)

    def for_student(self, user):
        """Submissions belonging to the student."""
        return self.filter(student=user)

    def visible_to(self, user):
        """Submissions visible to user:
        - Admin / manager: all
        - Teacher: submissions in owned classrooms
        - Student: own submissions
        """
        if user.role in (UserRole.ADMIN, UserRole.MANAGER):
            return self.all()
        if user.role == UserRole.TEACHER:
            return self.for_teacher(user)
        return self.for_student(user)
