"""Typed enumerations (TextChoices) for roles, lifecycle states and assignment types."""
from django.db import models

class UserRole(models.TextChoices):
    """System-level role assigned to a user account."""
    ADMIN = "ADMIN", "Admin"
    MANAGER = "MANAGER", "Manager"
    TEACHER = "TEACHER", "Teacher"
    STUDENT = "STUDENT", "Student"

class AccountStatus(models.TextChoices):
    """Lifecycle of a user account (deactivation is a soft delete)."""
    ACTIVE = "ACTIVE", "Active"
    DEACTIVATED = "DEACTIVATED", "Deactivated"

class ClassroomStatus(models.TextChoices):
    """Lifecycle of a classroom; archived classrooms refuse new joins."""
    ACTIVE = "ACTIVE", "Active"
    ARCHIVED = "ARCHIVED", "Archived"

class EnrollmentStatus(models.TextChoices):
    """Lifecycle of a student's enrollment in a classroom."""
    ACTIVE = "ACTIVE", "Active"
    LEFT = "LEFT", "Left"
    REMOVED = "REMOVED", "Removed"

class AssignmentType(models.TextChoices):
    """Kind of work an assignment asks for."""
    MCQ = "MCQ", "Multiple choice"
    ESSAY = "ESSAY", "Essay"
    PRONUNCIATION = "PRONUNCIATION", "Pronunciation"
    TRANSLATION_SPEAKING = "TRANSLATION_SPEAKING", "Translation & speaking"
    TF_ON_DOCUMENT = "TF_ON_DOCUMENT", "True/false on document"

class AssignmentStatus(models.TextChoices):
    """Publication state of an assignment; only OPEN accepts submissions."""
    DRAFT = "DRAFT", "Draft"
    OPEN = "OPEN", "Open"
    CLOSED = "CLOSED", "Closed"

class SubmissionStatus(models.TextChoices):
    """Lifecycle states for a submission: IN_PROGRESS -> SUBMITTED -> GRADED."""
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    SUBMITTED = "SUBMITTED", "Submitted"
    GRADED = "GRADED", "Graded"


AUTO_GRADED_TYPES = frozenset({AssignmentType.MCQ, AssignmentType.TF_ON_DOCUMENT})

FINAL_SUBMISSION_STATES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED})
