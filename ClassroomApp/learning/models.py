"""Learning domain models: Assignment, Question, Option, AssignmentAttachment, Submission, Answer, Feedback."""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from ClassroomApp.classrooms.models import Classroom
from ClassroomApp.core.choices import AssignmentType, AssignmentStatus, SubmissionStatus, AUTO_GRADED_TYPES
from ClassroomApp.classrooms.querysets import AssignmentQuerySet, SubmissionQuerySet

from simple_history.models import HistoricalRecords

User = settings.AUTH_USER_MODEL

class Assignment(models.Model):
    """A unit of work of a fixed type belonging to a classroom."""
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="assignments")
    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_assignments")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=32, choices=AssignmentType.choices)
    status = models.CharField(max_length=16, choices=AssignmentStatus.choices, default=AssignmentStatus.DRAFT)
    deadline = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = AssignmentQuerySet.as_manager()

    @property
    def is_auto_graded(self) -> bool:
        return self.type in AUTO_GRADED_TYPES

    def __str__(self) -> str:
        return f"{self.title} [{self.type}]"


class Question(models.Model):
    """A prompt within an assignment; ``correct_text`` is the key for TF_ON_DOCUMENT."""
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="questions")
    content = models.TextField()
    correct_text = models.CharField(max_length=255, null=True, blank=True)
    media_url = models.CharField(max_length=500, blank=True)
    order_index = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order_index", "id"]


class Option(models.Model):
    """A selectable choice of an MCQ question."""
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="options")
    content = models.CharField(max_length=500)
    is_correct = models.BooleanField(default=False)
    order_index = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order_index", "id"]


class AssignmentAttachment(models.Model):
    """A file (document, image, audio) attached to an assignment by its teacher."""
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="attachments")
    url = models.CharField(max_length=500)
    file_name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)


class Submission(models.Model):
    """A student's attempt for an assignment (unique per assignment+student)."""
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    status = models.CharField(max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.IN_PROGRESS)
    score = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    max_score = models.FloatField(null=True, blank=True, validators=[MinValueValidator(0)])
    submitted_at = models.DateTimeField(null=True, blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="uq_assignment_student"),
        ]

    def __str__(self) -> str:
        return f"Submission({self.student} -> {self.assignment}, {self.status})"


class Answer(models.Model):
    """A student's answer to one question; the whole set is replaced on every save."""
    submission = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="answers")
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="answers")
    selected_option_ids = models.JSONField(default=list, blank=True)
    text_content = models.TextField(null=True, blank=True)
    audio_url = models.CharField(max_length=500, null=True, blank=True)
    document_labels = models.JSONField(null=True, blank=True)
    score = models.FloatField(null=True, blank=True)
    max_score = models.FloatField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["submission", "question"], name="uq_submission_question"),
        ]


class Feedback(models.Model):
    """The grading teacher's written comment on a submission (at most one per submission)."""
    submission = models.OneToOneField(Submission, on_delete=models.CASCADE, related_name="feedback")
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="given_feedback")
    comment = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()
