"""Domain service functions for assignments and their questions."""

import logging
from typing import Any

from django.db import transaction
from rest_framework.exceptions import PermissionDenied, ValidationError

from ClassroomApp.classrooms.models import Classroom
from ClassroomApp.core.access import is_owner_or_admin
from ClassroomApp.core.choices import AssignmentType
from ClassroomApp.core.exceptions import InvalidState
from ClassroomApp.learning.models import Assignment, AssignmentAttachment, Option, Question
from ClassroomApp.users.models import User

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "status", "deadline")


def _ensure_classroom_owner(user: User, classroom: Classroom) -> None:
    if not is_owner_or_admin(user, classroom):
        raise PermissionDenied("Only the classroom teacher can manage its assignments.")


def validate_questions(assignment_type: str, questions: list[dict[str, Any]]) -> None:
    """Check that questions carry an answer key matching the assignment type.

    MCQ questions need at least two options with at least one flagged correct;
    TF_ON_DOCUMENT questions need a correct text.
    """
    errors: dict[int, str] = {}
    for index, question in enumerate(questions):
        options = question.get("options") or []
        if assignment_type == AssignmentType.MCQ:
            if len(options) < 2:
                errors[index] = "MCQ questions need at least two options."
            elif not any(o.get("is_correct") for o in options):
                errors[index] = "MCQ questions need at least one correct option."
        elif assignment_type == AssignmentType.TF_ON_DOCUMENT and not question.get("correct_text"):
            errors[index] = "True/false questions need a correct answer."
    if assignment_type == AssignmentType.MCQ and not questions:
        raise ValidationError({"questions": ["MCQ assignments need at least one question."]})
    if errors:
        raise ValidationError({"questions": [f"Question {i + 1}: {msg}" for i, msg in sorted(errors.items())]})


@transaction.atomic
def create_assignment(
    teacher: User,
    classroom: Classroom,
    data: dict[str, Any],
    questions: list[dict[str, Any]] | None = None,
    attachments: list[dict[str, Any]] | None = None,
) -> Assignment:
    """Create an assignment with its ordered questions, options and attachments (owner or admin)."""
    _ensure_classroom_owner(teacher, classroom)
    questions = questions or []
    validate_questions(data["type"], questions)

    assignment = Assignment.objects.create(classroom=classroom, created_by=teacher, **data)
    for q_index, q_data in enumerate(questions):
        question = Question.objects.create(
            assignment=assignment,
            content=q_data["content"],
            correct_text=q_data.get("correct_text"),
            media_url=q_data.get("media_url", ""),
            order_index=q_index,
        )
        Option.objects.bulk_create([
            Option(question=question, content=o["content"], is_correct=o.get("is_correct", False), order_index=o_index)
            for o_index, o in enumerate(q_data.get("options") or [])
        ])
    AssignmentAttachment.objects.bulk_create([
        AssignmentAttachment(assignment=assignment, **a) for a in attachments or []
    ])
    logger.info(
        "Assignment created: id=%s type=%s classroom=%s questions=%d",
        assignment.pk, assignment.type, classroom.pk, len(questions),
    )
    return assignment


@transaction.atomic
def update_assignment(actor: User, assignment: Assignment, data: dict[str, Any]) -> Assignment:
    """Update title/description/status/deadline; questions are fixed once created."""
    _ensure_classroom_owner(actor, assignment.classroom)
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(assignment, field, data[field])
    assignment.save()
    return assignment


@transaction.atomic
def delete_assignment(actor: User, assignment: Assignment) -> None:
    """Delete an assignment (owner or admin).
    Deletion policy: *prohibit* deletion once students have submissions.
    """
    _ensure_classroom_owner(actor, assignment.classroom)
    if assignment.submissions.exists():
        raise InvalidState("Assignment cannot be deleted while submissions exist.")
    logger.info("Assignment deleted: id=%s by=%s", assignment.pk, actor.pk)
    assignment.delete()
