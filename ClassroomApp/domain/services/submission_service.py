"""Domain service functions for the submission lifecycle and grading.

Enforces role/visibility rules:
- Only actively enrolled students save drafts or submit, and only while the
  assignment is OPEN (final submits also before the deadline).
- Only the classroom's teacher (or an admin) grades.
State transitions for submissions:
    IN_PROGRESS (draft saves) -> SUBMITTED (final submit) -> GRADED (grading).
A SUBMITTED or GRADED submission is immutable to the student. Answers are
replaced wholesale on every save inside the same transaction as the
submission update.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomApp.core.access import is_enrolled, is_owner_or_admin
from ClassroomApp.core.choices import AssignmentStatus, SubmissionStatus, UserRole, FINAL_SUBMISSION_STATES
from ClassroomApp.core.exceptions import InvalidState
from ClassroomApp.domain.services.grading import AnswerKey, ScoreSummary, is_answer_correct, is_auto_graded, score_answers
from ClassroomApp.learning.models import Answer, Assignment, Feedback, Submission
from ClassroomApp.users.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of ``save_or_submit``; ``summary`` is set for final auto-graded saves."""
    submission: Submission
    summary: ScoreSummary | None = None


def _score_scale() -> int:
    return getattr(settings, "SCORE_SCALE", 10)


def _load_assignment(assignment_id: int) -> Assignment:
    assignment = (
        Assignment.objects.select_related("classroom")
        .prefetch_related("questions__options")
        .filter(pk=assignment_id)
        .first()
    )
    if assignment is None:
        raise NotFound("Assignment not found.")
    return assignment


def _ensure_can_submit(student: User, assignment: Assignment, is_draft: bool) -> None:
    """Raise PermissionDenied / InvalidState when the student may not write answers."""
    if student.role != UserRole.STUDENT:
        raise PermissionDenied("Only students can submit answers.")
    if not is_enrolled(student, assignment.classroom):
        raise PermissionDenied("Not enrolled in this classroom.")
    if assignment.status != AssignmentStatus.OPEN:
        raise InvalidState("Assignment is not open.")
    if not is_draft and assignment.deadline and timezone.now() > assignment.deadline:
        raise InvalidState("The deadline has passed.")


def dedupe_answers(answers: Iterable[Mapping[str, Any]]) -> dict[int, Mapping[str, Any]]:
    """Index answers by question id; a repeated question id keeps its last answer."""
    by_question: dict[int, Mapping[str, Any]] = {}
    for answer in answers:
        question_id = answer["question_id"]
        if question_id in by_question:
            logger.warning("Duplicate answer for question %s, keeping the last one", question_id)
        by_question[question_id] = answer
    return by_question


def _replace_answers(
    submission: Submission,
    assignment: Assignment,
    answers_by_question: Mapping[int, Mapping[str, Any]],
    keys: Mapping[int, AnswerKey] | None,
) -> list[Answer]:
    """Delete the previous answer set and insert the new one (caller holds the transaction)."""
    submission.answers.all().delete()
    rows = []
    for question_id, payload in answers_by_question.items():
        score = max_score = None
        if keys is not None:
            max_score = 1.0
            score = 1.0 if is_answer_correct(assignment.type, keys[question_id], payload) else 0.0
        labels = payload.get("document_labels")
        rows.append(Answer(
            submission=submission,
            question_id=question_id,
            selected_option_ids=list(payload.get("selected_option_ids") or []),
            text_content=payload.get("text_content"),
            audio_url=payload.get("audio_url"),
            document_labels=dict(labels) if labels is not None else None,
            score=score,
            max_score=max_score,
        ))
    return Answer.objects.bulk_create(rows)


@transaction.atomic
def save_or_submit(
    student: User,
    assignment_id: int,
    answers: Iterable[Mapping[str, Any]],
    is_draft: bool = False,
) -> SubmissionResult:
    """Save a draft or finalize a student's answers for an assignment.

    Rules:
        - Assignment must exist (NotFound) and be OPEN (InvalidState).
        - Student must be actively enrolled in the classroom (PermissionDenied).
        - Final submits must happen before the deadline, if any (InvalidState).
        - An existing SUBMITTED/GRADED submission blocks further saves (InvalidState).
        - Answers must reference questions of this assignment (ValidationError).
        - Final saves of MCQ / TF_ON_DOCUMENT assignments are scored immediately.
    """
    assignment = _load_assignment(assignment_id)
    _ensure_can_submit(student, assignment, is_draft)

    answers_by_question = dedupe_answers(answers)
    questions = list(assignment.questions.all())
    question_ids = {q.id for q in questions}
    unknown = sorted(set(answers_by_question) - question_ids)
    if unknown:
        raise ValidationError({"answers": [f"Questions {unknown} do not belong to this assignment."]})

    submission, created = Submission.objects.select_for_update().get_or_create(
        assignment=assignment,
        student=student,
    )
    if not created and submission.status in FINAL_SUBMISSION_STATES:
        raise InvalidState("This assignment has already been submitted.")

    summary = None
    keys = None
    if not is_draft and is_auto_graded(assignment.type):
        keys = {q.id: AnswerKey.from_question(q) for q in questions}
        summary = score_answers(assignment.type, keys.values(), answers_by_question, scale=_score_scale())

    now = timezone.now()
    submission.status = SubmissionStatus.IN_PROGRESS if is_draft else SubmissionStatus.SUBMITTED
    submission.submitted_at = None if is_draft else now
    submission.score = summary.score if summary else None
    submission.max_score = _score_scale() if summary and summary.score is not None else None
    submission.save()

    _replace_answers(submission, assignment, answers_by_question, keys)

    if is_draft:
        logger.info("Draft saved: submission=%s student=%s assignment=%s", submission.pk, student.pk, assignment.pk)
    else:
        logger.info(
            "Submission finalized: submission=%s student=%s assignment=%s score=%s",
            submission.pk, student.pk, assignment.pk, submission.score,
        )
    return SubmissionResult(submission=submission, summary=summary)


@transaction.atomic
def grade_submission(
    grader: User,
    submission_id: int,
    score: float,
    max_score: float,
    feedback: str | None = None,
) -> Submission:
    """Assign (or override) a score and optional feedback on a submission.

    Validates:
        grader owns the classroom or is an admin; score and max_score >= 0;
        the submission has been submitted.
    Updates submission state to GRADED; feedback is upserted (one per submission).
    """
    submission = (
        Submission.objects.select_for_update()
        .select_related("assignment__classroom")
        .filter(pk=submission_id)
        .first()
    )
    if submission is None:
        raise NotFound("Submission not found.")
    if not is_owner_or_admin(grader, submission.assignment.classroom):
        raise PermissionDenied("Only the classroom teacher can grade this submission.")
    if score < 0 or max_score < 0:
        raise ValidationError("Score and max score must be non-negative.")
    if submission.status == SubmissionStatus.IN_PROGRESS:
        raise InvalidState("Drafts cannot be graded.")

    submission.score = score
    submission.max_score = max_score
    submission.status = SubmissionStatus.GRADED
    submission.graded_at = timezone.now()
    submission.save(update_fields=["score", "max_score", "status", "graded_at", "updated_at"])

    if feedback:
        Feedback.objects.update_or_create(
            submission=submission,
            defaults={"comment": feedback, "teacher": grader},
        )
    logger.info("Submission graded: submission=%s grader=%s score=%s/%s", submission.pk, grader.pk, score, max_score)
    return submission


@transaction.atomic
def rescore_submission(submission: Submission) -> ScoreSummary | None:
    """Recompute the automatic score of a SUBMITTED auto-graded submission from its stored answers."""
    assignment = submission.assignment
    if submission.status != SubmissionStatus.SUBMITTED or not is_auto_graded(assignment.type):
        return None
    questions = list(assignment.questions.prefetch_related("options"))
    keys = {q.id: AnswerKey.from_question(q) for q in questions}
    answers = list(submission.answers.all())
    answers_by_question = {
        a.question_id: {"selected_option_ids": a.selected_option_ids, "text_content": a.text_content}
        for a in answers
    }
    summary = score_answers(assignment.type, keys.values(), answers_by_question, scale=_score_scale())
    for answer in answers:
        correct = is_answer_correct(assignment.type, keys[answer.question_id], answers_by_question[answer.question_id])
        answer.score = 1.0 if correct else 0.0
        answer.max_score = 1.0
    Answer.objects.bulk_update(answers, ["score", "max_score"])
    submission.score = summary.score
    submission.max_score = _score_scale() if summary.score is not None else None
    submission.save(update_fields=["score", "max_score", "updated_at"])
    return summary


def list_assignment_submissions_for_teacher(teacher: User, assignment: Assignment) -> QuerySet[Submission]:
    """List all submissions for an assignment (classroom teacher or admin only)."""
    if not is_owner_or_admin(teacher, assignment.classroom):
        raise PermissionDenied("Teacher role required")
    return assignment.submissions.select_related("student", "feedback").prefetch_related("answers").order_by("-submitted_at")
