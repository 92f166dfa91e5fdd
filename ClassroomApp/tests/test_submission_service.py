import logging
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomApp.core.choices import AssignmentStatus, SubmissionStatus
from ClassroomApp.core.exceptions import InvalidState
from ClassroomApp.domain.services import classroom_service, submission_service
from ClassroomApp.learning.models import Answer, Submission
from ClassroomApp.tests.conftest import correct_mcq_answers, make_user

pytestmark = pytest.mark.django_db


def test_draft_saves_are_idempotent(student, enrolled, mcq_assignment):
    q = mcq_assignment.questions.first()
    first = submission_service.save_or_submit(
        student, mcq_assignment.id, [{"question_id": q.id, "selected_option_ids": [q.options.first().id]}], is_draft=True
    ).submission
    second = submission_service.save_or_submit(student, mcq_assignment.id, [], is_draft=True).submission
    assert first.id == second.id
    assert Submission.objects.filter(assignment=mcq_assignment, student=student).count() == 1
    assert second.status == SubmissionStatus.IN_PROGRESS
    assert second.submitted_at is None
    assert second.score is None
    assert Answer.objects.filter(submission=second).count() == 0


def test_final_mcq_submit_is_scored(student, enrolled, mcq_assignment):
    answers = correct_mcq_answers(mcq_assignment)[:3]
    result = submission_service.save_or_submit(student, mcq_assignment.id, answers)
    sub = result.submission
    assert sub.status == SubmissionStatus.SUBMITTED
    assert sub.submitted_at is not None
    assert sub.score == 7.5
    assert sub.max_score == 10
    assert result.summary.correct_answers == 3
    assert result.summary.total_questions == 4
    assert sorted(a.score for a in sub.answers.all()) == [1.0, 1.0, 1.0]


def test_draft_then_final_submit_replaces_answers(student, enrolled, mcq_assignment):
    q = mcq_assignment.questions.first()
    wrong = [o.id for o in q.options.all() if not o.is_correct][:1]
    submission_service.save_or_submit(
        student, mcq_assignment.id, [{"question_id": q.id, "selected_option_ids": wrong}], is_draft=True
    )
    result = submission_service.save_or_submit(student, mcq_assignment.id, correct_mcq_answers(mcq_assignment))
    assert result.submission.score == 10.0
    assert result.submission.answers.count() == 4


def test_tf_submit_ignores_case(student, enrolled, tf_assignment):
    q1, q2 = tf_assignment.questions.all()
    result = submission_service.save_or_submit(
        student, tf_assignment.id,
        [{"question_id": q1.id, "text_content": "true"}, {"question_id": q2.id, "text_content": "TRUE"}],
    )
    assert result.submission.score == 5.0
    assert result.summary.as_details()["correctAnswers"] == 1


def test_essay_submit_has_no_score(student, enrolled, essay_assignment):
    q = essay_assignment.questions.first()
    result = submission_service.save_or_submit(
        student, essay_assignment.id, [{"question_id": q.id, "text_content": "It was sunny."}]
    )
    assert result.summary is None
    assert result.submission.status == SubmissionStatus.SUBMITTED
    assert result.submission.score is None
    assert result.submission.max_score is None
    answer = result.submission.answers.get()
    assert answer.text_content == "It was sunny."
    assert answer.score is None


def test_resubmission_blocked(student, enrolled, mcq_assignment):
    submission_service.save_or_submit(student, mcq_assignment.id, correct_mcq_answers(mcq_assignment))
    with pytest.raises(InvalidState):
        submission_service.save_or_submit(student, mcq_assignment.id, [], is_draft=True)
    with pytest.raises(InvalidState):
        submission_service.save_or_submit(student, mcq_assignment.id, [])


def test_final_submit_after_deadline_rejected_but_draft_allowed(student, enrolled, mcq_assignment):
    mcq_assignment.deadline = timezone.now() - timedelta(hours=1)
    mcq_assignment.save()
    draft = submission_service.save_or_submit(student, mcq_assignment.id, [], is_draft=True)
    assert draft.submission.status == SubmissionStatus.IN_PROGRESS
    with pytest.raises(InvalidState):
        submission_service.save_or_submit(student, mcq_assignment.id, correct_mcq_answers(mcq_assignment))


@pytest.mark.parametrize("status", [AssignmentStatus.DRAFT, AssignmentStatus.CLOSED])
def test_assignment_must_be_open(student, enrolled, mcq_assignment, status):
    mcq_assignment.status = status
    mcq_assignment.save()
    with pytest.raises(InvalidState):
        submission_service.save_or_submit(student, mcq_assignment.id, [], is_draft=True)
    assert not Submission.objects.exists()


def test_not_enrolled_student_forbidden(mcq_assignment):
    outsider = make_user("outsider@example.com")
    with pytest.raises(PermissionDenied):
        submission_service.save_or_submit(outsider, mcq_assignment.id, [])


def test_left_student_forbidden(student, enrolled, classroom, mcq_assignment):
    classroom_service.leave_classroom(student, classroom)
    with pytest.raises(PermissionDenied):
        submission_service.save_or_submit(student, mcq_assignment.id, [])


def test_teacher_cannot_submit(teacher, mcq_assignment):
    with pytest.raises(PermissionDenied):
        submission_service.save_or_submit(teacher, mcq_assignment.id, [])


def test_unknown_assignment(student):
    with pytest.raises(NotFound):
        submission_service.save_or_submit(student, 999999, [])


def test_unknown_question_rejected(student, enrolled, mcq_assignment, tf_assignment):
    foreign = tf_assignment.questions.first()
    with pytest.raises(ValidationError):
        submission_service.save_or_submit(
            student, mcq_assignment.id, [{"question_id": foreign.id, "text_content": "true"}]
        )
    assert not Submission.objects.filter(assignment=mcq_assignment).exists()


def test_duplicate_question_keeps_last_answer(student, enrolled, mcq_assignment, caplog):
    q = mcq_assignment.questions.first()
    right = [o.id for o in q.options.all() if o.is_correct]
    wrong = [o.id for o in q.options.all() if not o.is_correct][:1]
    with caplog.at_level(logging.WARNING, logger="ClassroomApp.domain.services.submission_service"):
        result = submission_service.save_or_submit(
            student, mcq_assignment.id,
            [{"question_id": q.id, "selected_option_ids": wrong}, {"question_id": q.id, "selected_option_ids": right}],
        )
    assert "Duplicate answer" in caplog.text
    answer = result.submission.answers.get()
    assert answer.selected_option_ids == right
    assert answer.score == 1.0
    assert result.summary.correct_answers == 1


def test_auto_graded_assignment_without_questions_has_null_score(teacher, student, enrolled, classroom):
    from ClassroomApp.core.choices import AssignmentType
    from ClassroomApp.domain.services import assignment_service

    empty = assignment_service.create_assignment(
        teacher, classroom,
        {"title": "Empty sheet", "type": AssignmentType.TF_ON_DOCUMENT, "status": AssignmentStatus.OPEN},
    )
    result = submission_service.save_or_submit(student, empty.id, [])
    assert result.summary.total_questions == 0
    assert result.summary.correct_answers == 0
    assert result.summary.score is None
    assert result.submission.status == SubmissionStatus.SUBMITTED
    assert result.submission.score is None
    assert result.submission.max_score is None
