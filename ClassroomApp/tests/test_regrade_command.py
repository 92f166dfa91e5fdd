from io import StringIO

import pytest
from django.core.management import call_command

from ClassroomApp.domain.services import submission_service

pytestmark = pytest.mark.django_db


def test_regrade_picks_up_answer_key_change(student, enrolled, mcq_assignment):
    q = mcq_assignment.questions.first()
    chosen = [o for o in q.options.all() if not o.is_correct][0]
    sub = submission_service.save_or_submit(
        student, mcq_assignment.id, [{"question_id": q.id, "selected_option_ids": [chosen.id]}]
    ).submission
    assert sub.score == 0.0

    # teacher fixes the key of Q1 so the chosen option is the only correct one
    q.options.update(is_correct=False)
    q.options.filter(pk=chosen.pk).update(is_correct=True)

    out = StringIO()
    call_command("regrade_submissions", "--assignment", str(mcq_assignment.id), stdout=out)
    sub.refresh_from_db()
    assert sub.score == 2.5
    assert sub.answers.get().score == 1.0
    assert "Updated 1 submissions" in out.getvalue()


def test_regrade_skips_graded(teacher, student, enrolled, mcq_assignment):
    sub = submission_service.save_or_submit(student, mcq_assignment.id, []).submission
    submission_service.grade_submission(teacher, sub.id, 9, 10)
    out = StringIO()
    call_command("regrade_submissions", stdout=out)
    sub.refresh_from_db()
    assert sub.score == 9
    assert "Updated 0 submissions" in out.getvalue()
