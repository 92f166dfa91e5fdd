import pytest
from rest_framework.test import APIClient

from ClassroomApp.core.choices import SubmissionStatus
from ClassroomApp.learning.models import Submission

pytestmark = pytest.mark.django_db


def login(user):
    client = APIClient()
    token = client.post("/api/v1/auth/token/", {"email": user.email, "password": "pass1234"}, format="json").data["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def mcq_payload(assignment, correct=True, is_draft=False):
    answers = []
    for q in assignment.questions.all():
        chosen = [o.id for o in q.options.all() if o.is_correct == correct][:1 if not correct else None]
        answers.append({"questionId": q.id, "selectedOptionIds": chosen})
    return {"answers": answers, "isDraft": is_draft}


def test_submit_requires_authentication(mcq_assignment):
    resp = APIClient().post(f"/api/v1/assignments/{mcq_assignment.id}/submit/", {"answers": []}, format="json")
    assert resp.status_code == 401


def test_student_submits_mcq_and_gets_score(student, enrolled, mcq_assignment):
    client = login(student)
    resp = client.post(f"/api/v1/assignments/{mcq_assignment.id}/submit/", mcq_payload(mcq_assignment), format="json")
    assert resp.status_code == 200
    assert resp.data["success"] is True
    assert resp.data["score"] == 10.0
    assert resp.data["details"] == {"correctAnswers": 4, "totalQuestions": 4, "scoreOutOf10": 10.0}
    assert resp.data["submission"]["status"] == SubmissionStatus.SUBMITTED


def test_draft_save_has_no_score(student, enrolled, mcq_assignment):
    client = login(student)
    resp = client.post(
        f"/api/v1/assignments/{mcq_assignment.id}/submit/",
        mcq_payload(mcq_assignment, is_draft=True),
        format="json",
    )
    assert resp.status_code == 200
    assert "score" not in resp.data
    assert resp.data["submission"]["status"] == SubmissionStatus.IN_PROGRESS


def test_second_final_submit_is_rejected(student, enrolled, mcq_assignment):
    client = login(student)
    url = f"/api/v1/assignments/{mcq_assignment.id}/submit/"
    assert client.post(url, mcq_payload(mcq_assignment), format="json").status_code == 200
    again = client.post(url, mcq_payload(mcq_assignment, correct=False), format="json")
    assert again.status_code == 400
    assert Submission.objects.get().score == 10.0


def test_unenrolled_student_gets_404(mcq_assignment):
    from ClassroomApp.tests.conftest import make_user

    client = login(make_user("lost@example.com"))
    resp = client.get(f"/api/v1/assignments/{mcq_assignment.id}/")
    assert resp.status_code == 404


def test_submit_forbidden_when_not_enrolled(mcq_assignment):
    from ClassroomApp.tests.conftest import make_user

    client = login(make_user("lost@example.com"))
    resp = client.post(f"/api/v1/assignments/{mcq_assignment.id}/submit/", {"answers": []}, format="json")
    assert resp.status_code == 403


def test_student_view_never_shows_answer_key(student, enrolled, mcq_assignment):
    client = login(student)
    before = client.get(f"/api/v1/assignments/{mcq_assignment.id}/")
    assert before.status_code == 200
    assert before.data["submission"] is None
    option = before.data["assignment"]["questions"][0]["options"][0]
    assert "is_correct" not in option

    client.post(f"/api/v1/assignments/{mcq_assignment.id}/submit/", mcq_payload(mcq_assignment), format="json")
    after = client.get(f"/api/v1/assignments/{mcq_assignment.id}/")
    for question in after.data["assignment"]["questions"]:
        assert "correct_text" not in question
        assert all("is_correct" not in o for o in question["options"])
    assert after.data["submission"]["score"] == 10.0


def test_teacher_sees_all_submissions(teacher, student, enrolled, mcq_assignment):
    login(student).post(f"/api/v1/assignments/{mcq_assignment.id}/submit/", mcq_payload(mcq_assignment), format="json")
    resp = login(teacher).get(f"/api/v1/assignments/{mcq_assignment.id}/")
    assert resp.status_code == 200
    assert len(resp.data["submissions"]) == 1
    assert resp.data["submissions"][0]["student"]["email"] == student.email


def test_teacher_grades_essay(teacher, student, enrolled, essay_assignment):
    q = essay_assignment.questions.first()
    sub = login(student).post(
        f"/api/v1/assignments/{essay_assignment.id}/submit/",
        {"answers": [{"questionId": q.id, "textContent": "My essay"}]},
        format="json",
    )
    assert sub.status_code == 200
    assert "score" not in sub.data
    submission_id = sub.data["submission"]["id"]

    resp = login(teacher).post(
        f"/api/v1/submissions/{submission_id}/grade/",
        {"score": 8, "maxScore": 10, "feedback": "Nice"},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.data["submission"]["status"] == SubmissionStatus.GRADED
    assert resp.data["submission"]["score"] == 8
    assert resp.data["submission"]["feedback"]["comment"] == "Nice"

    mine = login(student).get(f"/api/v1/submissions/{submission_id}/")
    assert mine.status_code == 200
    assert mine.data["feedback"]["comment"] == "Nice"


def test_grade_by_other_teacher_forbidden(other_teacher, student, enrolled, essay_assignment):
    q = essay_assignment.questions.first()
    sub = login(student).post(
        f"/api/v1/assignments/{essay_assignment.id}/submit/",
        {"answers": [{"questionId": q.id, "textContent": "x"}]},
        format="json",
    )
    resp = login(other_teacher).post(
        f"/api/v1/submissions/{sub.data['submission']['id']}/grade/",
        {"score": 1, "maxScore": 10},
        format="json",
    )
    assert resp.status_code == 403


def test_grade_missing_submission_is_404(teacher):
    resp = login(teacher).post("/api/v1/submissions/98765/grade/", {"score": 1, "maxScore": 10}, format="json")
    assert resp.status_code == 404


def test_grade_rejects_negative_score(teacher, student, enrolled, essay_assignment):
    sub = login(student).post(f"/api/v1/assignments/{essay_assignment.id}/submit/", {"answers": []}, format="json")
    resp = login(teacher).post(
        f"/api/v1/submissions/{sub.data['submission']['id']}/grade/",
        {"score": -2, "maxScore": 10},
        format="json",
    )
    assert resp.status_code == 400


def test_submission_list_is_scoped(teacher, student, enrolled, essay_assignment):
    from ClassroomApp.tests.conftest import make_user

    login(student).post(f"/api/v1/assignments/{essay_assignment.id}/submit/", {"answers": []}, format="json")
    assert login(teacher).get("/api/v1/submissions/").data["count"] == 1
    assert login(student).get("/api/v1/submissions/").data["count"] == 1
    assert login(make_user("nobody@example.com")).get("/api/v1/submissions/").data["count"] == 0


def test_teacher_view_keeps_answer_key(teacher, mcq_assignment):
    resp = login(teacher).get(f"/api/v1/assignments/{mcq_assignment.id}/")
    assert "is_correct" in resp.data["assignment"]["questions"][0]["options"][0]


def test_student_view_hides_tf_correct_text(student, enrolled, tf_assignment):
    client = login(student)
    q = tf_assignment.questions.first()
    client.post(
        f"/api/v1/assignments/{tf_assignment.id}/submit/",
        {"answers": [{"questionId": q.id, "textContent": "True"}]},
        format="json",
    )
    resp = client.get(f"/api/v1/assignments/{tf_assignment.id}/")
    assert all("correct_text" not in question for question in resp.data["assignment"]["questions"])


@pytest.mark.parametrize("method,path", [
    ("post", "/api/v1/assignments/abc/submit/"),
    ("post", "/api/v1/submissions/abc/grade/"),
    ("get", "/api/v1/assignments/abc/"),
])
def test_non_numeric_ids_are_not_found(teacher, student, enrolled, method, path):
    client = login(student if "submit" in path else teacher)
    resp = getattr(client, method)(path, {}, format="json")
    assert resp.status_code == 404


def test_non_numeric_roster_id_is_not_found(teacher, classroom):
    resp = login(teacher).delete(f"/api/v1/classrooms/{classroom.id}/students/abc/")
    assert resp.status_code == 404


def test_manager_reads_all_submissions(manager, student, enrolled, essay_assignment):
    sub = login(student).post(f"/api/v1/assignments/{essay_assignment.id}/submit/", {"answers": []}, format="json")
    client = login(manager)
    assert client.get("/api/v1/submissions/").data["count"] == 1
    assert client.get(f"/api/v1/submissions/{sub.data['submission']['id']}/").status_code == 200
    graded = client.post(
        f"/api/v1/submissions/{sub.data['submission']['id']}/grade/",
        {"score": 5, "maxScore": 10},
        format="json",
    )
    assert graded.status_code == 403
