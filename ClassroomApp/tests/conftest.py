import pytest
from django.core.cache import cache
from model_bakery import baker

from ClassroomApp.core.choices import AssignmentStatus, AssignmentType, UserRole
from ClassroomApp.domain.services import assignment_service, classroom_service


@pytest.fixture(autouse=True)
def _isolated_state(settings, tmp_path):
    """Fresh throttle counters and a throwaway media root for every test."""
    cache.clear()
    settings.MEDIA_ROOT = tmp_path
    yield
    cache.clear()


def make_user(email, role=UserRole.STUDENT, **extra):
    u = baker.make("users.User", email=email, username=email, role=role, **extra)
    u.set_password("pass1234"); u.save()
    return u


@pytest.fixture
def teacher():
    return make_user("teacher@example.com", UserRole.TEACHER)


@pytest.fixture
def other_teacher():
    return make_user("teacher2@example.com", UserRole.TEACHER)


@pytest.fixture
def admin_user():
    return make_user("admin@example.com", UserRole.ADMIN)


@pytest.fixture
def manager():
    return make_user("manager@example.com", UserRole.MANAGER)


@pytest.fixture
def student():
    return make_user("student@example.com")


@pytest.fixture
def classroom(teacher):
    return classroom_service.create_classroom(teacher, {"name": "English A1", "subject": "English"})


@pytest.fixture
def enrolled(classroom, student):
    enrollment, _ = classroom_service.join_classroom(student, classroom.code)
    return enrollment


@pytest.fixture
def mcq_assignment(teacher, classroom):
    """Open MCQ with four questions; option index 0 is the correct one except Q4 (0 and 1)."""
    questions = [
        {"content": f"Q{i}", "options": [
            {"content": "a", "is_correct": True},
            {"content": "b", "is_correct": i == 4},
            {"content": "c"},
        ]}
        for i in range(1, 5)
    ]
    return assignment_service.create_assignment(
        teacher, classroom,
        {"title": "Vocabulary", "type": AssignmentType.MCQ, "status": AssignmentStatus.OPEN},
        questions=questions,
    )


@pytest.fixture
def tf_assignment(teacher, classroom):
    questions = [
        {"content": "The author is French.", "correct_text": "True"},
        {"content": "The story is set in winter.", "correct_text": "False"},
    ]
    return assignment_service.create_assignment(
        teacher, classroom,
        {"title": "Reading", "type": AssignmentType.TF_ON_DOCUMENT, "status": AssignmentStatus.OPEN},
        questions=questions,
    )


@pytest.fixture
def essay_assignment(teacher, classroom):
    return assignment_service.create_assignment(
        teacher, classroom,
        {"title": "My summer", "type": AssignmentType.ESSAY, "status": AssignmentStatus.OPEN},
        questions=[{"content": "Write 200 words about your summer."}],
    )


def correct_mcq_answers(assignment):
    """Answer payloads selecting exactly the correct options of every question."""
    return [
        {"question_id": q.id, "selected_option_ids": [o.id for o in q.options.all() if o.is_correct]}
        for q in assignment.questions.all()
    ]
