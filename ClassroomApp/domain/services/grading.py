"""Automatic scoring for objective assignment types (MCQ, TF_ON_DOCUMENT).

Pure functions over answer keys and answer payloads, independent of the ORM:
- MCQ: a question is correct iff the selected option ids are exactly the set of
  options flagged correct (same size, same membership).
- TF_ON_DOCUMENT: a question is correct iff the free text equals the stored
  correct text, ignoring case.
A question without an answer counts as incorrect. The normalized score is
``correct / total * scale`` rounded to 2 places, or ``None`` when there are no
questions.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ClassroomApp.core.choices import AssignmentType, AUTO_GRADED_TYPES

DEFAULT_SCALE = 10


@dataclass(frozen=True)
class AnswerKey:
    """Expected answer for a single question."""
    question_id: int
    correct_option_ids: frozenset[int] = frozenset()
    correct_text: str | None = None

    @classmethod
    def from_question(cls, question: Any) -> "AnswerKey":
        """Build a key from a Question model (options are expected to be prefetched)."""
        return cls(
            question_id=question.id,
            correct_option_ids=frozenset(o.id for o in question.options.all() if o.is_correct),
            correct_text=question.correct_text,
        )


@dataclass(frozen=True)
class ScoreSummary:
    correct_answers: int
    total_questions: int
    score: float | None

    def as_details(self) -> dict[str, Any]:
        return {
            "correctAnswers": self.correct_answers,
            "totalQuestions": self.total_questions,
            "scoreOutOf10": self.score,
        }


def is_auto_graded(assignment_type: str) -> bool:
    return assignment_type in AUTO_GRADED_TYPES


def is_answer_correct(assignment_type: str, key: AnswerKey, answer: Mapping[str, Any] | None) -> bool:
    """Judge one answer against its key; a missing answer is incorrect."""
    if answer is None:
        return False
    if assignment_type == AssignmentType.MCQ:
        selected = list(answer.get("selected_option_ids") or [])
        return len(selected) == len(key.correct_option_ids) and set(selected) == key.correct_option_ids
    if assignment_type == AssignmentType.TF_ON_DOCUMENT:
        text = answer.get("text_content")
        if not text or not key.correct_text:
            return False
        return text.casefold() == key.correct_text.casefold()
    raise ValueError(f"{assignment_type} is not auto-gradable")


def normalize(correct: int, total: int, scale: int = DEFAULT_SCALE) -> float | None:
    if total == 0:
        return None
    return round(correct / total * scale, 2)


def score_answers(
    assignment_type: str,
    keys: Iterable[AnswerKey],
    answers_by_question: Mapping[int, Mapping[str, Any]],
    scale: int = DEFAULT_SCALE,
) -> ScoreSummary:
    """Count correct answers across all keys and normalize to ``scale``."""
    keys = list(keys)
    correct = sum(
        1 for key in keys
        if is_answer_correct(assignment_type, key, answers_by_question.get(key.question_id))
    )
    return ScoreSummary(
        correct_answers=correct,
        total_questions=len(keys),
        score=normalize(correct, len(keys), scale),
    )
