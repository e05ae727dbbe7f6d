"""
Tests for the instant grading rules
"""
import uuid

import pytest

from quizroom.errors import ValidationError
from quizroom.models import MANUAL_GRADING, Question, QuestionOption
from quizroom.services.grading_service import grading_service


def make_question(question_type, correct=(), wrong=(), points=2, correct_answer=None):
    options = [QuestionOption(id=uuid.uuid4(), option_text=f"right {i}", is_correct=True) for i in range(len(correct))]
    options += [QuestionOption(id=uuid.uuid4(), option_text=f"wrong {i}", is_correct=False) for i in range(len(wrong))]
    return Question(
        id=uuid.uuid4(),
        question_type=question_type,
        question_text="?",
        points=points,
        correct_answer=correct_answer,
        options=options,
    )


def ids(question, correct):
    return [str(o.id) for o in question.options if o.is_correct == correct]


class TestChoiceGrading:
    """Single choice and true/false"""

    def test_correct_option_awards_points(self):
        q = make_question("single_choice", correct=[1], wrong=[1, 1])
        grade = grading_service.grade(q, ids(q, True)[0])
        assert grade.is_correct is True
        assert grade.points == 2

    def test_wrong_option_awards_nothing(self):
        q = make_question("true_false", correct=[1], wrong=[1], points=1)
        grade = grading_service.grade(q, ids(q, False)[0])
        assert grade.is_correct is False
        assert grade.points == 0

    def test_compare_is_string_normalized(self):
        q = make_question("single_choice", correct=[1], wrong=[1])
        grade = grading_service.grade(q, f"  {ids(q, True)[0].upper()} ")
        assert grade.is_correct is True

    def test_blank_response_is_incorrect(self):
        q = make_question("single_choice", correct=[1], wrong=[1])
        assert grading_service.grade(q, None).is_correct is False


class TestMultiSelectGrading:

    def test_order_does_not_matter(self):
        q = make_question("multi_select", correct=[1, 1, 1], wrong=[1], points=3)
        right = ids(q, True)
        forward = grading_service.grade(q, ",".join(right))
        backward = grading_service.grade(q, ",".join(reversed(right)))
        assert forward == backward
        assert forward.is_correct is True
        assert forward.points == 3

    def test_subset_is_incorrect(self):
        q = make_question("multi_select", correct=[1, 1], wrong=[1])
        assert grading_service.grade(q, ids(q, True)[0]).is_correct is False

    def test_extra_option_is_incorrect(self):
        q = make_question("multi_select", correct=[1, 1], wrong=[1])
        response = ",".join(ids(q, True) + ids(q, False))
        assert grading_service.grade(q, response).is_correct is False

    def test_whitespace_and_empty_parts_ignored(self):
        q = make_question("multi_select", correct=[1, 1], wrong=[1])
        a, b = ids(q, True)
        assert grading_service.grade(q, f" {b} ,, {a} ,").is_correct is True


class TestShortAnswerGrading:

    def test_case_and_whitespace_insensitive(self):
        q = make_question("short_answer", correct_answer="Isaac Newton")
        assert grading_service.grade(q, "  isaac NEWTON ").is_correct is True

    def test_mismatch(self):
        q = make_question("short_answer", correct_answer="Isaac Newton")
        assert grading_service.grade(q, "Newton").is_correct is False

    def test_manual_grading_marker_is_pending(self):
        q = make_question("short_answer", correct_answer=MANUAL_GRADING, points=5)
        grade = grading_service.grade(q, "anything")
        assert grade.is_pending
        assert grade.points == 0

    def test_marker_text_never_matches_itself(self):
        q = make_question("short_answer", correct_answer=MANUAL_GRADING)
        assert grading_service.grade(q, MANUAL_GRADING).is_correct is None

    def test_unsupported_type(self):
        q = make_question("essay")
        with pytest.raises(ValidationError):
            grading_service.grade(q, "text")

    def test_unsupported_type_rejected_on_input(self):
        q = make_question("essay")
        with pytest.raises(ValidationError, match="Unsupported question type"):
            grading_service.normalize_answer(q, "text")


class TestNormalizeAnswer:

    def test_list_is_sorted_and_deduplicated(self):
        q = make_question("multi_select", correct=[1, 1], wrong=[1])
        a, b = ids(q, True)
        selected, text = grading_service.normalize_answer(q, [b, a, b])
        assert selected == ",".join(sorted([a, b]))
        assert text is None

    def test_short_answer_keeps_text(self):
        q = make_question("short_answer", correct_answer="x")
        assert grading_service.normalize_answer(q, " Newton ") == (None, " Newton ")

    @pytest.mark.parametrize("payload", [None, 42, {"id": "x"}])
    def test_bad_choice_payload(self, payload):
        q = make_question("single_choice", correct=[1], wrong=[1])
        with pytest.raises(ValidationError):
            grading_service.normalize_answer(q, payload)

    def test_unknown_option(self):
        q = make_question("single_choice", correct=[1], wrong=[1])
        with pytest.raises(ValidationError):
            grading_service.normalize_answer(q, str(uuid.uuid4()))

    def test_two_options_on_single_choice(self):
        q = make_question("single_choice", correct=[1], wrong=[1])
        with pytest.raises(ValidationError):
            grading_service.normalize_answer(q, [o for o in ids(q, True) + ids(q, False)])

    def test_empty_selection(self):
        q = make_question("multi_select", correct=[1], wrong=[1])
        with pytest.raises(ValidationError):
            grading_service.normalize_answer(q, " , ")

    def test_short_answer_requires_text(self):
        q = make_question("short_answer", correct_answer="x")
        with pytest.raises(ValidationError):
            grading_service.normalize_answer(q, ["a"])
