"""
Tests for the result lifecycle: answers, finish, teacher controls, manual grading
"""
import uuid

import pytest

from quizroom.errors import Forbidden, InvalidStateTransition, NotFound, ResultTerminal, ValidationError
from quizroom.models import Answer, Result
from quizroom.services.quiz_service import quiz_service
from quizroom.services.result_service import result_service

from conftest import OTHER_STUDENT_ID, STUDENT_ID


@pytest.fixture
def attempt(db_session, started_exam):
    """A student who joined and started the running exam"""
    quiz_service.join(db_session, STUDENT_ID, "ABC123")
    result, _ = result_service.start(db_session, STUDENT_ID, started_exam.quiz_id)
    return result


def answer_all_correct(db_session, result, exam):
    result_service.record_answer(db_session, result.id, exam.single, exam.single_right, 12)
    result_service.record_answer(db_session, result.id, exam.true_false, exam.tf_true, 3)
    result_service.record_answer(db_session, result.id, exam.multi, [exam.multi_b, exam.multi_a], 20)
    result_service.record_answer(db_session, result.id, exam.short, "isaac newton", 15)


class TestStart:

    def test_join_then_start_promotes_waiting(self, db_session, started_exam):
        joined = quiz_service.join(db_session, STUDENT_ID, "ABC123")
        result, action = result_service.start(db_session, STUDENT_ID, started_exam.quiz_id)

        assert result.id == joined["result_id"]
        assert action == "started"
        assert result.status == "in_progress"
        assert result.started_at is not None

    def test_second_start_resumes(self, db_session, attempt, started_exam):
        result, action = result_service.start(db_session, STUDENT_ID, started_exam.quiz_id)
        assert action == "resumed"
        assert result.id == attempt.id
        assert db_session.query(Result).count() == 1

    def test_start_without_join_creates_attempt(self, db_session, started_exam):
        result, action = result_service.start(db_session, OTHER_STUDENT_ID, started_exam.quiz_id)
        assert action == "started"
        assert result.status == "in_progress"

    def test_quiz_not_started(self, db_session, exam):
        quiz_service.join(db_session, STUDENT_ID, "ABC123")
        with pytest.raises(InvalidStateTransition):
            result_service.start(db_session, STUDENT_ID, exam.quiz_id)

    def test_off_roster(self, db_session, started_exam):
        with pytest.raises(Forbidden):
            result_service.start(db_session, "stranger", started_exam.quiz_id)

    def test_after_submit(self, db_session, attempt, started_exam):
        result_service.finish(db_session, attempt.id)
        with pytest.raises(ResultTerminal):
            result_service.start(db_session, STUDENT_ID, started_exam.quiz_id)


class TestRecordAnswer:

    def test_answer_flip_overwrites_single_row(self, db_session, attempt, started_exam):
        answer, grade = result_service.record_answer(
            db_session, attempt.id, started_exam.single, started_exam.single_right, 10
        )
        assert grade.is_correct is True
        assert answer.points_awarded == 2

        answer, grade = result_service.record_answer(
            db_session, attempt.id, started_exam.single, started_exam.single_wrong, 14
        )
        assert grade.is_correct is False
        assert answer.is_correct is False
        assert answer.points_awarded == 0
        assert answer.time_taken_seconds == 14

        rows = db_session.query(Answer).filter(Answer.result_id == attempt.id).all()
        assert len(rows) == 1

    def test_multi_select_any_order(self, db_session, attempt, started_exam):
        _, first = result_service.record_answer(
            db_session, attempt.id, started_exam.multi, f"{started_exam.multi_a},{started_exam.multi_b}"
        )
        _, second = result_service.record_answer(
            db_session, attempt.id, started_exam.multi, [started_exam.multi_b, started_exam.multi_a]
        )
        assert first.is_correct is True
        assert second.is_correct is True

    def test_manual_question_is_pending(self, db_session, attempt, started_exam):
        answer, grade = result_service.record_answer(
            db_session, attempt.id, started_exam.manual, "An object keeps moving unless pushed."
        )
        assert grade.is_pending
        assert answer.is_correct is None

    def test_question_from_another_quiz(self, db_session, attempt):
        with pytest.raises(NotFound):
            result_service.record_answer(db_session, attempt.id, uuid.uuid4(), "x")

    def test_malformed_payload(self, db_session, attempt, started_exam):
        with pytest.raises(ValidationError):
            result_service.record_answer(db_session, attempt.id, started_exam.single, 7)

    def test_paused_attempt_cannot_answer(self, db_session, attempt, started_exam):
        result_service.control(db_session, attempt.id, "pause")
        with pytest.raises(Forbidden):
            result_service.record_answer(db_session, attempt.id, started_exam.single, started_exam.single_right)

        result_service.control(db_session, attempt.id, "resume")
        _, grade = result_service.record_answer(
            db_session, attempt.id, started_exam.single, started_exam.single_right
        )
        assert grade.is_correct is True

    def test_blocked_attempt_cannot_answer(self, db_session, attempt, started_exam):
        result_service.control(db_session, attempt.id, "block")
        with pytest.raises(Forbidden):
            result_service.record_answer(db_session, attempt.id, started_exam.single, started_exam.single_right)

    def test_answer_after_quiz_finished(self, db_session, attempt, started_exam):
        quiz_service.set_status(db_session, started_exam.quiz_id, "finished")
        with pytest.raises(Forbidden):
            result_service.record_answer(db_session, attempt.id, started_exam.single, started_exam.single_right)

    def test_answer_after_submit(self, db_session, attempt, started_exam):
        result_service.finish(db_session, attempt.id)
        with pytest.raises(ResultTerminal):
            result_service.record_answer(db_session, attempt.id, started_exam.single, started_exam.single_right)


class TestFinish:

    def test_summary_recomputed_from_answers(self, db_session, attempt, started_exam):
        answer_all_correct(db_session, attempt, started_exam)
        summary = result_service.finish(db_session, attempt.id)

        assert summary["status"] == "submitted"
        assert summary["score"] == 8
        assert summary["total_points"] == 13
        assert summary["correct_answers"] == 4
        assert summary["total_questions"] == 5
        assert summary["answered"] == 4
        assert summary["submitted_at"] is not None

    def test_finish_is_idempotent(self, db_session, attempt, started_exam):
        answer_all_correct(db_session, attempt, started_exam)
        first = result_service.finish(db_session, attempt.id)
        second = result_service.finish(db_session, attempt.id)

        assert second["status"] == "submitted"
        assert second["score"] == first["score"]
        assert second["total_points"] == first["total_points"]
        assert second["submitted_at"] == first["submitted_at"]

    def test_stale_answer_cache_is_not_trusted(self, db_session, attempt, started_exam):
        answer, _ = result_service.record_answer(
            db_session, attempt.id, started_exam.single, started_exam.single_wrong
        )
        answer.is_correct = True
        answer.points_awarded = 2
        db_session.commit()

        summary = result_service.finish(db_session, attempt.id)
        assert summary["score"] == 0

    def test_waiting_attempt_cannot_finish(self, db_session, exam):
        joined = quiz_service.join(db_session, STUDENT_ID, "ABC123")

        with pytest.raises(InvalidStateTransition):
            result_service.finish(db_session, joined["result_id"])

        result = db_session.query(Result).one()
        assert result.status == "waiting"
        assert result.submitted_at is None

        quiz_service.set_status(db_session, exam.quiz_id, "started")
        started, action = result_service.start(db_session, STUDENT_ID, exam.quiz_id)
        assert action == "started"
        assert started.status == "in_progress"

    def test_waiting_cannot_jump_to_submitted(self, db_session, exam):
        joined = quiz_service.join(db_session, STUDENT_ID, "ABC123")
        result = result_service.get_result(db_session, joined["result_id"])
        with pytest.raises(InvalidStateTransition):
            result_service.transition(result, "submitted")

    def test_paused_attempt_cannot_finish(self, db_session, attempt):
        result_service.control(db_session, attempt.id, "pause")
        with pytest.raises(Forbidden):
            result_service.finish(db_session, attempt.id)

    def test_pending_manual_answer_flagged(self, db_session, attempt, started_exam):
        result_service.record_answer(db_session, attempt.id, started_exam.manual, "Objects resist change.")
        summary = result_service.finish(db_session, attempt.id)

        assert summary["pending_count"] == 1
        assert summary["has_manual_grading"] is True
        assert summary["score"] == 0


class TestSummaryDeterminism:

    def test_answer_order_does_not_change_summary(self, db_session, started_exam):
        quiz_service.join(db_session, STUDENT_ID, "ABC123")
        quiz_service.join(db_session, OTHER_STUDENT_ID, "ABC123")
        first, _ = result_service.start(db_session, STUDENT_ID, started_exam.quiz_id)
        second, _ = result_service.start(db_session, OTHER_STUDENT_ID, started_exam.quiz_id)

        steps = [
            (started_exam.single, started_exam.single_right),
            (started_exam.multi, [started_exam.multi_a, started_exam.multi_c]),
            (started_exam.short, "Isaac Newton"),
            (started_exam.true_false, started_exam.tf_false),
        ]
        for question_id, answer in steps:
            result_service.record_answer(db_session, first.id, question_id, answer)
        for question_id, answer in reversed(steps):
            result_service.record_answer(db_session, second.id, question_id, answer)

        one = result_service.calculate_summary(db_session, first)
        two = result_service.calculate_summary(db_session, second)
        assert one == two
        assert one["score"] == 4


class TestControls:

    def test_block_is_permanent(self, db_session, attempt):
        result_service.control(db_session, attempt.id, "block")
        with pytest.raises(Forbidden):
            result_service.set_pause_block(db_session, attempt.id, blocked=False)

    def test_block_stops_finish(self, db_session, attempt):
        result_service.control(db_session, attempt.id, "block")
        with pytest.raises(Forbidden):
            result_service.finish(db_session, attempt.id)

    def test_unknown_action(self, db_session, attempt):
        with pytest.raises(ValidationError):
            result_service.control(db_session, attempt.id, "kick")

    def test_attempt_status(self, db_session, attempt):
        result = result_service.control(db_session, attempt.id, "pause")
        status = result_service.get_attempt_status(result)
        assert status["is_paused"] is True
        assert status["is_blocked"] is False
        assert status["status"] == "in_progress"


class TestManualGrading:

    def test_grade_moves_result_to_graded(self, db_session, attempt, started_exam):
        answer_all_correct(db_session, attempt, started_exam)
        result_service.record_answer(db_session, attempt.id, started_exam.manual, "Objects resist change.")
        result_service.finish(db_session, attempt.id)

        summary = result_service.grade_manually(db_session, attempt.id, started_exam.manual, 4)

        assert summary["status"] == "graded"
        assert summary["score"] == 12
        assert summary["pending_count"] == 0

    def test_points_above_maximum_rejected(self, db_session, attempt, started_exam):
        result_service.record_answer(db_session, attempt.id, started_exam.manual, "text")
        result_service.finish(db_session, attempt.id)

        with pytest.raises(ValidationError):
            result_service.grade_manually(db_session, attempt.id, started_exam.manual, 6)

    def test_only_after_submission(self, db_session, attempt, started_exam):
        result_service.record_answer(db_session, attempt.id, started_exam.manual, "text")
        with pytest.raises(InvalidStateTransition):
            result_service.grade_manually(db_session, attempt.id, started_exam.manual, 3)

    def test_auto_graded_question_rejected(self, db_session, attempt, started_exam):
        result_service.record_answer(db_session, attempt.id, started_exam.short, "Newton")
        result_service.finish(db_session, attempt.id)
        with pytest.raises(ValidationError):
            result_service.grade_manually(db_session, attempt.id, started_exam.short, 2)

    def test_unanswered_question(self, db_session, attempt, started_exam):
        result_service.finish(db_session, attempt.id)
        with pytest.raises(NotFound):
            result_service.grade_manually(db_session, attempt.id, started_exam.manual, 1)


class TestReadViews:

    def test_details_list_every_question(self, db_session, attempt, started_exam):
        result_service.record_answer(db_session, attempt.id, started_exam.single, started_exam.single_right)
        details = result_service.get_result_details(db_session, attempt)

        assert len(details["answers"]) == 5
        first = details["answers"][0]
        assert first["question_id"] == started_exam.single
        assert first["is_correct"] is True
        assert details["answers"][1]["response"] is None

    def test_list_results_puts_submitted_first(self, db_session, attempt, started_exam):
        other, _ = result_service.start(db_session, OTHER_STUDENT_ID, started_exam.quiz_id)
        result_service.finish(db_session, other.id)

        listed = result_service.list_results(db_session, started_exam.quiz_id)
        assert [row["result_id"] for row in listed] == [other.id, attempt.id]

    def test_list_results_by_status(self, db_session, attempt, started_exam):
        other, _ = result_service.start(db_session, OTHER_STUDENT_ID, started_exam.quiz_id)
        result_service.finish(db_session, other.id)

        submitted = result_service.list_results(db_session, started_exam.quiz_id, "submitted")
        running = result_service.list_results(db_session, started_exam.quiz_id, "in_progress")
        assert [row["result_id"] for row in submitted] == [other.id]
        assert [row["result_id"] for row in running] == [attempt.id]

    def test_list_results_unknown_status(self, db_session, started_exam):
        with pytest.raises(ValidationError):
            result_service.list_results(db_session, started_exam.quiz_id, "finished")
