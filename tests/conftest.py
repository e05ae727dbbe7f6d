"""
Pytest configuration for the exam engine tests
"""
import os
import uuid
from datetime import timedelta
from types import SimpleNamespace

# Must be set before quizroom.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quizroom.database import Base, get_db
from quizroom.models import MANUAL_GRADING, Question, QuestionOption, Quiz, QuizRoster
from quizroom.services.quiz_service import quiz_service
from quizroom.utils.clock import utcnow

TEACHER_ID = "teacher-1"
STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope='function')
def db_session():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _option(text, correct=False, position=0):
    return QuestionOption(id=uuid.uuid4(), option_text=text, is_correct=correct, position=position)


@pytest.fixture(scope='function')
def exam(db_session):
    """
    Active quiz ABC123 (30 minutes) with one question of every kind and a
    two-student roster
    """
    quiz = Quiz(
        id=uuid.uuid4(),
        teacher_id=TEACHER_ID,
        title="Physics Midterm",
        room_code="ABC123",
        duration_minutes=30,
        status="active",
    )

    single_right, single_wrong = _option("9.8 m/s^2", True, 0), _option("3.0 m/s^2", False, 1)
    single = Question(
        id=uuid.uuid4(), position=0, question_type="single_choice", points=2,
        question_text="Gravitational acceleration on Earth?",
        options=[single_right, single_wrong],
    )

    tf_true, tf_false = _option("True", True, 0), _option("False", False, 1)
    true_false = Question(
        id=uuid.uuid4(), position=1, question_type="true_false", points=1,
        question_text="Light travels faster than sound.",
        options=[tf_true, tf_false],
    )

    multi_a, multi_b, multi_c = _option("Mass", True, 0), _option("Length", True, 1), _option("Velocity", False, 2)
    multi = Question(
        id=uuid.uuid4(), position=2, question_type="multi_select", points=3,
        question_text="Which are SI base quantities?",
        options=[multi_a, multi_b, multi_c],
    )

    short = Question(
        id=uuid.uuid4(), position=3, question_type="short_answer", points=2,
        question_text="Who formulated the laws of motion?",
        correct_answer="Isaac Newton",
    )

    manual = Question(
        id=uuid.uuid4(), position=4, question_type="short_answer", points=5,
        question_text="Explain inertia in your own words.",
        correct_answer=MANUAL_GRADING,
    )

    quiz.questions = [single, true_false, multi, short, manual]
    db_session.add(quiz)
    db_session.add_all([
        QuizRoster(quiz_id=quiz.id, student_id=STUDENT_ID),
        QuizRoster(quiz_id=quiz.id, student_id=OTHER_STUDENT_ID),
    ])
    db_session.commit()

    return SimpleNamespace(
        quiz_id=quiz.id,
        single=single.id,
        single_right=str(single_right.id),
        single_wrong=str(single_wrong.id),
        true_false=true_false.id,
        tf_true=str(tf_true.id),
        tf_false=str(tf_false.id),
        multi=multi.id,
        multi_a=str(multi_a.id),
        multi_b=str(multi_b.id),
        multi_c=str(multi_c.id),
        short=short.id,
        manual=manual.id,
    )


@pytest.fixture(scope='function')
def started_exam(db_session, exam):
    """Same quiz, already started"""
    quiz_service.set_status(db_session, exam.quiz_id, "started")
    return exam


@pytest.fixture(scope='function')
def rewind(db_session):
    """Move a quiz's start time into the past"""
    def _rewind(quiz_id, minutes):
        quiz = db_session.query(Quiz).filter(Quiz.id == quiz_id).first()
        quiz.start_time = utcnow() - timedelta(minutes=minutes)
        db_session.commit()
        return quiz
    return _rewind


@pytest.fixture(scope='function')
def client(db_session):
    """FastAPI test client sharing the test session"""
    from quizroom.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope='function')
def teacher_headers():
    return {"X-Teacher-Id": TEACHER_ID}


@pytest.fixture(scope='function')
def student_headers():
    return {"X-Student-Id": STUDENT_ID}
