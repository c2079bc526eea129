from typing import Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quizlearn import models
from quizlearn.db import Base, get_db
from quizlearn.errors import ProviderFailure
from quizlearn.main import app
from quizlearn.routers.auth import CurrentUser, get_current_user


QUIZ_JSON = """{
  "questions": [
    {"question": "Which keyword starts a loop?", "options": ["for", "if", "def", "class"], "correctAnswer": "for"},
    {"question": "What does break do?", "options": ["Exits the loop", "Skips one iteration", "Defines a loop", "Nothing"], "correctAnswer": "Exits the loop"},
    {"question": "What does continue do?", "options": ["Exits the loop", "Skips to the next iteration", "Raises", "Returns"], "correctAnswer": "Skips to the next iteration"}
  ]
}"""


class FakeGemini:
    """Scripted stand-in for GeminiClient: pops one reply per call."""

    def __init__(self, replies: Optional[Iterable] = None) -> None:
        self.replies: List = list(replies or [])
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise ProviderFailure("All Gemini models failed")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gemini():
    return FakeGemini()


@pytest.fixture
def client(session_factory, gemini):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    app.state.gemini = gemini
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.gemini = None


@pytest.fixture
def login_as():
    def _login(user: models.User) -> CurrentUser:
        current = CurrentUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_admin=bool(user.is_admin),
        )
        app.dependency_overrides[get_current_user] = lambda: current
        return current

    return _login


def make_user(db, email="learner@example.com", is_admin=False) -> models.User:
    row = models.User(first_name="Ada", last_name="Lovelace", email=email, password_hash="x", is_admin=is_admin)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_course(db, title="Python Basics", creator: Optional[models.User] = None) -> models.Course:
    row = models.Course(title=title, description="Intro to Python", price=10.0, creator_id=creator.id if creator else None)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_topic(db, course: models.Course, title="Loops", description="for and while loops") -> models.Topic:
    row = models.Topic(title=title, description=description, course_id=course.id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_quiz(db, topic: models.Topic, questions: Optional[list] = None) -> models.Quiz:
    if questions is None:
        questions = [
            {"question": f"Q{i}", "options": ["a", "b", "c", "d"], "correctAnswer": "a"}
            for i in range(4)
        ]
    row = models.Quiz(topic_id=topic.id, course_id=topic.course_id, questions=questions)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_score(db, user: models.User, quiz: models.Quiz, score: int, total: int) -> models.ScoreRecord:
    row = models.ScoreRecord(
        user_id=user.id,
        quiz_id=quiz.id,
        topic_id=quiz.topic_id,
        course_id=quiz.course_id,
        score=score,
        total_questions=total,
        answers=[],
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
