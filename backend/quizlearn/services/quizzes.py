"""Quiz generation and delivery.

A topic gets at most one quiz. The quiz is generated on first request from the
provider's JSON answer, validated strictly, and stored; later requests return
the stored copy. Delivery strips the answers before anything leaves the server.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, model_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import InvalidResponse, NotFound
from ..gemini_client import GeminiClient
from ..models import Course, Quiz, Topic

logger = logging.getLogger(__name__)

OPTIONS_PER_QUESTION = 4
DEFAULT_NUM_QUESTIONS = 5

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.S)


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    options: List[str] = Field(min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correct_answer: str = Field(alias="correctAnswer")

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> "GeneratedQuestion":
        if self.correct_answer not in self.options:
            raise ValueError("correctAnswer must equal one of the options")
        return self


class GeneratedQuiz(BaseModel):
    questions: List[GeneratedQuestion] = Field(min_length=1)


def build_quiz_prompt(topic: Topic, course: Course, num_questions: int) -> str:
    return (
        f"Generate {num_questions} multiple-choice questions from the topic below.\n\n"
        "Rules:\n"
        "- Each question must have:\n"
        "  - question (string)\n"
        "  - options (array of exactly 4 strings)\n"
        "  - correctAnswer (string, must match one option exactly)\n"
        f"- Return exactly {num_questions} questions\n"
        "- Return ONLY valid JSON\n"
        "- No markdown\n"
        "- No explanation\n\n"
        f"Topic Title: {topic.title}\n"
        f"Topic Description: {topic.description}\n"
        f"Course: {course.title}\n\n"
        "JSON format:\n"
        '{"questions": [{"question": "", "options": ["", "", "", ""], "correctAnswer": ""}]}'
    )


def extract_json_document(text: str) -> Dict[str, Any]:
    """Parse a response that must consist of one JSON object.

    A single surrounding markdown fence is tolerated; any other text before or
    after the object is rejected.
    """
    candidate = (text or "").strip()
    fenced = _FENCE_RE.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    if not candidate.startswith("{") or not candidate.endswith("}"):
        raise InvalidResponse("Provider response is not a bare JSON object")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise InvalidResponse(f"Provider response is not valid JSON: {exc}")
    if not isinstance(data, dict):
        raise InvalidResponse("Provider response is not a JSON object")
    return data


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    where = ".".join(str(part) for part in first.get("loc", ())) or "document"
    return f"{where}: {first.get('msg', 'invalid value')}"


def parse_quiz_response(text: str) -> List[Dict[str, Any]]:
    """Turn provider text into the list of question dicts that gets stored."""
    data = extract_json_document(text)
    if not isinstance(data.get("questions"), list):
        raise InvalidResponse("Provider response is missing the questions array")
    try:
        quiz = GeneratedQuiz.model_validate(data)
    except ValidationError as exc:
        raise InvalidResponse(f"Provider quiz failed validation: {_describe_validation_error(exc)}")
    return [q.model_dump(by_alias=True) for q in quiz.questions]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_quiz(quiz: Quiz, *, include_answers: bool = True) -> Dict[str, Any]:
    if include_answers:
        questions = [
            {"question": q["question"], "options": list(q["options"]), "correctAnswer": q["correctAnswer"]}
            for q in quiz.questions
        ]
    else:
        questions = [{"question": q["question"], "options": list(q["options"])} for q in quiz.questions]
    return {
        "id": quiz.id,
        "topicId": quiz.topic_id,
        "courseId": quiz.course_id,
        "questions": questions,
        "createdAt": _iso(quiz.created_at),
    }


def find_quiz_for_topic(db: Session, topic_id: int) -> Optional[Quiz]:
    return db.query(Quiz).filter(Quiz.topic_id == topic_id).order_by(Quiz.id).first()


async def generate_quiz(
    db: Session,
    client: GeminiClient,
    topic_id: int,
    num_questions: int = DEFAULT_NUM_QUESTIONS,
) -> Tuple[Quiz, bool]:
    """Return ``(quiz, created)`` for the topic, generating it on first use."""
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise NotFound("Topic not found")
    course = db.get(Course, topic.course_id)
    if course is None:
        raise NotFound("Course not found")

    existing = find_quiz_for_topic(db, topic.id)
    if existing is not None:
        return existing, False

    text = await client.generate(build_quiz_prompt(topic, course, num_questions))
    questions = parse_quiz_response(text)

    quiz = Quiz(topic_id=topic.id, course_id=course.id, questions=questions)
    db.add(quiz)
    try:
        db.commit()
    except IntegrityError:
        # Lost the race to a concurrent request for the same topic
        db.rollback()
        winner = find_quiz_for_topic(db, topic.id)
        if winner is None:
            raise
        logger.info("Quiz for topic %s was created concurrently; returning quiz %s", topic.id, winner.id)
        return winner, False
    db.refresh(quiz)
    logger.info("Generated quiz %s for topic %s with %d questions", quiz.id, topic.id, len(questions))
    return quiz, True


def fetch_quiz_for_topic(db: Session, topic_id: int) -> Dict[str, Any]:
    """Quiz for display: question text and options only."""
    quiz = find_quiz_for_topic(db, topic_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    out = serialize_quiz(quiz, include_answers=False)
    out["topicTitle"] = quiz.topic.title if quiz.topic is not None else None
    return out
