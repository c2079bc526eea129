from __future__ import annotations

import logging
import math
from fractions import Fraction
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import Quiz, ScoreRecord

logger = logging.getLogger(__name__)


class SubmittedAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_index: int = Field(alias="questionIndex")
    selected_answer: Optional[str] = Field(default=None, alias="selectedAnswer")


def round_half_up(value: Union[int, Fraction]) -> int:
    return int(math.floor(value + Fraction(1, 2)))


def percentage_of(score: int, total: int) -> int:
    """``round(100 * score / total)`` with halves rounded up; 0 for an empty quiz."""
    if total <= 0:
        return 0
    return (200 * score + total) // (2 * total)


def grade_answers(questions: Sequence[Dict[str, Any]], answers: Sequence[SubmittedAnswer]) -> List[Dict[str, Any]]:
    by_index: Dict[int, str] = {}
    for answer in answers:
        # First answer for an index wins
        by_index.setdefault(answer.question_index, answer.selected_answer or "")
    details = []
    for index, q in enumerate(questions):
        selected = by_index.get(index, "")
        details.append({
            "question": q["question"],
            "selectedAnswer": selected,
            "correctAnswer": q["correctAnswer"],
            "isCorrect": selected == q["correctAnswer"],
        })
    return details


def serialize_score(record: ScoreRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "userId": record.user_id,
        "quizId": record.quiz_id,
        "topicId": record.topic_id,
        "courseId": record.course_id,
        "score": record.score,
        "totalQuestions": record.total_questions,
        "answers": list(record.answers or []),
        "submittedAt": record.submitted_at.isoformat() if record.submitted_at else None,
    }


def submit_quiz(db: Session, user_id: int, quiz_id: int, answers: Sequence[SubmittedAnswer]) -> Dict[str, Any]:
    quiz = db.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")

    details = grade_answers(quiz.questions or [], answers)
    score = sum(1 for d in details if d["isCorrect"])
    total = len(details)

    record = ScoreRecord(
        user_id=user_id,
        quiz_id=quiz.id,
        topic_id=quiz.topic_id,
        course_id=quiz.course_id,
        score=score,
        total_questions=total,
        answers=details,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("User %s scored %d/%d on quiz %s", user_id, score, total, quiz.id)
    return {
        "message": "Quiz submitted",
        "score": score,
        "totalQuestions": total,
        "percentage": percentage_of(score, total),
        "answers": details,
        "quizScore": serialize_score(record),
    }


def list_scores(db: Session, user_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(ScoreRecord)
        .filter(ScoreRecord.user_id == user_id)
        .order_by(ScoreRecord.submitted_at.desc(), ScoreRecord.id.desc())
        .all()
    )
    out = []
    for row in rows:
        item = serialize_score(row)
        item["percentage"] = percentage_of(row.score, row.total_questions)
        item["topicTitle"] = row.topic.title if row.topic is not None else None
        item["courseTitle"] = row.course.title if row.course is not None else None
        out.append(item)
    return out
