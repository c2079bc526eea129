"""Per-user progress analytics built from score records.

Every submission contributes one percentage; a topic's accuracy is the plain
mean of its submissions' percentages, regardless of how many questions each
submission had.
"""
from __future__ import annotations

import logging
from fractions import Fraction
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..errors import NotFound
from ..gemini_client import GeminiClient
from ..models import Purchase, ScoreRecord, Topic
from ..settings import settings
from .scoring import round_half_up

logger = logging.getLogger(__name__)

class TopicProgress:
    def __init__(self, topic_id: Optional[int], title: str) -> None:
        self.topic_id = topic_id
        self.title = title
        self.percentages: List[Fraction] = []

    @property
    def mean(self) -> Fraction:
        if not self.percentages:
            return Fraction(0)
        return sum(self.percentages) / len(self.percentages)


def record_percentage(record: ScoreRecord) -> Fraction:
    if not record.total_questions:
        return Fraction(0)
    return Fraction(record.score * 100, record.total_questions)


def _user_records(db: Session, user_id: int) -> List[ScoreRecord]:
    return (
        db.query(ScoreRecord)
        .filter(ScoreRecord.user_id == user_id)
        .order_by(ScoreRecord.submitted_at, ScoreRecord.id)
        .all()
    )


def _title_of(record: ScoreRecord) -> str:
    return record.topic.title if record.topic is not None else f"Topic {record.topic_id}"


def topic_progress(db: Session, user_id: int) -> List[TopicProgress]:
    """Group the user's submissions by topic id, in order of first attempt."""
    grouped: Dict[int, TopicProgress] = {}
    for record in _user_records(db, user_id):
        progress = grouped.get(record.topic_id)
        if progress is None:
            progress = grouped[record.topic_id] = TopicProgress(record.topic_id, _title_of(record))
        progress.percentages.append(record_percentage(record))
    return list(grouped.values())


def title_progress(db: Session, user_id: int) -> List[TopicProgress]:
    """Like ``topic_progress`` but topics sharing a title are pooled into one entry."""
    grouped: Dict[str, TopicProgress] = {}
    for record in _user_records(db, user_id):
        title = _title_of(record)
        progress = grouped.get(title)
        if progress is None:
            progress = grouped[title] = TopicProgress(None, title)
        progress.percentages.append(record_percentage(record))
    return list(grouped.values())


def _resolve(threshold: Optional[float]) -> float:
    return settings.weak_topic_threshold if threshold is None else threshold


def weak_topics(db: Session, user_id: int, threshold: Optional[float] = None) -> List[Dict[str, Any]]:
    threshold = _resolve(threshold)
    return [
        {"topicId": p.topic_id, "topicTitle": p.title, "averageScore": round_half_up(p.mean)}
        for p in topic_progress(db, user_id)
        if p.mean < threshold
    ]


def analytics(db: Session, user_id: int, threshold: Optional[float] = None) -> Dict[str, Any]:
    threshold = _resolve(threshold)
    progress = title_progress(db, user_id)
    total_quizzes = sum(len(p.percentages) for p in progress)
    overall = sum((p.mean for p in progress), Fraction(0)) / len(progress) if progress else Fraction(0)
    return {
        "analytics": [{"topic": p.title, "accuracy": round_half_up(p.mean)} for p in progress],
        "stats": {
            "totalQuizzes": total_quizzes,
            "weakTopicsCount": sum(1 for p in progress if p.mean < threshold),
            "overallAccuracy": round_half_up(overall),
        },
    }


def _build_recommendation_prompt(strong: List[str], weak: List[str], remaining: List[str]) -> str:
    return (
        "You are a learning advisor.\n"
        "Based on the following student progress, suggest what they should study next.\n\n"
        f"Completed Topics (Strong): {', '.join(strong) or 'None'}\n"
        f"Weak Topics (Need Revision): {', '.join(weak) or 'None'}\n"
        f"Remaining Topics: {', '.join(remaining) or 'None'}\n\n"
        "Provide:\n"
        "1. What to study next (prioritize weak topics first)\n"
        "2. Why this order is recommended\n"
        "3. Tips for improvement\n\n"
        "Keep the response concise and actionable."
    )


async def recommendations(
    db: Session,
    client: GeminiClient,
    user_id: int,
    threshold: Optional[float] = None,
) -> Dict[str, Any]:
    threshold = _resolve(threshold)
    progress = topic_progress(db, user_id)
    attempted = {p.topic_id for p in progress}
    strong = [p.title for p in progress if p.mean >= threshold]
    weak = [p.title for p in progress if p.mean < threshold]

    course_ids = [row.course_id for row in db.query(Purchase).filter(Purchase.user_id == user_id).all()]
    remaining: List[str] = []
    if course_ids:
        topics = db.query(Topic).filter(Topic.course_id.in_(course_ids)).order_by(Topic.id).all()
        remaining = [t.title for t in topics if t.id not in attempted]

    text = await client.generate(_build_recommendation_prompt(strong, weak, remaining))
    return {
        "recommendations": text,
        "weakTopics": weak,
        "strongTopics": strong,
        "remainingTopics": remaining,
    }


def _build_explanation_prompt(topic: Topic) -> str:
    course_title = topic.course.title if topic.course is not None else ""
    return (
        "Explain the following topic in very simple terms.\n"
        "Use examples and avoid heavy jargon.\n"
        "Make it easy to understand for someone who is struggling with this concept.\n\n"
        f"Topic: {topic.title}\n"
        f"Description: {topic.description}\n"
        f"Course: {course_title}\n\n"
        "Provide:\n"
        "1. A simple explanation\n"
        "2. Real-world examples\n"
        "3. Common mistakes to avoid\n"
        "4. Key points to remember\n\n"
        "Format your response in a clear, friendly way."
    )


async def explain_topic(db: Session, client: GeminiClient, topic_id: int) -> Dict[str, Any]:
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise NotFound("Topic not found")
    text = await client.generate(_build_explanation_prompt(topic))
    return {"topicTitle": topic.title, "explanation": text}
