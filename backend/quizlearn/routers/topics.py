from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import Conflict, NotFound, PermissionDenied, ValidationFailure
from ..models import Course, Quiz, Topic
from .auth import CurrentUser, get_current_admin


router = APIRouter(prefix="/topic", tags=["topics"])

logger = logging.getLogger(__name__)


class CreateTopicRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    courseId: Optional[int] = None


class UpdateTopicRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


def serialize_topic(topic: Topic) -> Dict[str, Any]:
    return {
        "id": topic.id,
        "title": topic.title,
        "description": topic.description,
        "courseId": topic.course_id,
        "courseTitle": topic.course.title if topic.course is not None else None,
        "createdAt": topic.created_at.isoformat() if topic.created_at else None,
    }


def _owned_topic(db: Session, topic_id: int, admin: CurrentUser, action: str) -> Topic:
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise NotFound("Topic not found")
    course = db.get(Course, topic.course_id)
    if course is None or course.creator_id != admin.id:
        raise PermissionDenied(f"You don't have permission to {action} this topic")
    return topic


@router.post("/create", status_code=201)
async def create_topic(req: CreateTopicRequest, admin: CurrentUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    title = (req.title or "").strip()
    description = (req.description or "").strip()
    if not title or not description or req.courseId is None:
        raise ValidationFailure("All fields are required")
    course = db.get(Course, req.courseId)
    if course is None:
        raise NotFound("Course not found")
    topic = Topic(title=title, description=description, course_id=course.id)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    logger.info("Admin %s created topic %s in course %s", admin.id, topic.id, course.id)
    return {"message": "Topic created successfully", "topic": serialize_topic(topic)}


@router.get("/course/{course_id}")
async def topics_by_course(course_id: int, db: Session = Depends(get_db)):
    rows = (
        db.query(Topic)
        .filter(Topic.course_id == course_id)
        .order_by(Topic.created_at.desc(), Topic.id.desc())
        .all()
    )
    return {"topics": [serialize_topic(t) for t in rows]}


@router.get("/{topic_id}")
async def get_topic(topic_id: int, db: Session = Depends(get_db)):
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise NotFound("Topic not found")
    return {"topic": serialize_topic(topic)}


@router.put("/{topic_id}")
async def update_topic(topic_id: int, req: UpdateTopicRequest, admin: CurrentUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    topic = _owned_topic(db, topic_id, admin, "update")
    if req.title is not None and req.title.strip():
        topic.title = req.title.strip()
    if req.description is not None and req.description.strip():
        topic.description = req.description.strip()
    db.commit()
    db.refresh(topic)
    return {"message": "Topic updated successfully", "topic": serialize_topic(topic)}


@router.delete("/{topic_id}")
async def delete_topic(topic_id: int, admin: CurrentUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    topic = _owned_topic(db, topic_id, admin, "delete")
    if db.query(Quiz).filter(Quiz.topic_id == topic.id).first() is not None:
        raise Conflict("Topic already has a quiz and cannot be deleted")
    db.delete(topic)
    db.commit()
    logger.info("Admin %s deleted topic %s", admin.id, topic_id)
    return {"message": "Topic deleted successfully"}
