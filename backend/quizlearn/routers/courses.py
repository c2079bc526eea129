from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import NotFound, ValidationFailure
from ..models import Course, Purchase
from .auth import CurrentUser, get_current_admin, get_current_user


router = APIRouter(prefix="/course", tags=["courses"])

logger = logging.getLogger(__name__)


class CreateCourseRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: float = Field(default=0.0, ge=0)


def serialize_course(course: Course) -> Dict[str, Any]:
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "price": course.price,
        "creatorId": course.creator_id,
        "createdAt": course.created_at.isoformat() if course.created_at else None,
    }


@router.post("/create", status_code=201)
async def create_course(req: CreateCourseRequest, admin: CurrentUser = Depends(get_current_admin), db: Session = Depends(get_db)):
    title = (req.title or "").strip()
    description = (req.description or "").strip()
    if not title or not description:
        raise ValidationFailure("All fields are required")
    course = Course(title=title, description=description, price=req.price, creator_id=admin.id)
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("Admin %s created course %s", admin.id, course.id)
    return {"message": "Course created successfully", "course": serialize_course(course)}


@router.get("/courses")
async def list_courses(db: Session = Depends(get_db)):
    rows = db.query(Course).order_by(Course.created_at.desc(), Course.id.desc()).all()
    return {"courses": [serialize_course(c) for c in rows]}


@router.get("/{course_id}")
async def get_course(course_id: int, db: Session = Depends(get_db)):
    course = db.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    return {"course": serialize_course(course)}


@router.post("/buy/{course_id}", status_code=201)
async def buy_course(course_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    course = db.get(Course, course_id)
    if course is None:
        raise NotFound("Course not found")
    existing = db.query(Purchase).filter(Purchase.user_id == user.id, Purchase.course_id == course.id).first()
    if existing is not None:
        raise ValidationFailure("You have already purchased this course")
    purchase = Purchase(user_id=user.id, course_id=course.id)
    db.add(purchase)
    db.commit()
    db.refresh(purchase)
    return {
        "message": "Course purchased successfully",
        "purchase": {"id": purchase.id, "userId": purchase.user_id, "courseId": purchase.course_id},
    }
