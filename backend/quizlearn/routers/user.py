from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import InvalidResponse, ProviderFailure, with_operation
from ..gemini_client import GeminiClient, get_gemini_client
from ..models import Course, Purchase
from ..services import analytics as analytics_service
from .auth import CurrentUser, get_current_user
from .courses import serialize_course


router = APIRouter(prefix="/user", tags=["user"])


@router.get("/purchases")
async def purchases(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = db.query(Purchase).filter(Purchase.user_id == user.id).order_by(Purchase.id).all()
    course_ids = [p.course_id for p in rows]
    courses = db.query(Course).filter(Course.id.in_(course_ids)).all() if course_ids else []
    return {
        "purchased": [{"id": p.id, "userId": p.user_id, "courseId": p.course_id} for p in rows],
        "courseData": [serialize_course(c) for c in courses],
    }


@router.get("/weak-topics")
async def weak_topics(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"weakTopics": analytics_service.weak_topics(db, user.id)}


@router.get("/analytics")
async def analytics(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return analytics_service.analytics(db, user.id)


@router.post("/explain-topic/{topic_id}")
async def explain_topic(
    topic_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: GeminiClient = Depends(get_gemini_client),
):
    try:
        return await analytics_service.explain_topic(db, client, topic_id)
    except (ProviderFailure, InvalidResponse) as err:
        raise with_operation(err, "Failed to generate explanation") from err


@router.get("/recommendations")
async def recommendations(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: GeminiClient = Depends(get_gemini_client),
):
    try:
        return await analytics_service.recommendations(db, client, user.id)
    except (ProviderFailure, InvalidResponse) as err:
        raise with_operation(err, "Failed to generate recommendations") from err
