from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import InvalidResponse, ProviderFailure, with_operation
from ..gemini_client import GeminiClient, get_gemini_client
from ..services.quizzes import DEFAULT_NUM_QUESTIONS, fetch_quiz_for_topic, generate_quiz, serialize_quiz
from ..services.scoring import SubmittedAnswer, list_scores, submit_quiz
from .auth import CurrentUser, get_current_user


router = APIRouter(prefix="/quiz", tags=["quiz"])

logger = logging.getLogger(__name__)


class GenerateQuizRequest(BaseModel):
    numQuestions: int = Field(default=DEFAULT_NUM_QUESTIONS, ge=1, le=20)


class SubmitQuizRequest(BaseModel):
    answers: List[SubmittedAnswer] = Field(default_factory=list)


@router.post("/generate/{topic_id}")
async def generate(
    topic_id: int,
    response: Response,
    req: Optional[GenerateQuizRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: GeminiClient = Depends(get_gemini_client),
):
    num_questions = req.numQuestions if req is not None else DEFAULT_NUM_QUESTIONS
    try:
        quiz, created = await generate_quiz(db, client, topic_id, num_questions)
    except (ProviderFailure, InvalidResponse) as err:
        raise with_operation(err, "Failed to generate quiz") from err
    if not created:
        response.status_code = 200
        return {"message": "Quiz already exists for this topic", "quiz": serialize_quiz(quiz)}
    response.status_code = 201
    return {"message": "Quiz generated successfully", "quiz": serialize_quiz(quiz)}


@router.get("/topic/{topic_id}")
async def quiz_for_topic(topic_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"quiz": fetch_quiz_for_topic(db, topic_id)}


@router.post("/submit/{quiz_id}")
async def submit(quiz_id: int, req: SubmitQuizRequest, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return submit_quiz(db, user.id, quiz_id, req.answers)


@router.get("/scores")
async def scores(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"scores": list_scores(db, user.id)}
