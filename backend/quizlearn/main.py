import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import SessionLocal, init_db
from .errors import register_error_handlers
from .gemini_client import GeminiClient
from .logging_setup import configure_logging
from .settings import settings
from .routers import auth
from .routers import courses
from .routers import quiz
from .routers import topics
from .routers import user

logger = logging.getLogger(__name__)

app = FastAPI(title="QuizLearn API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
register_error_handlers(app)
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(topics.router)
app.include_router(quiz.router)
app.include_router(user.router)
app.state.gemini = None


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": app.state.gemini is not None, "gemini_models": settings.candidate_models}


@app.on_event("startup")
async def startup_event():
	configure_logging(settings.log_level)
	init_db()
	db = SessionLocal()
	try:
		auth.ensure_seed_admin(db)
	finally:
		db.close()
	# Provider client lives for the whole process; tests may pre-install a fake
	if app.state.gemini is None and settings.gemini_api_key:
		app.state.gemini = GeminiClient.from_settings(settings)
		logger.info("Gemini client ready with models %s", ", ".join(settings.candidate_models))
	elif app.state.gemini is None:
		logger.warning("GEMINI_API_KEY is not set; quiz generation and recommendations are disabled")


@app.on_event("shutdown")
async def shutdown_event():
	client = app.state.gemini
	if isinstance(client, GeminiClient):
		await client.aclose()
		app.state.gemini = None
