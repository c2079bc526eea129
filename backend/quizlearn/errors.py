"""Domain errors and the handlers that render them as JSON.

Services raise these; routers either let them propagate or re-raise with an
operation-level message. ``register_error_handlers`` wires them into the app.
"""
from __future__ import annotations
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class QuizLearnError(Exception):
	status_code = 500

	def __init__(self, message: str, *, details: Optional[str] = None) -> None:
		super().__init__(message)
		self.message = message
		self.details = details

	def to_payload(self) -> dict:
		payload = {"error": self.message}
		if self.details is not None:
			payload["details"] = self.details
		return payload


class NotFound(QuizLearnError):
	status_code = 404


class ValidationFailure(QuizLearnError):
	status_code = 400


class PermissionDenied(QuizLearnError):
	status_code = 403


class Conflict(QuizLearnError):
	status_code = 409


class ProviderFailure(QuizLearnError):
	"""Every candidate model failed; ``message`` is the last error seen."""


class InvalidResponse(QuizLearnError):
	"""Provider text was not a well-formed quiz document."""


def with_operation(err: QuizLearnError, operation: str) -> QuizLearnError:
	"""Re-label a provider-path error: ``operation`` becomes the message, the
	original message moves to ``details``."""
	return type(err)(operation, details=err.details or err.message)


async def _domain_error_handler(request: Request, exc: QuizLearnError) -> JSONResponse:
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
	return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
	logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
	return JSONResponse(status_code=500, content={"error": "Database error"})


def register_error_handlers(app: FastAPI) -> None:
	app.add_exception_handler(QuizLearnError, _domain_error_handler)
	app.add_exception_handler(SQLAlchemyError, _persistence_error_handler)
