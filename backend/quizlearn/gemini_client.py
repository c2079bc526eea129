from __future__ import annotations
import logging
import httpx
from fastapi import Request
from typing import Any, Dict, List, Optional, Sequence
from .errors import ProviderFailure
from .settings import Settings

logger = logging.getLogger(__name__)


class GeminiClient:
	"""Gemini ``generateContent`` client with ordered model fallback.

	Built once by the application entry point and injected where needed; it
	holds no module-level state.
	"""

	def __init__(
		self,
		api_key: str,
		models: Sequence[str],
		*,
		base_url: str = "https://generativelanguage.googleapis.com/v1beta/models",
		timeout: float = 60.0,
		http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		if not api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		if not models:
			raise ValueError("At least one Gemini model must be configured")
		self.api_key = api_key
		self.models: List[str] = list(models)
		self.base_url = base_url.rstrip("/")
		self._client = http_client or httpx.AsyncClient(timeout=timeout)

	@classmethod
	def from_settings(cls, settings: Settings) -> "GeminiClient":
		return cls(
			settings.gemini_api_key or "",
			settings.candidate_models,
			base_url=settings.gemini_base_url,
			timeout=settings.gemini_timeout_seconds,
		)

	async def generate(self, prompt: str) -> str:
		"""Return the text of the first model that answers, in priority order.

		Each model is tried once. Raises ProviderFailure carrying the last
		error when every model fails.
		"""
		last_error: Optional[Exception] = None
		for model in self.models:
			try:
				logger.info("Trying Gemini model %s", model)
				text = await self._generate_with_model(model, prompt)
			except Exception as err:
				logger.warning("Gemini model %s failed: %s", model, err)
				last_error = err
				continue
			logger.info("Gemini model %s succeeded", model)
			return text
		raise ProviderFailure(str(last_error) if last_error else "All Gemini models failed")

	async def _generate_with_model(self, model: str, prompt: str) -> str:
		url = f"{self.base_url}/{model}:generateContent"
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		# Key travels in a header, never in the URL
		headers = {"x-goog-api-key": self.api_key}
		try:
			r = await self._client.post(url, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			raise RuntimeError(f"Model {model} returned HTTP {http_err.response.status_code}") from None
		except httpx.RequestError as net_err:
			raise RuntimeError(f"Model {model} request failed: {type(net_err).__name__}") from None
		try:
			data = r.json()
			parts = data["candidates"][0]["content"]["parts"]
		except Exception:
			raise RuntimeError(f"Unexpected Gemini response: {r.text[:400]}")
		text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
		if not text.strip():
			raise RuntimeError(f"Model {model} returned an empty response")
		return text

	async def aclose(self) -> None:
		await self._client.aclose()


def get_gemini_client(request: Request) -> GeminiClient:
	"""FastAPI dependency: the client built at startup and kept on ``app.state``."""
	client = getattr(request.app.state, "gemini", None)
	if client is None:
		raise ProviderFailure("GEMINI_API_KEY is not configured")
	return client
