from __future__ import annotations
import json
import re
import httpx
from typing import Any, Dict, Optional
from .settings import settings


class GeminiError(RuntimeError):
	"""The model could not be reached or returned nothing usable."""


def extract_json_block(text: str) -> Dict[str, Any]:
	"""Parse a JSON object out of a model reply, tolerating prose or code fences around it.

	Raises ValueError when no object can be recovered.
	"""
	try:
		data = json.loads(text)
		if isinstance(data, dict):
			return data
	except (TypeError, ValueError):
		pass
	match = re.search(r"\{[\s\S]*\}", text or "")
	if match:
		try:
			data = json.loads(match.group(0))
			if isinstance(data, dict):
				return data
		except ValueError:
			pass
	raise ValueError("Failed to parse JSON from model output")


class GeminiClient:
	def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, model: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise GeminiError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		if settings.gemini_provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=30, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._openrouter_api_key = settings.openrouter_api_key
		if self._openrouter_api_key:
			self._fallback_client = httpx.AsyncClient(timeout=30, transport=transport)

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()

	async def generate(self, prompt: str, *, system: Optional[str] = None, temperature: Optional[float] = None) -> str:
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if system:
			payload["systemInstruction"] = {"parts": [{"text": system}]}
		if temperature is not None:
			payload["generationConfig"] = {"temperature": temperature}
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as primary_error:
			if self._fallback_client is None:
				raise GeminiError(f"Gemini call failed: {primary_error}") from primary_error
			return await self._fallback_generate(prompt, system, primary_error)

	async def generate_json(self, prompt: str, *, system: Optional[str] = None, temperature: Optional[float] = None) -> Dict[str, Any]:
		text = await self.generate(prompt, system=system, temperature=temperature)
		return extract_json_block(text)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, system: Optional[str], primary_error: Exception) -> str:
		headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		messages = [{"role": "system", "content": system}] if system else []
		messages.append({"role": "user", "content": prompt})
		try:
			r = await self._fallback_client.post(
				settings.openrouter_base_url,
				headers=headers,
				json={"model": settings.openrouter_model, "messages": messages},
			)
			r.raise_for_status()
			return r.json()["choices"][0]["message"]["content"]
		except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as fallback_err:
			raise GeminiError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
