"""
Unit tests for the assessment provider and the Gemini client it wraps.
"""

import json

import httpx
import pytest

from app.assessment import FALLBACK_SPEAKING_SCORE, AssessmentError, AssessmentProvider
from app.gemini_client import GeminiClient, GeminiError, extract_json_block


class FakeClient:
	"""Stands in for GeminiClient, replaying a canned reply."""

	def __init__(self, reply=None, error=None):
		self.reply = reply
		self.error = error
		self.prompts = []

	async def __aenter__(self):
		return self

	async def __aexit__(self, *exc_info):
		return None

	async def generate(self, prompt, *, system=None, temperature=None):
		self.prompts.append(prompt)
		if self.error is not None:
			raise self.error
		return self.reply

	async def generate_json(self, prompt, *, system=None, temperature=None):
		return extract_json_block(await self.generate(prompt, system=system, temperature=temperature))


def provider_for(client):
	return AssessmentProvider(client_factory=lambda: client)


class TestExtractJsonBlock:
	def test_plain_json(self):
		assert extract_json_block('{"a": 1}') == {"a": 1}

	def test_fenced_json(self):
		assert extract_json_block('Here you go:\n```json\n{"a": 1}\n```') == {"a": 1}

	@pytest.mark.parametrize("text", ["no json here", "[1, 2]", ""])
	def test_unparseable(self, text):
		with pytest.raises(ValueError):
			extract_json_block(text)


class TestCheckWriting:
	@pytest.mark.asyncio
	async def test_parses_errors(self):
		client = FakeClient(json.dumps({
			"hasErrors": True,
			"errors": [{"wrong": "informations", "correct": "information", "reason": "Uncountable noun"}],
		}))
		assessment = await provider_for(client).check_writing("Some informations.", "Q?")
		assert assessment.has_errors
		assert assessment.errors[0].correct == "information"
		assert "Some informations." in client.prompts[0]

	@pytest.mark.asyncio
	async def test_claimed_errors_without_usable_entries_is_clean(self):
		client = FakeClient('{"hasErrors": true, "errors": [{"wrong": "", "correct": "", "reason": ""}]}')
		assessment = await provider_for(client).check_writing("Text.")
		assert not assessment.has_errors
		assert assessment.errors == []

	@pytest.mark.asyncio
	async def test_transport_failure(self):
		client = FakeClient(error=GeminiError("down"))
		with pytest.raises(AssessmentError):
			await provider_for(client).check_writing("Text.")

	@pytest.mark.asyncio
	async def test_unparseable_reply(self):
		with pytest.raises(AssessmentError):
			await provider_for(FakeClient("I cannot help with that")).check_writing("Text.")


class TestAnalyzeSpeech:
	@pytest.mark.asyncio
	async def test_parses_scores(self):
		client = FakeClient(json.dumps({
			"overallScore": 82, "grammar": 75, "addressingQuestion": 90, "length": 80,
			"transcript": "I am agree", "alternative": "I agree",
			"errors": [{"type": "grammar", "wrong": "am agree", "correct": "agree", "reason": "Agree is a verb"}],
		}))
		assessment = await provider_for(client).analyze_speech("I am agree", "Do you agree?")
		assert assessment.scores().overall_score == 82
		assert assessment.alternative == "I agree"
		assert assessment.errors[0].type == "grammar"

	@pytest.mark.asyncio
	async def test_unparseable_reply_falls_back(self):
		assessment = await provider_for(FakeClient("Great job!")).analyze_speech("Hello", "Greet me")
		assert assessment.overall_score == FALLBACK_SPEAKING_SCORE
		assert assessment.transcript == "Hello"
		assert assessment.errors == []

	@pytest.mark.asyncio
	async def test_missing_transcript_filled_in(self):
		client = FakeClient('{"overallScore": 60, "grammar": 60, "addressingQuestion": 60, "length": 60}')
		assessment = await provider_for(client).analyze_speech("Hello", "Greet me")
		assert assessment.transcript == "Hello"


class TestGenerateQuestion:
	@pytest.mark.asyncio
	async def test_strips_quotes(self):
		question = await provider_for(FakeClient('  "What makes a city livable?"\n')).generate_question("Cities")
		assert question == "What makes a city livable?"

	@pytest.mark.asyncio
	async def test_empty_reply(self):
		with pytest.raises(AssessmentError):
			await provider_for(FakeClient("   ")).generate_question("Cities")


class TestGeminiClient:
	@pytest.mark.asyncio
	async def test_generate_reads_first_candidate(self, monkeypatch):
		from app import gemini_client

		monkeypatch.setattr(gemini_client.settings, "openrouter_api_key", None)
		seen = {}

		def handler(request: httpx.Request) -> httpx.Response:
			seen["body"] = json.loads(request.content)
			seen["key"] = request.url.params.get("key")
			return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "hello"}]}}]})

		async with GeminiClient(api_key="k", transport=httpx.MockTransport(handler)) as client:
			assert await client.generate("Say hi", system="Be brief") == "hello"
		assert seen["key"] == "k"
		assert seen["body"]["systemInstruction"]["parts"][0]["text"] == "Be brief"

	@pytest.mark.asyncio
	async def test_http_error_without_fallback(self, monkeypatch):
		from app import gemini_client

		monkeypatch.setattr(gemini_client.settings, "openrouter_api_key", None)
		transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "busy"}))
		async with GeminiClient(api_key="k", transport=transport) as client:
			with pytest.raises(GeminiError):
				await client.generate("Say hi")

	@pytest.mark.asyncio
	async def test_falls_back_to_openrouter(self, monkeypatch):
		from app import gemini_client

		monkeypatch.setattr(gemini_client.settings, "openrouter_api_key", "or-key")

		def handler(request: httpx.Request) -> httpx.Response:
			if "openrouter" in request.url.host:
				return httpx.Response(200, json={"choices": [{"message": {"content": "from fallback"}}]})
			return httpx.Response(500)

		async with GeminiClient(api_key="k", transport=httpx.MockTransport(handler)) as client:
			assert await client.generate("Say hi") == "from fallback"

	def test_missing_key(self, monkeypatch):
		from app import gemini_client

		monkeypatch.setattr(gemini_client.settings, "gemini_api_key", None)
		with pytest.raises(GeminiError):
			GeminiClient()
