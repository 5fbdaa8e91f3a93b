"""
Assessment Provider
===================

Sends learner submissions to the language model and turns its replies into
:class:`WritingAssessment` / :class:`SpeakingAssessment`. Transport problems
surface as :class:`AssessmentError`; a speech analysis whose reply cannot be
parsed degrades to neutral scores instead of failing the submission.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from .gemini_client import GeminiClient, GeminiError, extract_json_block
from .records import SpeakingAssessment, WritingAssessment


logger = logging.getLogger(__name__)

FALLBACK_SPEAKING_SCORE = 75

WRITING_SYSTEM_PROMPT = (
	"You are a writing assistant that checks for grammatical errors, spelling mistakes, and awkward phrasing.\n"
	"If you find errors, respond with:\n"
	'{"hasErrors": true, "errors": [{"wrong": "the incorrect text", "correct": "the corrected version", "reason": "brief explanation of the error"}]}\n'
	'If there are no errors, respond with: {"hasErrors": false, "errors": []}'
)

SPEAKING_SYSTEM_PROMPT = (
	"You are an English language teacher specializing in speech analysis. You must respond with ONLY valid JSON, "
	"no additional text. Focus on grammar, question relevance, and response length. Only provide errors when there "
	"are actual mistakes, and suggest alternatives when helpful."
)


class AssessmentError(RuntimeError):
	pass


def _build_writing_prompt(text: str, question: Optional[str]) -> str:
	context = f'The learner was answering: "{question}"\n' if question else ""
	return f'{context}Check this text for writing errors: "{text}"'


def _build_speaking_prompt(transcript: str, question: str) -> str:
	return (
		"Analyze this English speech transcript and provide scores based on these specific criteria:\n\n"
		f'Question: "{question}"\n'
		f'Transcript: "{transcript}"\n\n'
		"Return ONLY a valid JSON object with keys: overallScore, grammar, addressingQuestion, length "
		"(numbers 0-100), transcript (the transcript as given), errors (array of {type: grammar|question|length, "
		"wrong, correct, reason}) and alternative (an improved version of the response, or an empty string).\n\n"
		"Scoring criteria:\n"
		"- Grammar: sentence structure, verb tenses, articles, prepositions and overall accuracy\n"
		"- Addressing Question: does the response stay on topic and answer what was asked\n"
		"- Length: under 20 words is low, 20-100 words is high, too long or repetitive is medium\n"
		"- Overall: average of the three scores\n\n"
		"Only include errors for actual mistakes. If the response is good as is, leave errors empty and alternative as an empty string."
	)


def _build_question_prompt(topic: str, description: Optional[str]) -> str:
	context = f" Context: {description}." if description else ""
	return (
		f"Generate a thought-provoking question about {topic}.{context}\n"
		"The question should be specific, encourage critical thinking, suit a short response and avoid yes/no answers.\n"
		"Return only the question, without any additional text."
	)


class AssessmentProvider:
	def __init__(self, client_factory: Callable[[], GeminiClient] = GeminiClient) -> None:
		self._client_factory = client_factory

	async def check_writing(self, text: str, question: Optional[str] = None) -> WritingAssessment:
		try:
			async with self._client_factory() as client:
				data = await client.generate_json(_build_writing_prompt(text, question), system=WRITING_SYSTEM_PROMPT, temperature=0.3)
		except (GeminiError, ValueError) as exc:
			raise AssessmentError(f"Failed to check writing: {exc}") from exc
		try:
			assessment = WritingAssessment.model_validate(data)
		except ValidationError as exc:
			raise AssessmentError(f"Unexpected writing check result: {exc}") from exc
		# A reply claiming errors but listing none usable is treated as clean
		if assessment.has_errors and not assessment.errors:
			assessment = WritingAssessment(has_errors=False, errors=[])
		return assessment

	async def analyze_speech(self, transcript: str, question: str) -> SpeakingAssessment:
		try:
			async with self._client_factory() as client:
				raw = await client.generate(_build_speaking_prompt(transcript, question), system=SPEAKING_SYSTEM_PROMPT, temperature=0.3)
		except GeminiError as exc:
			raise AssessmentError(f"Failed to analyze speech: {exc}") from exc
		try:
			assessment = SpeakingAssessment.model_validate(extract_json_block(raw))
		except (ValueError, ValidationError) as exc:
			logger.warning("Speech analysis reply unusable, using neutral scores: %s", exc)
			return SpeakingAssessment(
				overall_score=FALLBACK_SPEAKING_SCORE,
				grammar=FALLBACK_SPEAKING_SCORE,
				addressing_question=FALLBACK_SPEAKING_SCORE,
				length=FALLBACK_SPEAKING_SCORE,
				transcript=transcript,
			)
		if not assessment.transcript:
			assessment = assessment.model_copy(update={"transcript": transcript})
		return assessment

	async def generate_question(self, topic: str, description: Optional[str] = None) -> str:
		try:
			async with self._client_factory() as client:
				text = await client.generate(_build_question_prompt(topic, description), temperature=0.7)
		except GeminiError as exc:
			raise AssessmentError(f"Failed to generate question: {exc}") from exc
		question = text.strip().strip('"').strip()
		if not question:
			raise AssessmentError("Model returned an empty question")
		return question


def get_assessment_provider() -> AssessmentProvider:
	return AssessmentProvider()
