"""
Speaking Practice Module
========================

Scores a spoken answer from its transcript (grammar, addressing the
question, length, overall) and keeps the result in the learner's speaking
history. Recording and transcription happen on the device; this endpoint
only sees the transcript and an optional reference to the stored audio.
"""

from __future__ import annotations

import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..assessment import AssessmentError, AssessmentProvider, get_assessment_provider
from ..practice import record_speaking_submission
from ..records import ErrorEntry, SpeakingRecord, SpeakingScores
from ..store import PracticeRecordStore, StoreError, get_record_store
from .auth import User, get_optional_user, user_id_of


router = APIRouter(prefix="/speaking", tags=["speaking"])


def _dedupe_transcript(text: str) -> str:
	"""Collapse repeated 1-3 word phrases left by interim/final ASR overlap."""
	s = re.sub(r"\s+", " ", text or "").strip()
	if not s:
		return s
	patterns = [
		(r"\b(\w+\s+\w+\s+\w+)(?:\s+\1\b)+", r"\1"),
		(r"\b(\w+\s+\w+)(?:\s+\1\b)+", r"\1"),
		(r"\b(\w+)(?:\s+\1\b)+", r"\1"),
	]
	for pat, rep in patterns:
		s = re.sub(pat, rep, s, flags=re.IGNORECASE)
	return re.sub(r"\s+", " ", s).strip()


class AnalyzeRequest(BaseModel):
	question: str = Field(min_length=1)
	transcript: str
	topic: Optional[str] = None
	audio_url: Optional[str] = None
	duration: int = Field(default=0, ge=0)


class AnalyzeResponse(BaseModel):
	scores: SpeakingScores
	transcript: str
	errors: List[ErrorEntry]
	alternative: str = ""
	record: SpeakingRecord


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
	req: AnalyzeRequest,
	user: Optional[User] = Depends(get_optional_user),
	provider: AssessmentProvider = Depends(get_assessment_provider),
	store: PracticeRecordStore = Depends(get_record_store),
):
	transcript = _dedupe_transcript(req.transcript)
	if not transcript:
		raise HTTPException(status_code=400, detail="transcript is required")
	try:
		assessment = await provider.analyze_speech(transcript, req.question)
	except AssessmentError as exc:
		raise HTTPException(status_code=502, detail=str(exc))
	try:
		record = await record_speaking_submission(
			store,
			user_id_of(user),
			assessment,
			question=req.question,
			topic=req.topic,
			transcript=transcript,
			audio_reference=req.audio_url,
			duration=req.duration,
		)
	except (StoreError, OSError) as exc:
		raise HTTPException(status_code=502, detail=f"could not save speaking history: {exc}")
	return AnalyzeResponse(
		scores=assessment.scores(),
		transcript=transcript,
		errors=assessment.errors,
		alternative=assessment.alternative,
		record=record,
	)
