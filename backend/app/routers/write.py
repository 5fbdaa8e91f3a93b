from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..assessment import AssessmentError, AssessmentProvider, get_assessment_provider
from ..practice import record_writing_submission
from ..records import ErrorEntry, WritingRecord
from ..store import PracticeRecordStore, StoreError, get_record_store
from .auth import User, get_optional_user, user_id_of


router = APIRouter(prefix="/write", tags=["writing"])

# Clamp to keep prompts a sane size
MAX_TEXT_CHARS = 8000


class QuestionRequest(BaseModel):
	topic: str = Field(min_length=1, max_length=200)
	description: Optional[str] = None


class QuestionResponse(BaseModel):
	question: str


class CheckRequest(BaseModel):
	question: str = Field(min_length=1)
	text: str
	topic: Optional[str] = None
	score: int = Field(default=0, ge=0, le=100)
	corrected_text: Optional[str] = None


class CheckResponse(BaseModel):
	has_errors: bool
	errors: List[ErrorEntry]
	record: Optional[WritingRecord] = None


@router.post("/question", response_model=QuestionResponse)
async def generate_question(req: QuestionRequest, provider: AssessmentProvider = Depends(get_assessment_provider)):
	try:
		question = await provider.generate_question(req.topic.strip(), req.description)
	except AssessmentError as exc:
		raise HTTPException(status_code=502, detail=str(exc))
	return QuestionResponse(question=question)


@router.post("/check", response_model=CheckResponse)
async def check_text(
	req: CheckRequest,
	user: Optional[User] = Depends(get_optional_user),
	provider: AssessmentProvider = Depends(get_assessment_provider),
	store: PracticeRecordStore = Depends(get_record_store),
):
	text = (req.text or "").strip()
	if not text:
		raise HTTPException(status_code=400, detail="text is required")
	text = text[:MAX_TEXT_CHARS]
	try:
		assessment = await provider.check_writing(text, req.question)
	except AssessmentError as exc:
		raise HTTPException(status_code=502, detail=str(exc))
	try:
		record = await record_writing_submission(
			store,
			user_id_of(user),
			assessment,
			question=req.question,
			answer=text,
			topic=req.topic,
			score=req.score,
			corrected_text=req.corrected_text,
		)
	except (StoreError, OSError) as exc:
		raise HTTPException(status_code=502, detail=f"could not save writing history: {exc}")
	return CheckResponse(has_errors=assessment.has_errors, errors=assessment.errors, record=record)
