"""
Practice Records
================

A record is one practice attempt, either a writing check or a speaking
analysis, together with the feedback it received. Records are immutable once
created; they only disappear through an explicit delete or a cache wipe.

The two variants share one shape (id, date, question, topic, errors) and are
told apart by ``kind``. Code that needs "the answer or the transcript" goes
through :func:`answer_text` rather than probing fields.
"""

from __future__ import annotations

import logging
import time
from datetime import date as date_type, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
	AliasChoices,
	BaseModel,
	ConfigDict,
	Field,
	TypeAdapter,
	ValidationError,
	field_validator,
)


logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


class RecordKind(str, Enum):
	WRITING = "writing"
	SPEAKING = "speaking"


# ============================================================================
# FIELD HELPERS
# ============================================================================

def _clamp_score(value: Any) -> int:
	if value is None or value == "":
		return 0
	try:
		number = float(value)
	except (TypeError, ValueError):
		raise ValueError(f"score must be numeric, got {value!r}")
	return max(0, min(100, int(round(number))))


def _to_utc(value: datetime) -> datetime:
	# Naive timestamps (SQLite, old caches) are read as UTC
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


def _clean_errors(value: Any) -> List[Any]:
	"""Keep only well-formed error entries, logging the ones dropped."""
	if value is None:
		return []
	if not isinstance(value, (list, tuple)):
		raise ValueError("errors must be a list")
	cleaned: List[Any] = []
	for entry in value:
		if isinstance(entry, ErrorEntry):
			cleaned.append(entry)
			continue
		try:
			cleaned.append(ErrorEntry.model_validate(entry))
		except ValidationError:
			logger.warning("Dropping invalid error entry: %r", entry)
	return cleaned


# ============================================================================
# FEEDBACK MODELS
# ============================================================================

class ErrorEntry(BaseModel):
	"""One correction: what was written, what it should be, and why."""
	model_config = ConfigDict(frozen=True)

	wrong: str
	correct: str
	reason: str
	type: Optional[str] = None

	@field_validator("wrong", "correct", "reason")
	@classmethod
	def _not_blank(cls, value: str) -> str:
		if not value or not value.strip():
			raise ValueError("must not be empty")
		return value


class SpeakingScores(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	overall_score: int = Field(default=0, alias="overallScore")
	grammar: int = 0
	addressing_question: int = Field(default=0, alias="addressingQuestion")
	length: int = 0

	@field_validator("overall_score", "grammar", "addressing_question", "length", mode="before")
	@classmethod
	def _clamp(cls, value: Any) -> int:
		return _clamp_score(value)


# ============================================================================
# RECORDS
# ============================================================================

class _RecordBase(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	id: str
	date: datetime
	question: str
	topic: Optional[str] = None
	errors: List[ErrorEntry] = Field(default_factory=list)

	@field_validator("id", mode="before")
	@classmethod
	def _normalize_id(cls, value: Any) -> str:
		if value is None or isinstance(value, bool):
			raise ValueError("id is required")
		text = str(value).strip()
		if not text:
			raise ValueError("id is required")
		return text

	@field_validator("date")
	@classmethod
	def _normalize_date(cls, value: datetime) -> datetime:
		return _to_utc(value)

	@field_validator("topic", mode="before")
	@classmethod
	def _topic_label(cls, value: Any) -> Optional[str]:
		# Topics may be stored as {"name": ..., "description": ...}
		if isinstance(value, Mapping):
			value = value.get("name")
		if value is None:
			return None
		label = str(value).strip()
		return label or None

	@field_validator("errors", mode="before")
	@classmethod
	def _errors(cls, value: Any) -> List[Any]:
		return _clean_errors(value)


class WritingRecord(_RecordBase):
	kind: Literal["writing"] = "writing"
	answer: str = Field(default="", validation_alias=AliasChoices("answer", "original_text", "originalText"))
	score: int = 0
	corrected_text: Optional[str] = None

	@field_validator("score", mode="before")
	@classmethod
	def _score(cls, value: Any) -> int:
		return _clamp_score(value)


class SpeakingRecord(_RecordBase):
	kind: Literal["speaking"] = "speaking"
	transcript: str = ""
	scores: SpeakingScores = Field(default_factory=SpeakingScores)
	audio_reference: Optional[str] = Field(
		default=None,
		validation_alias=AliasChoices("audio_reference", "audioFile", "audio_url"),
	)
	duration: int = 0

	@field_validator("scores", mode="before")
	@classmethod
	def _scores(cls, value: Any) -> Any:
		return {} if value is None else value


Record = Annotated[Union[WritingRecord, SpeakingRecord], Field(discriminator="kind")]
PracticeRecord = Union[WritingRecord, SpeakingRecord]

_record_adapter: TypeAdapter = TypeAdapter(Record)


def answer_text(record: PracticeRecord) -> str:
	"""The submitted text for writing, the transcript for speaking."""
	if isinstance(record, SpeakingRecord):
		return record.transcript
	return record.answer


def calendar_day(moment: datetime) -> str:
	"""UTC calendar day of ``moment`` as ``YYYY-MM-DD``."""
	return _to_utc(moment).date().isoformat()


def parse_calendar_day(label: str) -> date_type:
	return date_type.fromisoformat(label)


def question_key(record: PracticeRecord) -> str:
	return f"{record.kind}_{record.question}"


def coerce_record(item: Any, kind: Optional[RecordKind | str] = None) -> Optional[PracticeRecord]:
	"""Turn a stored mapping into a record, tagging it with ``kind`` if untagged.

	Returns None (after logging) for anything that cannot be a valid record, so
	that one bad entry never takes down a whole history pass.
	"""
	if isinstance(item, (WritingRecord, SpeakingRecord)):
		return item
	if not isinstance(item, Mapping):
		logger.warning("Skipping non-mapping practice record: %r", type(item).__name__)
		return None
	data: Dict[str, Any] = dict(item)
	tag = data.get("kind") or data.get("type") or kind
	if isinstance(tag, RecordKind):
		tag = tag.value
	data["kind"] = tag
	try:
		return _record_adapter.validate_python(data)
	except ValidationError as exc:
		logger.warning("Skipping malformed %s record %r: %s", tag or "untyped", data.get("id"), exc.errors(include_url=False))
		return None


def dump_record(record: PracticeRecord) -> Dict[str, Any]:
	return record.model_dump(mode="json")


# ============================================================================
# VIEW MODELS
# ============================================================================

class AttemptSummary(BaseModel):
	"""The slice of a record shown inside a question group."""
	model_config = ConfigDict(frozen=True)

	id: str
	kind: str
	answer_text: str
	errors: List[ErrorEntry] = Field(default_factory=list)
	date: datetime
	scores: Optional[SpeakingScores] = None
	audio_reference: Optional[str] = None

	@classmethod
	def from_record(cls, record: PracticeRecord) -> "AttemptSummary":
		speaking = isinstance(record, SpeakingRecord)
		return cls(
			id=record.id,
			kind=record.kind,
			answer_text=answer_text(record),
			errors=list(record.errors),
			date=record.date,
			scores=record.scores if speaking else None,
			audio_reference=record.audio_reference if speaking else None,
		)


class QuestionGroup(BaseModel):
	"""All attempts at one question (within one kind) on one calendar day."""
	question_key: str
	question: str
	kind: str
	topic: Optional[str] = None
	attempts: List[AttemptSummary] = Field(default_factory=list)

	@property
	def latest_date(self) -> datetime:
		return max(attempt.date for attempt in self.attempts)


# ============================================================================
# ASSESSMENT PROVIDER SHAPES
# ============================================================================

class WritingAssessment(BaseModel):
	"""Writing check result: ``{"hasErrors": bool, "errors": [...]}``."""
	model_config = ConfigDict(populate_by_name=True)

	has_errors: bool = Field(default=False, alias="hasErrors")
	errors: List[ErrorEntry] = Field(default_factory=list)

	@field_validator("errors", mode="before")
	@classmethod
	def _errors(cls, value: Any) -> List[Any]:
		return _clean_errors(value)


class SpeakingAssessment(BaseModel):
	"""Speech analysis result, scores on a 0-100 scale."""
	model_config = ConfigDict(populate_by_name=True)

	overall_score: int = Field(default=0, alias="overallScore")
	grammar: int = 0
	addressing_question: int = Field(default=0, alias="addressingQuestion")
	length: int = 0
	transcript: str = ""
	errors: List[ErrorEntry] = Field(default_factory=list)
	alternative: str = ""

	@field_validator("overall_score", "grammar", "addressing_question", "length", mode="before")
	@classmethod
	def _clamp(cls, value: Any) -> int:
		return _clamp_score(value)

	@field_validator("errors", mode="before")
	@classmethod
	def _errors(cls, value: Any) -> List[Any]:
		return _clean_errors(value)

	@field_validator("transcript", "alternative", mode="before")
	@classmethod
	def _text(cls, value: Any) -> str:
		return "" if value is None else str(value)

	def scores(self) -> SpeakingScores:
		return SpeakingScores(
			overall_score=self.overall_score,
			grammar=self.grammar,
			addressing_question=self.addressing_question,
			length=self.length,
		)


def new_local_id() -> str:
	# Millisecond timestamp, matching ids already present in device caches
	return str(int(time.time() * 1000))


def writing_record_from_assessment(
	assessment: WritingAssessment,
	*,
	question: str,
	answer: str,
	topic: Optional[str] = None,
	score: int = 0,
	corrected_text: Optional[str] = None,
	record_id: Optional[str] = None,
	created_at: Optional[datetime] = None,
) -> WritingRecord:
	return WritingRecord(
		id=record_id or new_local_id(),
		date=created_at or datetime.now(timezone.utc),
		question=question,
		topic=topic,
		answer=answer,
		errors=list(assessment.errors),
		score=score,
		corrected_text=corrected_text,
	)


def speaking_record_from_assessment(
	assessment: SpeakingAssessment,
	*,
	question: str,
	topic: Optional[str] = None,
	transcript: Optional[str] = None,
	audio_reference: Optional[str] = None,
	duration: int = 0,
	record_id: Optional[str] = None,
	created_at: Optional[datetime] = None,
) -> SpeakingRecord:
	return SpeakingRecord(
		id=record_id or new_local_id(),
		date=created_at or datetime.now(timezone.utc),
		question=question,
		topic=topic,
		transcript=transcript if transcript is not None else assessment.transcript,
		errors=list(assessment.errors),
		scores=assessment.scores(),
		audio_reference=audio_reference,
		duration=duration,
	)
