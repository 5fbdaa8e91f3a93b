"""
Unit tests for the practice record model.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.records import (
	AttemptSummary,
	ErrorEntry,
	RecordKind,
	SpeakingAssessment,
	SpeakingRecord,
	WritingAssessment,
	WritingRecord,
	answer_text,
	calendar_day,
	coerce_record,
	question_key,
	speaking_record_from_assessment,
	writing_record_from_assessment,
)
from tests.factories import make_speaking, make_writing


class TestErrorEntry:
	@pytest.mark.parametrize("field", ["wrong", "correct", "reason"])
	def test_blank_field_rejected(self, field):
		data = {"wrong": "a", "correct": "b", "reason": "c", field: "  "}
		with pytest.raises(ValidationError):
			ErrorEntry(**data)

	def test_type_optional(self):
		entry = ErrorEntry(wrong="a", correct="b", reason="c")
		assert entry.type is None


class TestRecordValidation:
	def test_integer_id_normalized_to_string(self):
		record = make_writing(record_id=42)
		assert record.id == "42"

	def test_naive_date_read_as_utc(self):
		record = WritingRecord(id="1", date=datetime(2024, 1, 1, 10, 0), question="Q")
		assert record.date.tzinfo is not None
		assert record.date.utcoffset() == timedelta(0)

	def test_offset_date_converted_to_utc(self):
		moment = datetime(2024, 1, 2, 1, 30, tzinfo=timezone(timedelta(hours=3)))
		record = WritingRecord(id="1", date=moment, question="Q")
		assert record.date == datetime(2024, 1, 1, 22, 30, tzinfo=timezone.utc)
		assert calendar_day(record.date) == "2024-01-01"

	def test_invalid_error_entries_dropped(self):
		record = make_writing(errors=[
			{"wrong": "", "correct": "", "reason": ""},
			{"wrong": "teh", "correct": "the", "reason": "Spelling"},
			"not an entry",
		])
		assert [e.wrong for e in record.errors] == ["teh"]

	def test_none_errors_become_empty(self):
		assert make_writing(errors=None).errors == []

	def test_topic_object_uses_name(self):
		record = make_writing(topic={"name": "Travel", "description": "Trips"})
		assert record.topic == "Travel"

	def test_blank_topic_is_none(self):
		assert make_writing(topic="   ").topic is None

	def test_score_clamped(self):
		assert make_writing(score=140).score == 100
		assert make_writing(score=None).score == 0

	def test_records_are_immutable(self):
		record = make_writing()
		with pytest.raises(ValidationError):
			record.question = "changed"


class TestCoerceRecord:
	def test_untagged_mapping_gets_kind(self):
		record = coerce_record(
			{"id": "1", "date": "2024-01-01T10:00:00Z", "question": "Q", "answer": "A"},
			RecordKind.WRITING,
		)
		assert isinstance(record, WritingRecord)
		assert record.kind == "writing"

	def test_existing_tag_wins(self):
		record = coerce_record(
			{"id": "1", "date": "2024-01-01T10:00:00Z", "question": "Q", "kind": "speaking", "transcript": "hi"},
			RecordKind.WRITING,
		)
		assert isinstance(record, SpeakingRecord)

	def test_legacy_cache_shape(self):
		record = coerce_record({
			"id": "1700000000000",
			"date": "2024-01-01T10:00:00.000Z",
			"type": "speaking",
			"question": "Q",
			"transcript": "hello",
			"audioFile": "file:///a.m4a",
			"scores": {"overallScore": 80, "grammar": 70, "addressingQuestion": 90, "length": 80},
			"errors": [],
		})
		assert isinstance(record, SpeakingRecord)
		assert record.audio_reference == "file:///a.m4a"
		assert record.scores.overall_score == 80

	@pytest.mark.parametrize(
		"item",
		[
			{"id": "1", "date": "not a date", "question": "Q", "kind": "writing"},
			{"id": "1", "question": "Q", "kind": "writing"},
			{"date": "2024-01-01", "question": "Q", "kind": "writing"},
			{"id": "1", "date": "2024-01-01", "question": "Q"},
			"garbage",
		],
	)
	def test_malformed_returns_none(self, item, caplog):
		assert coerce_record(item) is None
		assert "Skipping" in caplog.text


class TestAccessors:
	def test_answer_text_for_both_kinds(self):
		assert answer_text(make_writing(answer="written")) == "written"
		assert answer_text(make_speaking(transcript="spoken")) == "spoken"

	def test_question_key_separates_kinds(self):
		writing = make_writing(question="Same?")
		speaking = make_speaking(question="Same?")
		assert question_key(writing) == "writing_Same?"
		assert question_key(speaking) == "speaking_Same?"

	def test_attempt_summary_projection(self):
		speaking = make_speaking()
		summary = AttemptSummary.from_record(speaking)
		assert summary.answer_text == speaking.transcript
		assert summary.scores == speaking.scores
		assert summary.audio_reference == speaking.audio_reference
		writing_summary = AttemptSummary.from_record(make_writing())
		assert writing_summary.scores is None
		assert writing_summary.audio_reference is None


class TestAssessmentShapes:
	def test_writing_assessment_from_provider_json(self):
		assessment = WritingAssessment.model_validate({
			"hasErrors": True,
			"errors": [{"wrong": "i", "correct": "I", "reason": "Capitalize the pronoun"}],
		})
		record = writing_record_from_assessment(assessment, question="Q", answer="i am here", topic="Daily life")
		assert record.kind == "writing"
		assert record.answer == "i am here"
		assert record.errors[0].correct == "I"
		assert record.score == 0

	def test_speaking_assessment_from_provider_json(self):
		assessment = SpeakingAssessment.model_validate({
			"overallScore": 72.6,
			"grammar": 65,
			"addressingQuestion": 80,
			"length": 73,
			"transcript": "I like swim",
			"errors": [{"type": "grammar", "wrong": "like swim", "correct": "like swimming", "reason": "Gerund after like"}],
			"alternative": "I like swimming.",
		})
		record = speaking_record_from_assessment(assessment, question="Hobbies?", audio_reference="file:///x.m4a")
		assert record.transcript == "I like swim"
		assert record.scores.overall_score == 73
		assert record.errors[0].type == "grammar"
		assert record.audio_reference == "file:///x.m4a"
