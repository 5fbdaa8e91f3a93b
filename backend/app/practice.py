from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .records import (
	PracticeRecord,
	RecordKind,
	SpeakingAssessment,
	SpeakingRecord,
	WritingAssessment,
	WritingRecord,
	speaking_record_from_assessment,
	writing_record_from_assessment,
)
from .store import PracticeRecordStore, StoreError


logger = logging.getLogger(__name__)

DEFAULT_MIGRATION_TOPIC = "General"


async def _persist(store: PracticeRecordStore, user_id: Optional[str | int], record: PracticeRecord) -> PracticeRecord:
	# Every submission lands in the device cache. For signed-in users the cached
	# copy carries the remote id so a later delete by that id removes both.
	if user_id is None:
		await store.append_local_cache(user_id, record)
		return record
	try:
		saved = await store.save(user_id, record)
	except StoreError:
		await store.append_local_cache(user_id, record)
		raise
	await store.append_local_cache(user_id, saved)
	return saved


async def record_writing_submission(
	store: PracticeRecordStore,
	user_id: Optional[str | int],
	assessment: WritingAssessment,
	*,
	question: str,
	answer: str,
	topic: Optional[str] = None,
	score: int = 0,
	corrected_text: Optional[str] = None,
) -> Optional[WritingRecord]:
	"""Store a writing check. Clean submissions are not kept as mistakes."""
	if not assessment.has_errors:
		return None
	record = writing_record_from_assessment(
		assessment,
		question=question,
		answer=answer,
		topic=topic,
		score=score,
		corrected_text=corrected_text,
	)
	return await _persist(store, user_id, record)


async def record_speaking_submission(
	store: PracticeRecordStore,
	user_id: Optional[str | int],
	assessment: SpeakingAssessment,
	*,
	question: str,
	topic: Optional[str] = None,
	transcript: Optional[str] = None,
	audio_reference: Optional[str] = None,
	duration: int = 0,
) -> SpeakingRecord:
	record = speaking_record_from_assessment(
		assessment,
		question=question,
		topic=topic,
		transcript=transcript,
		audio_reference=audio_reference,
		duration=duration,
	)
	return await _persist(store, user_id, record)


@dataclass
class MigrationReport:
	writing: int = 0
	speaking: int = 0
	errors: List[str] = field(default_factory=list)

	@property
	def success(self) -> bool:
		return not self.errors


async def migrate_local_history(store: PracticeRecordStore, user_id: str | int) -> MigrationReport:
	"""Copy the guest cache into ``user_id``'s remote history.

	The guest cache itself is left in place. Stops at the first remote failure
	of each kind and reports it.
	"""
	report = MigrationReport()
	for kind in (RecordKind.WRITING, RecordKind.SPEAKING):
		for record in await store.read_local_cache(None, kind):
			if isinstance(record, WritingRecord):
				migrated: PracticeRecord = record.model_copy(update={"topic": record.topic or DEFAULT_MIGRATION_TOPIC, "score": 0})
			else:
				migrated = record.model_copy(update={"topic": record.topic or DEFAULT_MIGRATION_TOPIC, "duration": 0})
			try:
				await store.save(user_id, migrated)
			except Exception as exc:
				logger.warning("Migration of %s record %s for %s failed: %s", kind.value, record.id, user_id, exc)
				report.errors.append(f"{kind.value} {record.id}: {exc}")
				break
			if kind is RecordKind.WRITING:
				report.writing += 1
			else:
				report.speaking += 1
	return report
