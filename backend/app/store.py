"""
Practice Record Store
=====================

Remote practice history lives in the SQL database (``writing_history`` and
``speaking_history``, scoped by ``user_id``); the on-device fallback is a
:class:`LocalPracticeCache`. Remote methods raise :class:`StoreError` on any
database failure. Cache reads never raise.

The database session API is synchronous, so remote calls are pushed onto the
threadpool to keep the event loop free and let writing and speaking fetches
run side by side.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import SessionLocal
from .local_cache import LocalPracticeCache
from .models import SpeakingHistory, WritingHistory
from .records import (
	PracticeRecord,
	RecordKind,
	SpeakingRecord,
	WritingRecord,
	coerce_record,
)
from .settings import settings


logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
	"""A remote store call failed (network, auth or database error)."""


def _load_json(text: Optional[str], default: Any) -> Any:
	if not text:
		return default
	return json.loads(text)


def _writing_from_row(row: WritingHistory) -> Optional[WritingRecord]:
	try:
		errors = _load_json(row.errors, [])
	except json.JSONDecodeError:
		logger.warning("Skipping writing_history row %s with unparseable errors", row.id)
		return None
	return coerce_record(
		{
			"id": row.id,
			"date": row.created_at,
			"question": row.question,
			"topic": row.topic,
			"answer": row.original_text or "",
			"errors": errors,
			"score": row.score,
			"corrected_text": row.corrected_text,
		},
		RecordKind.WRITING,
	)


def _speaking_from_row(row: SpeakingHistory) -> Optional[SpeakingRecord]:
	try:
		errors = _load_json(row.errors, [])
		scores = _load_json(row.scores, {})
	except json.JSONDecodeError:
		logger.warning("Skipping speaking_history row %s with unparseable JSON", row.id)
		return None
	return coerce_record(
		{
			"id": row.id,
			"date": row.created_at,
			"question": row.question,
			"topic": row.topic,
			"transcript": row.transcript or "",
			"audio_reference": row.audio_url,
			"errors": errors,
			"scores": scores,
			"duration": row.duration or 0,
		},
		RecordKind.SPEAKING,
	)


def _remote_id(record_id: str | int) -> Optional[int]:
	try:
		return int(str(record_id).strip())
	except ValueError:
		return None


class PracticeRecordStore:
	def __init__(
		self,
		session_factory: Callable[[], Session] = SessionLocal,
		cache: Optional[LocalPracticeCache] = None,
		*,
		fetch_limit: Optional[int] = None,
	) -> None:
		self._session_factory = session_factory
		self.cache = cache or LocalPracticeCache()
		self.fetch_limit = fetch_limit or settings.history_fetch_limit

	# ------------------------------------------------------------------
	# Remote
	# ------------------------------------------------------------------

	def _query(self, model, user_id: str, to_record) -> List[PracticeRecord]:
		try:
			with self._session_factory() as db:
				rows = db.execute(
					select(model)
					.where(model.user_id == user_id)
					.order_by(model.created_at.desc(), model.id.desc())
					.limit(self.fetch_limit)
				).scalars().all()
		except SQLAlchemyError as exc:
			raise StoreError(f"could not fetch {model.__tablename__} for {user_id}: {exc}") from exc
		records: List[PracticeRecord] = []
		for row in rows:
			record = to_record(row)
			if record is not None:
				records.append(record)
		return records

	def _delete(self, model, user_id: str, record_id: str | int) -> None:
		remote_id = _remote_id(record_id)
		if remote_id is None:
			# Local-only ids never reach the database
			return
		try:
			with self._session_factory() as db:
				db.execute(delete(model).where(model.user_id == user_id, model.id == remote_id))
				db.commit()
		except SQLAlchemyError as exc:
			raise StoreError(f"could not delete {model.__tablename__} {record_id} for {user_id}: {exc}") from exc

	def _insert(self, row, to_record) -> PracticeRecord:
		try:
			with self._session_factory() as db:
				db.add(row)
				db.commit()
				db.refresh(row)
				record = to_record(row)
		except SQLAlchemyError as exc:
			raise StoreError(f"could not save {row.__tablename__} for {row.user_id}: {exc}") from exc
		if record is None:
			raise StoreError(f"saved {row.__tablename__} row {row.id} could not be read back")
		return record

	async def fetch_writing(self, user_id: str | int) -> List[WritingRecord]:
		return await run_in_threadpool(self._query, WritingHistory, str(user_id), _writing_from_row)

	async def fetch_speaking(self, user_id: str | int) -> List[SpeakingRecord]:
		return await run_in_threadpool(self._query, SpeakingHistory, str(user_id), _speaking_from_row)

	async def fetch(self, kind: RecordKind, user_id: str | int) -> List[PracticeRecord]:
		if RecordKind(kind) is RecordKind.SPEAKING:
			return await self.fetch_speaking(user_id)
		return await self.fetch_writing(user_id)

	async def delete_writing(self, user_id: str | int, record_id: str | int) -> None:
		await run_in_threadpool(self._delete, WritingHistory, str(user_id), record_id)

	async def delete_speaking(self, user_id: str | int, record_id: str | int) -> None:
		await run_in_threadpool(self._delete, SpeakingHistory, str(user_id), record_id)

	async def delete(self, kind: RecordKind, user_id: str | int, record_id: str | int) -> None:
		if RecordKind(kind) is RecordKind.SPEAKING:
			await self.delete_speaking(user_id, record_id)
		else:
			await self.delete_writing(user_id, record_id)

	async def save_writing(self, user_id: str | int, record: WritingRecord) -> WritingRecord:
		row = WritingHistory(
			user_id=str(user_id),
			question=record.question,
			topic=record.topic,
			original_text=record.answer,
			errors=json.dumps([e.model_dump(exclude_none=True) for e in record.errors]),
			corrected_text=record.corrected_text,
			score=record.score,
			created_at=record.date,
		)
		return await run_in_threadpool(self._insert, row, _writing_from_row)

	async def save_speaking(self, user_id: str | int, record: SpeakingRecord) -> SpeakingRecord:
		row = SpeakingHistory(
			user_id=str(user_id),
			question=record.question,
			topic=record.topic,
			transcript=record.transcript,
			audio_url=record.audio_reference,
			errors=json.dumps([e.model_dump(exclude_none=True) for e in record.errors]),
			scores=json.dumps(record.scores.model_dump(by_alias=True)),
			duration=record.duration,
			created_at=record.date,
		)
		return await run_in_threadpool(self._insert, row, _speaking_from_row)

	async def save(self, user_id: str | int, record: PracticeRecord) -> PracticeRecord:
		if isinstance(record, SpeakingRecord):
			return await self.save_speaking(user_id, record)
		return await self.save_writing(user_id, record)

	# ------------------------------------------------------------------
	# Local cache
	# ------------------------------------------------------------------

	async def read_local_cache(self, user_id: Optional[str | int], kind: RecordKind) -> List[PracticeRecord]:
		return await self.cache.read(user_id, kind)

	async def write_local_cache(self, user_id: Optional[str | int], kind: RecordKind, records: List[PracticeRecord]) -> None:
		await self.cache.write(user_id, kind, records)

	async def append_local_cache(self, user_id: Optional[str | int], record: PracticeRecord) -> None:
		await self.cache.append(user_id, record)

	async def remove_from_local_cache(self, user_id: Optional[str | int], kind: RecordKind, record_id: str | int) -> bool:
		return await self.cache.remove(user_id, kind, record_id)

	async def clear_local_cache(self, user_id: Optional[str | int], kind: RecordKind) -> None:
		await self.cache.clear(user_id, kind)


@lru_cache
def get_record_store() -> PracticeRecordStore:
	return PracticeRecordStore()
