from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence

from .records import PracticeRecord, RecordKind, coerce_record


logger = logging.getLogger(__name__)


class RecordSource(Protocol):
	async def fetch_writing(self, user_id: str | int) -> Sequence[Any]: ...

	async def fetch_speaking(self, user_id: str | int) -> Sequence[Any]: ...

	async def read_local_cache(self, user_id: Optional[str | int], kind: RecordKind) -> Sequence[Any]: ...


@dataclass
class TimelineResult:
	"""Merged history plus the kinds that could not be loaded this time."""
	records: List[PracticeRecord] = field(default_factory=list)
	failed_kinds: List[RecordKind] = field(default_factory=list)
	errors: List[str] = field(default_factory=list)

	@property
	def degraded(self) -> bool:
		return bool(self.failed_kinds)

	@property
	def all_failed(self) -> bool:
		return set(self.failed_kinds) >= {RecordKind.WRITING, RecordKind.SPEAKING}


def sort_timeline(records: Sequence[PracticeRecord]) -> List[PracticeRecord]:
	# sorted() is stable with reverse=True: equal dates keep writing-before-speaking
	return sorted(records, key=lambda r: r.date, reverse=True)


class MistakeAggregator:
	"""Merges writing and speaking history into one newest-first timeline."""

	def __init__(self, store: RecordSource) -> None:
		self.store = store

	async def _load_kind(self, user_id: Optional[str | int], kind: RecordKind) -> List[PracticeRecord]:
		if user_id is None:
			items = await self.store.read_local_cache(None, kind)
		elif kind is RecordKind.WRITING:
			items = await self.store.fetch_writing(user_id)
		else:
			items = await self.store.fetch_speaking(user_id)
		records: List[PracticeRecord] = []
		for item in items or []:
			record = coerce_record(item, kind)
			if record is not None:
				records.append(record)
		return records

	async def load_timeline(self, user_id: Optional[str | int]) -> TimelineResult:
		"""Fetch both kinds concurrently; a failing kind contributes nothing.

		With no ``user_id`` (guest mode) only the local cache is consulted.
		"""
		kinds = (RecordKind.WRITING, RecordKind.SPEAKING)
		outcomes = await asyncio.gather(
			*(self._load_kind(user_id, kind) for kind in kinds),
			return_exceptions=True,
		)
		result = TimelineResult()
		merged: List[PracticeRecord] = []
		for kind, outcome in zip(kinds, outcomes):
			if isinstance(outcome, BaseException):
				if not isinstance(outcome, Exception):
					raise outcome
				logger.warning("Could not load %s history for %s: %s", kind.value, "guest" if user_id is None else user_id, outcome)
				result.failed_kinds.append(kind)
				result.errors.append(f"{kind.value}: {outcome}")
				continue
			merged.extend(outcome)
		result.records = sort_timeline(merged)
		return result

	async def combined_timeline(self, user_id: Optional[str | int]) -> List[PracticeRecord]:
		return (await self.load_timeline(user_id)).records
