from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from fastapi.concurrency import run_in_threadpool

from .records import PracticeRecord, RecordKind, coerce_record, dump_record
from .settings import settings


logger = logging.getLogger(__name__)

GUEST_PARTITION = "guest"


def _partition_name(user_id: Optional[str | int]) -> str:
	if user_id is None or str(user_id) == "":
		return GUEST_PARTITION
	# Hashed so distinct ids never share a directory; "guest" stays reserved
	return "user-" + hashlib.sha256(str(user_id).encode("utf-8")).hexdigest()


class LocalPracticeCache:
	"""On-device copy of practice history, one JSON file per user and kind.

	Reads never raise: a missing or unreadable file is an empty history.
	Writes and clears raise ``OSError`` so callers can report the failure.
	File access runs in the threadpool.
	"""

	def __init__(self, root: str | Path | None = None) -> None:
		self.root = Path(root or settings.practice_cache_dir)

	def path_for(self, user_id: Optional[str | int], kind: RecordKind) -> Path:
		return self.root / _partition_name(user_id) / f"{RecordKind(kind).value}.json"

	def _read(self, user_id: Optional[str | int], kind: RecordKind) -> List[PracticeRecord]:
		path = self.path_for(user_id, kind)
		try:
			raw = path.read_text(encoding="utf-8")
		except FileNotFoundError:
			return []
		except OSError as exc:
			logger.warning("Could not read local %s cache %s: %s", kind.value, path, exc)
			return []
		try:
			items: Any = json.loads(raw) if raw.strip() else []
		except json.JSONDecodeError:
			logger.warning("Local %s cache %s is corrupt; treating it as empty", kind.value, path)
			return []
		if not isinstance(items, list):
			logger.warning("Local %s cache %s does not hold a list; treating it as empty", kind.value, path)
			return []
		records: List[PracticeRecord] = []
		for item in items:
			record = coerce_record(item, kind)
			if record is not None:
				records.append(record)
		return records

	def _write(self, user_id: Optional[str | int], kind: RecordKind, records: List[PracticeRecord]) -> None:
		path = self.path_for(user_id, kind)
		path.parent.mkdir(parents=True, exist_ok=True)
		payload = json.dumps([dump_record(r) for r in records], ensure_ascii=False)
		# Write-then-rename so a crash never leaves a half-written cache
		tmp_path = path.with_suffix(".json.tmp")
		tmp_path.write_text(payload, encoding="utf-8")
		os.replace(tmp_path, path)

	def _append(self, user_id: Optional[str | int], record: PracticeRecord) -> None:
		kind = RecordKind(record.kind)
		records = self._read(user_id, kind)
		records.append(record)
		self._write(user_id, kind, records)

	def _remove(self, user_id: Optional[str | int], kind: RecordKind, record_id: str) -> bool:
		records = self._read(user_id, kind)
		kept = [r for r in records if r.id != record_id]
		if len(kept) == len(records):
			return False
		self._write(user_id, kind, kept)
		return True

	def _clear(self, user_id: Optional[str | int], kind: RecordKind) -> None:
		try:
			self.path_for(user_id, kind).unlink()
		except FileNotFoundError:
			pass

	async def read(self, user_id: Optional[str | int], kind: RecordKind) -> List[PracticeRecord]:
		return await run_in_threadpool(self._read, user_id, RecordKind(kind))

	async def write(self, user_id: Optional[str | int], kind: RecordKind, records: List[PracticeRecord]) -> None:
		await run_in_threadpool(self._write, user_id, RecordKind(kind), list(records))

	async def append(self, user_id: Optional[str | int], record: PracticeRecord) -> None:
		await run_in_threadpool(self._append, user_id, record)

	async def remove(self, user_id: Optional[str | int], kind: RecordKind, record_id: str | int) -> bool:
		"""Drop the entry with ``record_id``; returns whether anything was removed."""
		return await run_in_threadpool(self._remove, user_id, RecordKind(kind), str(record_id))

	async def clear(self, user_id: Optional[str | int], kind: RecordKind) -> None:
		await run_in_threadpool(self._clear, user_id, RecordKind(kind))
