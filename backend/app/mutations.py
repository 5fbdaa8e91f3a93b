from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .records import RecordKind


logger = logging.getLogger(__name__)


class MutableRecordStore(Protocol):
	async def delete_writing(self, user_id: str | int, record_id: str | int) -> None: ...

	async def delete_speaking(self, user_id: str | int, record_id: str | int) -> None: ...

	async def remove_from_local_cache(self, user_id: Optional[str | int], kind: RecordKind, record_id: str | int) -> bool: ...

	async def clear_local_cache(self, user_id: Optional[str | int], kind: RecordKind) -> None: ...


@dataclass(frozen=True)
class MutationResult:
	success: bool
	error: Optional[str] = None

	@classmethod
	def ok(cls) -> "MutationResult":
		return cls(success=True)

	@classmethod
	def failed(cls, error: str) -> "MutationResult":
		return cls(success=False, error=error)


class MutationGateway:
	"""Deletes and wipes that keep the remote store and the local cache in step."""

	def __init__(self, store: MutableRecordStore) -> None:
		self.store = store

	async def delete_record(self, user_id: Optional[str | int], kind: RecordKind | str, record_id: str | int) -> MutationResult:
		"""Delete one record by ``(kind, id)``.

		The remote delete only happens for a signed-in user and is the only
		step that can fail the call. The local cache entry is removed either
		way. Unknown ids are a successful no-op.
		"""
		kind = RecordKind(kind)
		result = MutationResult.ok()
		if user_id is not None:
			try:
				if kind is RecordKind.SPEAKING:
					await self.store.delete_speaking(user_id, record_id)
				else:
					await self.store.delete_writing(user_id, record_id)
			except Exception as exc:
				logger.exception("Remote delete of %s %s for %s failed", kind.value, record_id, user_id)
				result = MutationResult.failed(f"could not delete {kind.value} record {record_id}: {exc}")
		try:
			await self.store.remove_from_local_cache(user_id, kind, record_id)
		except OSError as exc:
			logger.warning("Local cache delete of %s %s failed: %s", kind.value, record_id, exc)
		return result

	async def clear_all(self, user_id: Optional[str | int]) -> MutationResult:
		"""Wipe the user's local writing and speaking caches.

		Remote history is left alone; there is no bulk remote delete.
		"""
		failures = []
		for kind in (RecordKind.WRITING, RecordKind.SPEAKING):
			try:
				await self.store.clear_local_cache(user_id, kind)
			except OSError as exc:
				logger.warning("Could not clear local %s cache for %s: %s", kind.value, "guest" if user_id is None else user_id, exc)
				failures.append(f"{kind.value}: {exc}")
		if failures:
			return MutationResult.failed("could not clear local history (" + "; ".join(failures) + ")")
		return MutationResult.ok()
