"""
Unit tests for the delete and clear-all mutations.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.mutations import MutationGateway
from app.records import RecordKind
from tests.factories import make_speaking, make_writing


@pytest.fixture
def mock_store():
	mock = MagicMock()
	mock.delete_writing = AsyncMock()
	mock.delete_speaking = AsyncMock()
	mock.remove_from_local_cache = AsyncMock(return_value=True)
	mock.clear_local_cache = AsyncMock()
	return mock


class TestDeleteRecord:
	@pytest.mark.asyncio
	async def test_signed_in_deletes_remote_and_local(self, mock_store):
		result = await MutationGateway(mock_store).delete_record(42, RecordKind.SPEAKING, "7")
		assert result.success
		mock_store.delete_speaking.assert_awaited_once_with(42, "7")
		mock_store.delete_writing.assert_not_called()
		mock_store.remove_from_local_cache.assert_awaited_once_with(42, RecordKind.SPEAKING, "7")

	@pytest.mark.asyncio
	async def test_guest_skips_remote(self, mock_store):
		result = await MutationGateway(mock_store).delete_record(None, "writing", "7")
		assert result.success
		mock_store.delete_writing.assert_not_called()
		mock_store.remove_from_local_cache.assert_awaited_once_with(None, RecordKind.WRITING, "7")

	@pytest.mark.asyncio
	async def test_remote_failure_still_cleans_local(self, store):
		await store.append_local_cache(42, make_writing("7"))
		await store.append_local_cache(42, make_writing("8"))
		store.delete_writing = AsyncMock(side_effect=ConnectionError("offline"))

		result = await MutationGateway(store).delete_record(42, RecordKind.WRITING, "7")

		assert not result.success
		assert "7" in result.error
		assert [r.id for r in await store.read_local_cache(42, RecordKind.WRITING)] == ["8"]

	@pytest.mark.asyncio
	async def test_local_failure_does_not_fail_call(self, mock_store, caplog):
		mock_store.remove_from_local_cache.side_effect = PermissionError("read-only")
		result = await MutationGateway(mock_store).delete_record(42, RecordKind.WRITING, "7")
		assert result.success
		assert "read-only" in caplog.text

	@pytest.mark.asyncio
	async def test_missing_record_is_noop_success(self, store):
		result = await MutationGateway(store).delete_record("alice", RecordKind.SPEAKING, "12345")
		assert result.success

	@pytest.mark.asyncio
	async def test_end_to_end_delete(self, store):
		saved = await store.save_writing("alice", make_writing())
		other = await store.save_speaking("alice", make_speaking())
		result = await MutationGateway(store).delete_record("alice", RecordKind.WRITING, saved.id)
		assert result.success
		assert await store.fetch_writing("alice") == []
		# Same numeric id in the other kind is untouched
		assert [r.id for r in await store.fetch_speaking("alice")] == [other.id]


class TestClearAll:
	@pytest.mark.asyncio
	async def test_clears_both_local_caches_only(self, store):
		saved = await store.save_writing(42, make_writing())
		await store.append_local_cache(42, make_writing("w-local"))
		await store.append_local_cache(42, make_speaking("s-local"))

		result = await MutationGateway(store).clear_all(42)

		assert result.success
		assert await store.read_local_cache(42, RecordKind.WRITING) == []
		assert await store.read_local_cache(42, RecordKind.SPEAKING) == []
		assert [r.id for r in await store.fetch_writing(42)] == [saved.id]

	@pytest.mark.asyncio
	async def test_other_users_cache_untouched(self, store):
		await store.append_local_cache("bob", make_writing("bob-1"))
		await MutationGateway(store).clear_all("alice")
		assert [r.id for r in await store.read_local_cache("bob", RecordKind.WRITING)] == ["bob-1"]

	@pytest.mark.asyncio
	async def test_io_error_is_failure(self, mock_store):
		mock_store.clear_local_cache.side_effect = [None, OSError("disk full")]
		result = await MutationGateway(mock_store).clear_all(None)
		assert not result.success
		assert "disk full" in result.error
		assert mock_store.clear_local_cache.await_count == 2

	@pytest.mark.asyncio
	async def test_io_error_logs_numeric_user_id(self, mock_store, caplog):
		mock_store.clear_local_cache.side_effect = OSError("disk full")
		await MutationGateway(mock_store).clear_all(0)
		assert "local writing cache for 0" in caplog.text
		assert "for guest" not in caplog.text
