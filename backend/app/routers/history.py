"""
Practice History Endpoints
==========================

Read views over the merged writing + speaking history and the two
mutations (single delete, clear-all). Without a bearer token every endpoint
works against the guest partition of the local cache.

- GET    /history/timeline            newest-first records
- GET    /history/by-date?q=...       day -> question groups, optionally searched
- GET    /history/by-topic            topic -> records
- GET    /history/stats               totals, averages and day streak
- DELETE /history/{kind}/{record_id}  delete one record
- DELETE /history                     wipe the local cache
- POST   /history/migrate             copy guest history to the signed-in user
"""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..aggregator import MistakeAggregator, TimelineResult
from ..grouping import filter_by_query, group_by_date_then_question, group_by_topic
from ..mutations import MutationGateway
from ..practice import migrate_local_history
from ..records import QuestionGroup, Record, RecordKind
from ..stats import PracticeStats, compute_practice_stats
from ..store import PracticeRecordStore, get_record_store
from .auth import User, get_current_user, get_optional_user, user_id_of


router = APIRouter(prefix="/history", tags=["history"])


class TimelineResponse(BaseModel):
	records: List[Record]
	degraded: bool = False
	failed_kinds: List[RecordKind] = []


class ByDateResponse(BaseModel):
	days: Dict[str, List[QuestionGroup]]
	degraded: bool = False


class ByTopicResponse(BaseModel):
	topics: Dict[str, List[Record]]
	degraded: bool = False


class MutationResponse(BaseModel):
	ok: bool = True


class MigrationResponse(BaseModel):
	writing: int
	speaking: int


async def _timeline(store: PracticeRecordStore, user: Optional[User]) -> TimelineResult:
	result = await MistakeAggregator(store).load_timeline(user_id_of(user))
	if result.all_failed:
		raise HTTPException(status_code=503, detail="could not load any history")
	return result


@router.get("/timeline", response_model=TimelineResponse)
async def timeline(user: Optional[User] = Depends(get_optional_user), store: PracticeRecordStore = Depends(get_record_store)):
	result = await _timeline(store, user)
	return TimelineResponse(records=result.records, degraded=result.degraded, failed_kinds=result.failed_kinds)


@router.get("/by-date", response_model=ByDateResponse)
async def by_date(
	q: Optional[str] = Query(default=None, max_length=200),
	user: Optional[User] = Depends(get_optional_user),
	store: PracticeRecordStore = Depends(get_record_store),
):
	result = await _timeline(store, user)
	days = filter_by_query(group_by_date_then_question(result.records), q)
	return ByDateResponse(days=days, degraded=result.degraded)


@router.get("/by-topic", response_model=ByTopicResponse)
async def by_topic(user: Optional[User] = Depends(get_optional_user), store: PracticeRecordStore = Depends(get_record_store)):
	result = await _timeline(store, user)
	return ByTopicResponse(topics=group_by_topic(result.records), degraded=result.degraded)


@router.get("/stats", response_model=PracticeStats)
async def stats(user: Optional[User] = Depends(get_optional_user), store: PracticeRecordStore = Depends(get_record_store)):
	result = await _timeline(store, user)
	return compute_practice_stats(result.records)


@router.delete("/{kind}/{record_id}", response_model=MutationResponse)
async def delete_record(
	kind: RecordKind,
	record_id: str,
	user: Optional[User] = Depends(get_optional_user),
	store: PracticeRecordStore = Depends(get_record_store),
):
	result = await MutationGateway(store).delete_record(user_id_of(user), kind, record_id)
	if not result.success:
		raise HTTPException(status_code=502, detail="could not delete")
	return MutationResponse()


@router.delete("", response_model=MutationResponse)
async def clear_all(user: Optional[User] = Depends(get_optional_user), store: PracticeRecordStore = Depends(get_record_store)):
	result = await MutationGateway(store).clear_all(user_id_of(user))
	if not result.success:
		raise HTTPException(status_code=500, detail=result.error or "could not clear history")
	return MutationResponse()


@router.post("/migrate", response_model=MigrationResponse)
async def migrate(user: User = Depends(get_current_user), store: PracticeRecordStore = Depends(get_record_store)):
	report = await migrate_local_history(store, user.username)
	if not report.success:
		raise HTTPException(status_code=502, detail="; ".join(report.errors))
	return MigrationResponse(writing=report.writing, speaking=report.speaking)
