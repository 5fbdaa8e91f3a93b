from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel

from .records import PracticeRecord, SpeakingRecord, WritingRecord, calendar_day


class PracticeStats(BaseModel):
	total_writing: int = 0
	total_speaking: int = 0
	average_writing_score: int = 0
	average_speaking_score: int = 0
	total_errors: int = 0
	streak: int = 0


def _rounded_mean(values: List[int]) -> int:
	if not values:
		return 0
	# Half-up like the app always showed, not banker's rounding
	return int(sum(values) / len(values) + 0.5)


def practice_streak(days: Iterable[date], today: date) -> int:
	"""Consecutive practice days ending today or yesterday."""
	unique = sorted(set(days), reverse=True)
	if not unique or unique[0] < today - timedelta(days=1):
		return 0
	streak = 1
	for newer, older in zip(unique, unique[1:]):
		if (newer - older).days != 1:
			break
		streak += 1
	return streak


def compute_practice_stats(records: Iterable[PracticeRecord], *, today: Optional[date] = None) -> PracticeStats:
	records = list(records)
	writing = [r for r in records if isinstance(r, WritingRecord)]
	speaking = [r for r in records if isinstance(r, SpeakingRecord)]
	today = today or datetime.now(timezone.utc).date()
	return PracticeStats(
		total_writing=len(writing),
		total_speaking=len(speaking),
		average_writing_score=_rounded_mean([r.score for r in writing if r.score > 0]),
		average_speaking_score=_rounded_mean([r.scores.overall_score for r in speaking if r.scores.overall_score > 0]),
		total_errors=sum(len(r.errors) for r in records),
		streak=practice_streak((date.fromisoformat(calendar_day(r.date)) for r in records), today),
	)
