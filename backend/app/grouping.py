"""
History Grouping
================

Builds the views the history screens render from a merged timeline:

- by date, then by question: ``{"2024-01-02": [QuestionGroup, ...], ...}``
  with days newest first, groups ordered by their latest attempt and attempts
  newest first;
- by topic: ``{"Grammar": [record, ...], "Uncategorized": [...]}`` with topics
  in lexicographic order and records in timeline order;
- a text search over the by-date view that keeps or drops whole groups.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from .records import (
	UNCATEGORIZED,
	AttemptSummary,
	PracticeRecord,
	QuestionGroup,
	calendar_day,
	coerce_record,
	parse_calendar_day,
	question_key,
)


logger = logging.getLogger(__name__)

GroupedByDate = Dict[str, List[QuestionGroup]]
GroupedByTopic = Dict[str, List[PracticeRecord]]


def _valid_records(timeline: Iterable[Any]) -> Iterable[PracticeRecord]:
	for item in timeline:
		record = coerce_record(item)
		if record is not None:
			yield record


def group_by_date_then_question(timeline: Iterable[Any]) -> GroupedByDate:
	days: Dict[str, Dict[str, QuestionGroup]] = {}
	for record in _valid_records(timeline):
		groups = days.setdefault(calendar_day(record.date), {})
		key = question_key(record)
		group = groups.get(key)
		if group is None:
			group = QuestionGroup(
				question_key=key,
				question=record.question,
				kind=record.kind,
				topic=record.topic,
			)
			groups[key] = group
		group.attempts.append(AttemptSummary.from_record(record))

	result: GroupedByDate = {}
	for day in sorted(days, key=parse_calendar_day, reverse=True):
		groups = list(days[day].values())
		for group in groups:
			group.attempts.sort(key=lambda a: a.date, reverse=True)
		# Stable: groups whose latest attempts tie keep first-seen order
		groups.sort(key=lambda g: g.latest_date, reverse=True)
		result[day] = groups
	return result


def topic_label(record: PracticeRecord) -> str:
	return record.topic or UNCATEGORIZED


def group_by_topic(timeline: Iterable[Any]) -> GroupedByTopic:
	buckets: GroupedByTopic = {}
	for record in _valid_records(timeline):
		buckets.setdefault(topic_label(record), []).append(record)
	return {topic: buckets[topic] for topic in sorted(buckets)}


def _matches(text: str | None, needle: str) -> bool:
	return bool(text) and needle in text.lower()


def _group_matches(group: QuestionGroup, needle: str) -> bool:
	if _matches(group.question, needle):
		return True
	for attempt in group.attempts:
		if _matches(attempt.answer_text, needle):
			return True
		for error in attempt.errors:
			if _matches(error.wrong, needle) or _matches(error.correct, needle) or _matches(error.reason, needle):
				return True
	return False


def filter_by_query(grouped: GroupedByDate, query: str | None) -> GroupedByDate:
	"""Keep the question groups mentioning ``query`` anywhere (case-insensitive).

	A matching group keeps all of its attempts; days left with no groups are
	dropped. An empty query returns ``grouped`` untouched.
	"""
	if not query:
		return grouped
	needle = query.lower()
	filtered: GroupedByDate = {}
	for day, groups in grouped.items():
		kept = [g for g in groups if _group_matches(g, needle)]
		if kept:
			filtered[day] = kept
	return filtered
