from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Integer, Text, Index
from .db import Base


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class WritingHistory(Base):
	__tablename__ = "writing_history"
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(String(128), nullable=False, index=True)
	question = Column(Text, nullable=False)
	topic = Column(String(256), nullable=True)
	original_text = Column(Text, nullable=False, default="")
	errors = Column(Text, nullable=False, default="[]")  # JSON list of {wrong, correct, reason, type}
	corrected_text = Column(Text, nullable=True)
	score = Column(Integer, nullable=False, default=0)
	created_at = Column(DateTime, default=_utcnow, nullable=False)

	__table_args__ = (Index("ix_writing_history_user_created", "user_id", "created_at"),)


class SpeakingHistory(Base):
	__tablename__ = "speaking_history"
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(String(128), nullable=False, index=True)
	question = Column(Text, nullable=False)
	topic = Column(String(256), nullable=True)
	transcript = Column(Text, nullable=False, default="")
	audio_url = Column(Text, nullable=True)
	errors = Column(Text, nullable=False, default="[]")  # JSON list
	scores = Column(Text, nullable=False, default="{}")  # JSON {overallScore, grammar, addressingQuestion, length}
	duration = Column(Integer, nullable=False, default=0)
	created_at = Column(DateTime, default=_utcnow, nullable=False)

	__table_args__ = (Index("ix_speaking_history_user_created", "user_id", "created_at"),)
