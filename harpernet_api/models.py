from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class QuizResult(Base):
    """One completed quiz attempt. Rows are written once and never updated."""

    __tablename__ = "quiz_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    quiz_id: Mapped[str] = mapped_column(String(100), index=True)
    quiz_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    result_type: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    score: Mapped[int] = mapped_column(Integer)
    max_score: Mapped[int] = mapped_column(Integer)
    percentage: Mapped[float] = mapped_column(Float)
    answers: Mapped[list] = mapped_column(JSON, default=list)
    time_taken_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    def to_dict(self) -> Dict[str, Any]:
        created_at = self.created_at
        if created_at is not None and created_at.tzinfo is None:
            # SQLite hands back naive datetimes.
            created_at = created_at.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "quiz_title": self.quiz_title,
            "result_type": self.result_type,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "answers": self.answers or [],
            "time_taken_seconds": self.time_taken_seconds,
            "session_id": self.session_id,
            "referrer": self.referrer,
            "created_at": created_at.isoformat() if created_at else None,
        }
