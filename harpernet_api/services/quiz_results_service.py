"""
Write path and aggregate queries for quiz results.

Every aggregate is recomputed from the database on each call.
"""
from __future__ import annotations

import logging
import statistics
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Select, and_, case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models import QuizResult
from ..schemas import ClientInfo, QuizResultSubmission

logger = logging.getLogger(__name__)

SCORE_BUCKETS = (
    ("0-19", 0.0, 20.0),
    ("20-39", 20.0, 40.0),
    ("40-59", 40.0, 60.0),
    ("60-79", 60.0, 80.0),
    ("80-100", 80.0, None),
)


def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    return None if value is None else round(float(value), digits)


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    # SQLite returns DATE() results as strings already.
    return str(value)


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    return value[:length]


def utc_day(column: Any, dialect_name: str) -> Any:
    """Calendar day of a timestamp column, taken in UTC."""
    if dialect_name == "postgresql":
        # DATE() on timestamptz uses the session time zone.
        return func.date(func.timezone("UTC", column))
    return func.date(column)


class QuizResultService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, submission: QuizResultSubmission, client: Optional[ClientInfo] = None) -> QuizResult:
        client = client or ClientInfo()
        result = QuizResult(
            quiz_id=submission.quiz_id,
            quiz_title=submission.quiz_title,
            result_type=submission.result_type,
            score=submission.score,
            max_score=submission.max_score,
            percentage=submission.percentage,
            answers=[answer.model_dump() for answer in submission.answers],
            time_taken_seconds=submission.time_taken_seconds,
            session_id=submission.session_id,
            user_agent=_truncate(client.user_agent, 500),
            ip_address=_truncate(client.ip_address, 45),
            referrer=_truncate(submission.referrer or client.referrer, 500),
        )
        try:
            self.db.add(result)
            self.db.commit()
            self.db.refresh(result)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store quiz result for {submission.quiz_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to store quiz result: {e}") from e

        logger.info(
            f"Stored quiz result {result.id} quiz={result.quiz_id} "
            f"score={result.score}/{result.max_score}"
        )
        return result

    def _filtered(self, stmt: Select, quiz_id: Optional[str], since: Optional[datetime] = None) -> Select:
        if quiz_id:
            stmt = stmt.where(QuizResult.quiz_id == quiz_id)
        if since is not None:
            stmt = stmt.where(QuizResult.created_at >= since)
        return stmt

    def stats(self, quiz_id: Optional[str] = None) -> Dict[str, Any]:
        try:
            return self._stats(quiz_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to compute quiz statistics: {e}", exc_info=True)
            raise PersistenceError(f"Failed to compute statistics: {e}") from e

    def _stats(self, quiz_id: Optional[str]) -> Dict[str, Any]:
        totals = self.db.execute(
            self._filtered(
                select(
                    func.count(QuizResult.id),
                    func.avg(QuizResult.score),
                    func.avg(QuizResult.percentage),
                    func.max(QuizResult.percentage),
                    func.min(QuizResult.percentage),
                    func.avg(QuizResult.time_taken_seconds),
                    func.count(func.distinct(QuizResult.quiz_id)),
                    func.max(QuizResult.created_at),
                ),
                quiz_id,
            )
        ).one()
        (total, avg_score, avg_pct, max_pct, min_pct, avg_time, unique_quizzes, latest) = totals

        by_quiz = self.db.execute(
            self._filtered(
                select(
                    QuizResult.quiz_id,
                    func.max(QuizResult.quiz_title),
                    func.count(QuizResult.id),
                    func.avg(QuizResult.percentage),
                ),
                quiz_id,
            )
            .group_by(QuizResult.quiz_id)
            .order_by(func.count(QuizResult.id).desc(), QuizResult.quiz_id)
        ).all()

        by_type = self.db.execute(
            self._filtered(
                select(QuizResult.result_type, func.count(QuizResult.id)),
                quiz_id,
            )
            .where(QuizResult.result_type.is_not(None))
            .group_by(QuizResult.result_type)
            .order_by(func.count(QuizResult.id).desc(), QuizResult.result_type)
        ).all()

        return {
            "total_results": int(total or 0),
            "average_score": _round(avg_score),
            "average_percentage": _round(avg_pct),
            "highest_percentage": _round(max_pct),
            "lowest_percentage": _round(min_pct),
            "average_time_taken_seconds": _round(avg_time, 1),
            "unique_quizzes": int(unique_quizzes or 0),
            "results_by_quiz": [
                {
                    "quiz_id": row[0],
                    "quiz_title": row[1],
                    "count": int(row[2]),
                    "average_percentage": _round(row[3]),
                }
                for row in by_quiz
            ],
            "result_types": [
                {"result_type": row[0], "count": int(row[1])} for row in by_type
            ],
            "latest_submission": _iso(latest),
        }

    def analytics(
        self,
        quiz_id: Optional[str] = None,
        days: int = 30,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        try:
            return self._analytics(quiz_id, days, now or datetime.now(timezone.utc))
        except SQLAlchemyError as e:
            logger.error(f"Failed to compute quiz analytics: {e}", exc_info=True)
            raise PersistenceError(f"Failed to compute analytics: {e}") from e

    def _analytics(self, quiz_id: Optional[str], days: int, now: datetime) -> Dict[str, Any]:
        end_day = now.date()
        start_day = end_day - timedelta(days=days - 1)
        since = datetime.combine(start_day, datetime.min.time(), tzinfo=timezone.utc)

        total = self.db.scalar(self._filtered(select(func.count(QuizResult.id)), quiz_id)) or 0
        in_period = (
            self.db.scalar(self._filtered(select(func.count(QuizResult.id)), quiz_id, since)) or 0
        )

        percentages = sorted(
            self.db.scalars(self._filtered(select(QuizResult.percentage), quiz_id)).all()
        )
        median = _round(statistics.median(percentages)) if percentages else None

        whens = []
        for label, low, high in SCORE_BUCKETS:
            condition = QuizResult.percentage >= low
            if high is not None:
                condition = and_(condition, QuizResult.percentage < high)
            whens.append((condition, label))
        bucket = case(*whens, else_=SCORE_BUCKETS[0][0]).label("bucket")
        bucket_counts = dict(
            self.db.execute(
                self._filtered(select(bucket, func.count(QuizResult.id)), quiz_id).group_by(bucket)
            ).all()
        )
        distribution = [
            {"range": label, "count": int(bucket_counts.get(label, 0))}
            for label, _, _ in SCORE_BUCKETS
        ]

        day = utc_day(QuizResult.created_at, self.db.get_bind().dialect.name).label("day")
        daily_counts = {
            _iso(row[0]): int(row[1])
            for row in self.db.execute(
                self._filtered(select(day, func.count(QuizResult.id)), quiz_id, since).group_by(day)
            ).all()
        }
        daily = [
            {
                "date": (start_day + timedelta(days=offset)).isoformat(),
                "count": daily_counts.get((start_day + timedelta(days=offset)).isoformat(), 0),
            }
            for offset in range(days)
        ]

        type_rows = self.db.execute(
            self._filtered(select(QuizResult.result_type, func.count(QuizResult.id)), quiz_id)
            .where(QuizResult.result_type.is_not(None))
            .group_by(QuizResult.result_type)
            .order_by(func.count(QuizResult.id).desc(), QuizResult.result_type)
        ).all()
        type_breakdown = [
            {
                "result_type": row[0],
                "count": int(row[1]),
                "percentage": _round(int(row[1]) / total * 100) if total else 0.0,
            }
            for row in type_rows
        ]

        quiz_rows = self.db.execute(
            self._filtered(
                select(
                    QuizResult.quiz_id,
                    func.count(QuizResult.id),
                    func.avg(QuizResult.percentage),
                    func.avg(QuizResult.score),
                    func.avg(QuizResult.time_taken_seconds),
                ),
                quiz_id,
            )
            .group_by(QuizResult.quiz_id)
            .order_by(func.count(QuizResult.id).desc(), QuizResult.quiz_id)
        ).all()
        quiz_breakdown = [
            {
                "quiz_id": row[0],
                "count": int(row[1]),
                "average_percentage": _round(row[2]),
                "average_score": _round(row[3]),
                "average_time_taken_seconds": _round(row[4], 1),
            }
            for row in quiz_rows
        ]

        time_avg, time_min, time_max = self.db.execute(
            self._filtered(
                select(
                    func.avg(QuizResult.time_taken_seconds),
                    func.min(QuizResult.time_taken_seconds),
                    func.max(QuizResult.time_taken_seconds),
                ),
                quiz_id,
            )
        ).one()

        return {
            "period": {
                "days": days,
                "start": start_day.isoformat(),
                "end": end_day.isoformat(),
            },
            "total_results": int(total),
            "submissions_in_period": int(in_period),
            "median_percentage": median,
            "score_distribution": distribution,
            "daily_submissions": daily,
            "result_type_breakdown": type_breakdown,
            "quiz_breakdown": quiz_breakdown,
            "time_taken": {
                "average": _round(time_avg, 1),
                "min": time_min,
                "max": time_max,
            },
        }
