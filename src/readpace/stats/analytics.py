"""Reading analytics and statistics calculations.

Summaries are folded fresh from the stored sessions and results on every
query; no running totals are kept. Provides:
- Overall summary (time read, average WPM per mode, average score)
- Daily breakdowns
- Reading mode comparison
- Period presets (today, week, month, all)
- CSV export of completed sessions
"""

import csv
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from io import StringIO
from pathlib import Path
from typing import Any, Iterable, Optional

from ..db.schemas import ReadingMode
from ..db.sqlite import Database, get_db


class AnalyticsPeriod(str, Enum):
    """Preset reporting periods."""

    TODAY = "today"
    WEEK = "week"  # Rolling seven days
    MONTH = "month"  # Calendar month to date
    ALL = "all"


# Column headers for session CSV export
EXPORT_COLUMNS = [
    "date",
    "mode",
    "duration_ms",
    "words_read",
    "wpm",
    "score_percent",
]


def period_start(period: AnalyticsPeriod | str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of a preset period in UTC, or None for all time."""
    period = AnalyticsPeriod(period)
    now = now or datetime.now(timezone.utc)

    if period == AnalyticsPeriod.TODAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == AnalyticsPeriod.WEEK:
        return now - timedelta(days=7)
    if period == AnalyticsPeriod.MONTH:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


@dataclass
class AnalyticsSummary:
    """Aggregate statistics over completed sessions."""

    total_time_ms: int = 0
    average_wpm_by_mode: dict[str, float] = field(default_factory=dict)
    average_score_percent: float = 0.0
    sessions_count: int = 0
    total_words_read: int = 0


@dataclass
class DailyStats:
    """Statistics for sessions that ended on one day."""

    date: str
    sessions_count: int = 0
    total_time_ms: int = 0
    average_wpm: float = 0.0
    average_score: float = 0.0


@dataclass
class ModeStats:
    """Statistics for one reading mode."""

    mode: str
    sessions_count: int = 0
    average_wpm: float = 0.0
    average_score: float = 0.0
    total_time_ms: int = 0


@dataclass
class DetailedAnalytics:
    """Summary plus daily and per-mode breakdowns for a period."""

    period_days: int
    summary: AnalyticsSummary
    daily_stats: list[DailyStats] = field(default_factory=list)
    mode_comparison: list[ModeStats] = field(default_factory=list)


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _mode(value: Any) -> str:
    return ReadingMode(value).value


def _day(ended_at: Any) -> str:
    if isinstance(ended_at, datetime):
        return ended_at.date().isoformat()
    return str(ended_at)[:10]


def _iso(value: Optional[datetime | str]) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def summarize(sessions: Iterable[Any], results: Iterable[Any]) -> AnalyticsSummary:
    """Fold sessions and quiz results into an AnalyticsSummary.

    Only sessions with ``ended_at`` set are counted. Modes without sessions
    are absent from ``average_wpm_by_mode``; with no results the average
    score is 0.

    Args:
        sessions: Session rows or responses (ended_at, mode, duration_ms,
            words_read, computed_wpm)
        results: Anything with a ``score_percent``
    """
    completed = [s for s in sessions if s.ended_at is not None]

    wpm_by_mode: dict[str, list[float]] = defaultdict(list)
    for session in completed:
        wpm_by_mode[_mode(session.mode)].append(session.computed_wpm)

    return AnalyticsSummary(
        total_time_ms=sum(s.duration_ms for s in completed),
        average_wpm_by_mode={mode: _mean(values) for mode, values in wpm_by_mode.items()},
        average_score_percent=_mean([r.score_percent for r in results]),
        sessions_count=len(completed),
        total_words_read=sum(s.words_read for s in completed),
    )


class ReadingAnalytics:
    """Calculates reading analytics from stored sessions and results."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize analytics.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def get_summary(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[datetime | str] = None,
        end: Optional[datetime | str] = None,
        mode: Optional[ReadingMode | str] = None,
    ) -> AnalyticsSummary:
        """Get summary statistics for completed sessions.

        Args:
            user_id: Only this user's sessions
            device_id: Only this device's sessions
            start: Earliest end time (inclusive)
            end: Latest end time (inclusive)
            mode: Only sessions in this reading mode

        Returns:
            AnalyticsSummary (all zero for an empty history)
        """
        sessions, results = self._load(user_id, device_id, start, end, mode)
        return summarize(sessions, results.values())

    def get_daily_stats(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[datetime | str] = None,
        end: Optional[datetime | str] = None,
    ) -> list[DailyStats]:
        """Get per-day statistics, oldest day first."""
        sessions, results = self._load(user_id, device_id, start, end)

        by_day = defaultdict(list)
        for session in sessions:
            by_day[_day(session.ended_at)].append(session)

        stats = []
        for day, day_sessions in sorted(by_day.items()):
            scores = [results[s.id].score_percent for s in day_sessions if s.id in results]
            stats.append(DailyStats(
                date=day,
                sessions_count=len(day_sessions),
                total_time_ms=sum(s.duration_ms for s in day_sessions),
                average_wpm=_mean([s.computed_wpm for s in day_sessions]),
                average_score=_mean(scores),
            ))
        return stats

    def get_mode_comparison(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[datetime | str] = None,
        end: Optional[datetime | str] = None,
    ) -> list[ModeStats]:
        """Compare reading modes, most used first."""
        sessions, results = self._load(user_id, device_id, start, end)

        by_mode = defaultdict(list)
        for session in sessions:
            by_mode[_mode(session.mode)].append(session)

        stats = []
        for mode, mode_sessions in by_mode.items():
            scores = [results[s.id].score_percent for s in mode_sessions if s.id in results]
            stats.append(ModeStats(
                mode=mode,
                sessions_count=len(mode_sessions),
                average_wpm=_mean([s.computed_wpm for s in mode_sessions]),
                average_score=_mean(scores),
                total_time_ms=sum(s.duration_ms for s in mode_sessions),
            ))

        stats.sort(key=lambda x: (-x.sessions_count, x.mode))
        return stats

    def get_detailed_analytics(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        days: int = 30,
    ) -> DetailedAnalytics:
        """Get summary, daily stats and mode comparison for recent days.

        Args:
            user_id: Only this user's sessions
            device_id: Only this device's sessions
            days: Number of days back from now to include
        """
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=days)

        return DetailedAnalytics(
            period_days=days,
            summary=self.get_summary(user_id, device_id, start, end),
            daily_stats=self.get_daily_stats(user_id, device_id, start, end),
            mode_comparison=self.get_mode_comparison(user_id, device_id, start, end),
        )

    def get_summary_for_period(
        self,
        period: AnalyticsPeriod | str,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AnalyticsSummary:
        """Get summary statistics for a preset period.

        Raises:
            ValueError: If the period is not one of today, week, month, all
        """
        return self.get_summary(user_id, device_id, start=period_start(period, now))

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_rows(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[datetime | str] = None,
        end: Optional[datetime | str] = None,
    ) -> list[dict]:
        """One row per completed session, oldest first.

        Sessions without a quiz result have an empty score.
        """
        sessions, results = self._load(user_id, device_id, start, end)

        rows = []
        for session in sorted(sessions, key=lambda s: s.ended_at):
            result = results.get(session.id)
            rows.append({
                "date": _day(session.ended_at),
                "mode": _mode(session.mode),
                "duration_ms": session.duration_ms,
                "words_read": session.words_read,
                "wpm": session.computed_wpm,
                "score_percent": result.score_percent if result else "",
            })
        return rows

    def export_csv(
        self,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[datetime | str] = None,
        end: Optional[datetime | str] = None,
    ) -> str:
        """Export completed sessions as a CSV string."""
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(self.export_rows(user_id, device_id, start, end))
        return output.getvalue()

    def export_csv_file(
        self,
        output_path: Path,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        start: Optional[datetime | str] = None,
        end: Optional[datetime | str] = None,
    ) -> int:
        """Write completed sessions to a CSV file.

        Returns:
            Number of sessions exported
        """
        rows = self.export_rows(user_id, device_id, start, end)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
        return len(rows)

    def _load(
        self,
        user_id: Optional[str],
        device_id: Optional[str],
        start: Optional[datetime | str],
        end: Optional[datetime | str],
        mode: Optional[ReadingMode | str] = None,
    ) -> tuple[list, dict]:
        with self.db.get_session() as session:
            sessions = self.db.get_completed_sessions(
                user_id=user_id,
                device_id=device_id,
                start=_iso(start),
                end=_iso(end),
                mode=_mode(mode) if mode else None,
                session=session,
            )
            results = self.db.get_results_for_sessions(
                [s.id for s in sessions], session=session
            )
            for row in [*sessions, *results]:
                session.expunge(row)

        return sessions, {r.session_id: r for r in results}
