from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.models.software import DownloadStatistic
from app.schemas.software import DownloadStatsResponse


def _local_midnight(day: date) -> datetime:
    # a naive datetime is taken as local time, so the offset matches that date
    return datetime(day.year, day.month, day.day).astimezone()


def period_starts(now: datetime) -> Dict[str, datetime]:
    """Start of the local day, week (Sunday) and month containing ``now``."""
    today = now.astimezone().date()
    # isoweekday: Monday=1 .. Sunday=7
    week_start = today - timedelta(days=today.isoweekday() % 7)
    return {
        "today": _local_midnight(today),
        "week": _local_midnight(week_start),
        "month": _local_midnight(today.replace(day=1)),
    }


def _count_since(db: Session, since: Optional[datetime]) -> int:
    query = db.query(DownloadStatistic)
    if since is not None:
        # stored timestamps are UTC
        query = query.filter(DownloadStatistic.download_date >= since.astimezone(timezone.utc))
    return query.count()


def get_download_stats(db: Session, now: Optional[datetime] = None) -> DownloadStatsResponse:
    starts = period_starts(now or datetime.now(tz=timezone.utc))
    return DownloadStatsResponse(
        total_downloads=_count_since(db, None),
        downloads_today=_count_since(db, starts["today"]),
        downloads_this_week=_count_since(db, starts["week"]),
        downloads_this_month=_count_since(db, starts["month"]),
    )


def get_user_download_count(db: Session, user_id: int) -> int:
    return db.query(DownloadStatistic).filter(DownloadStatistic.user_id == user_id).count()
