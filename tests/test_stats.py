import time
from datetime import datetime, timedelta, timezone

import pytest

from app.db.session import SessionLocal
from app.models.software import DownloadStatistic, SoftwareVersion
from app.services.stats import get_download_stats, period_starts


def seed_version(db) -> SoftwareVersion:
    version = SoftwareVersion(
        version_number="1.0.0",
        download_url="https://cdn.example.com/software/app.exe",
        checksum="00" * 32,
        size_bytes=10,
        is_latest=True,
    )
    db.add(version)
    db.commit()
    return version


def test_period_starts_are_local_midnights():
    now = datetime(2024, 5, 15, 12, 30, tzinfo=timezone.utc)
    starts = period_starts(now)
    for start in starts.values():
        assert (start.hour, start.minute, start.second, start.microsecond) == (0, 0, 0, 0)
        assert start <= now
    assert starts["week"].isoweekday() == 7  # Sunday
    assert starts["month"].day == 1
    assert starts["month"] <= starts["today"]
    assert starts["week"] <= starts["today"]
    assert starts["today"] - starts["week"] < timedelta(days=7)


def test_stats_with_no_downloads_are_zero(client, admin_headers):
    r = client.get("/software/stats", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {
        "totalDownloads": 0,
        "downloadsToday": 0,
        "downloadsThisWeek": 0,
        "downloadsThisMonth": 0,
    }


def test_stats_count_by_period():
    db = SessionLocal()
    try:
        version = seed_version(db)
        now = datetime.now(tz=timezone.utc)
        db.add_all(
            [
                DownloadStatistic(version_id=version.id, os_type="Windows", download_date=now),
                DownloadStatistic(version_id=version.id, os_type="Linux", download_date=now),
                DownloadStatistic(version_id=version.id, os_type="Unknown", download_date=now - timedelta(days=40)),
                DownloadStatistic(version_id=version.id, os_type="Unknown", download_date=now - timedelta(days=400)),
            ]
        )
        db.commit()

        stats = get_download_stats(db, now=now)
        assert stats.total_downloads == 4
        assert stats.downloads_today == 2
        assert stats.downloads_this_week == 2
        assert stats.downloads_this_month == 2
    finally:
        db.close()


def test_stats_count_is_monotonic_between_calls():
    db = SessionLocal()
    try:
        version = seed_version(db)
        before = get_download_stats(db)
        db.add(DownloadStatistic(version_id=version.id, os_type="Linux"))
        db.commit()
        after = get_download_stats(db)
    finally:
        db.close()
    assert after.total_downloads == before.total_downloads + 1
    assert after.downloads_today >= before.downloads_today


@pytest.fixture
def new_york_time(monkeypatch):
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_period_starts_follow_dst_changes(new_york_time):
    # Tuesday 2024-03-12; clocks moved forward on Sunday 2024-03-10
    now = datetime(2024, 3, 12, 16, 0, tzinfo=timezone.utc)
    starts = period_starts(now)
    assert starts["today"].isoformat() == "2024-03-12T00:00:00-04:00"
    assert starts["week"].isoformat() == "2024-03-10T00:00:00-05:00"
    assert starts["month"].isoformat() == "2024-03-01T00:00:00-05:00"
