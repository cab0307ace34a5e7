# tests/test_summary_service.py
"""Unit tests for the daily summary store (in-memory SQLite)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from alarm_backup.database import create_tables
from alarm_backup.exceptions import ValidationError
from alarm_backup.schemas.alarm import AlarmEvent, Trigger
from alarm_backup.services.summary_service import SummaryService

NOW = datetime(2023, 8, 2, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def record(service, event_id, timestamp, key="motion", device="28704E113F64", video=True):
    alarm = AlarmEvent(name="Backup Alarm", timestamp=timestamp)
    trigger = Trigger(
        key=key,
        device=device,
        event_id=event_id,
        device_name=f"cam-{device[-2:]}",
        event_key=f"2023-08-02/{event_id}_{device}_{timestamp}.json",
        video_key=f"2023-08-02/{event_id}_{device}_{timestamp}.mp4" if video else None,
    )
    return service.record(alarm, trigger)


class TestSummaryService:
    def test_daily_summary_aggregates(self, session_factory):
        dead_letter = MagicMock()
        dead_letter.depth.return_value = 2
        service = SummaryService(session_factory, dead_letter, clock=lambda: NOW)

        assert record(service, "evt_1", 1691000000000)                       # 18:13 UTC
        assert record(service, "evt_2", 1691000600000, key="person")         # 18:23 UTC
        assert record(service, "evt_3", 1690960000000, device="AABBCCDDEEFF", video=False)  # 07:06 UTC
        record(service, "evt_old", 1690900000000)                            # 2023-08-01

        summary = service.daily_summary("2023-08-02")

        assert summary["metadata"]["totalEvents"] == 3
        assert summary["metadata"]["missingVideoCount"] == 1
        assert summary["metadata"]["dlqMessageCount"] == 2
        assert summary["eventCounts"] == {"motion": 2, "person": 1}
        assert summary["deviceCounts"] == {"cam-64": 2, "cam-FF": 1}
        assert summary["hourlyCounts"]["18"] == 2
        assert summary["hourlyCounts"]["07"] == 1
        assert len(summary["hourlyCounts"]) == 24
        assert [e["eventId"] for e in summary["events"]] == ["evt_2", "evt_1", "evt_3"]
        assert summary["events"][2]["hasVideo"] is False

    def test_defaults_to_today(self, session_factory):
        service = SummaryService(session_factory, clock=lambda: NOW)
        summary = service.daily_summary()
        assert summary["metadata"]["date"] == "2023-08-02"
        assert summary["metadata"]["totalEvents"] == 0
        assert summary["metadata"]["dlqMessageCount"] == 0

    def test_rejects_bad_date(self, session_factory):
        with pytest.raises(ValidationError):
            SummaryService(session_factory).daily_summary("02/08/2023")

    def test_record_failure_is_swallowed(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        service = SummaryService(lambda: db, clock=lambda: NOW)

        assert record(service, "evt_1", 1691000000000) is False
        db.rollback.assert_called_once()
        db.close.assert_called_once()

    def test_out_of_range_timestamp_is_not_raised(self, session_factory):
        service = SummaryService(session_factory, clock=lambda: NOW)
        assert record(service, "evt_huge", 2 ** 63) is False
        assert record(service, "evt_1", 1691000000000) is True
        assert service.daily_summary("2023-08-02")["metadata"]["totalEvents"] == 1
