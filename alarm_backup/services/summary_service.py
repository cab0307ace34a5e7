# alarm_backup/services/summary_service.py
"""
Daily summary of processed alarms.
The orchestrator records one SummaryEvent row per completed alarm; the summary
route aggregates one UTC day: counts by event type, device and hour, the events
missing video, and the current dead-letter queue depth.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from alarm_backup.exceptions import ValidationError
from alarm_backup.models.summary_event import SummaryEvent
from alarm_backup.schemas.alarm import AlarmEvent, Trigger
from alarm_backup.services.key_generator import utc_date
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryService:
    def __init__(self, session_factory, dead_letter=None, clock: Callable[[], datetime] = _utcnow):
        self.session_factory = session_factory
        self.dead_letter = dead_letter
        self.clock = clock

    def record(self, alarm: AlarmEvent, trigger: Trigger) -> bool:
        """Insert one summary row. Failures are logged, never raised."""
        db = self.session_factory()
        try:
            db.add(SummaryEvent(
                event_id=trigger.event_id or "unknown",
                device=trigger.device,
                device_name=trigger.device_name,
                event_type=trigger.key,
                alarm_name=alarm.name,
                timestamp=alarm.timestamp,
                event_date=utc_date(alarm.timestamp),
                event_key=trigger.event_key,
                video_key=trigger.video_key,
                created_at=self.clock().replace(tzinfo=None),
            ))
            db.commit()
            return True
        except (SQLAlchemyError, OverflowError, ValueError) as e:
            # out-of-range timestamps fail in the driver, outside SQLAlchemy's wrapping
            db.rollback()
            logger.error(f"[SUMMARY] Could not record {trigger.event_id}: {e}")
            return False
        finally:
            db.close()

    def daily_summary(self, date: Optional[str] = None) -> dict:
        date = date or self.clock().strftime("%Y-%m-%d")
        try:
            datetime.strptime(date, "%Y-%m-%d")
        except ValueError:
            raise ValidationError(f"date must be formatted yyyy-mm-dd, got {date!r}")

        db = self.session_factory()
        try:
            rows = (
                db.query(SummaryEvent)
                .filter(SummaryEvent.event_date == date)
                .order_by(SummaryEvent.timestamp.desc())
                .all()
            )
        finally:
            db.close()

        event_counts = Counter(r.event_type or "unknown" for r in rows)
        device_counts = Counter(r.device_name or r.device or "unknown" for r in rows)
        hourly_counts = Counter(_hour(r.timestamp) for r in rows)
        missing_video = [r for r in rows if not r.video_key]

        summary = {
            "metadata": {
                "date": date,
                "totalEvents": len(rows),
                "missingVideoCount": len(missing_video),
                "dlqMessageCount": self.dead_letter.depth() if self.dead_letter else 0,
                "lastUpdated": self.clock().strftime("%Y-%m-%dT%H:%M:%SZ"),
            },
            "eventCounts": dict(event_counts),
            "deviceCounts": dict(device_counts),
            "hourlyCounts": {f"{h:02d}": hourly_counts.get(h, 0) for h in range(24)},
            "events": [_event_row(r) for r in rows],
        }
        logger.info(f"[SUMMARY] {date}: {len(rows)} events, {len(missing_video)} without video")
        return summary


def _hour(timestamp_ms: int) -> int:
    return (_EPOCH + timedelta(milliseconds=timestamp_ms)).hour


def _event_row(row: SummaryEvent) -> dict:
    return {
        "eventId": row.event_id,
        "device": row.device,
        "deviceName": row.device_name,
        "eventType": row.event_type,
        "alarmName": row.alarm_name,
        "timestamp": row.timestamp,
        "eventKey": row.event_key,
        "videoKey": row.video_key,
        "hasVideo": bool(row.video_key),
    }
