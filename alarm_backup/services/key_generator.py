# alarm_backup/services/key_generator.py
"""
Storage key derivation for alarm artifacts.

    base      = {eventId}_{device}_{timestampMs}
    date      = UTC date of timestampMs (yyyy-mm-dd)
    eventKey  = {date}/{base}.json
    videoKey  = {date}/{base}.mp4

The eventId prefix lets event lookups prefix-scan a date folder instead of
downloading every event file. Pure functions; garbage in, garbage out.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UNKNOWN_DATE = "unknown-date"   # timestamps outside the datetime range


@dataclass(frozen=True)
class StorageKeys:
    base: str
    date: str
    event_key: str
    video_key: str
    thumbnail_key: str


def utc_date(timestamp_ms: int) -> str:
    # timedelta instead of fromtimestamp() so negative values work on every platform
    try:
        return (_EPOCH + timedelta(milliseconds=int(timestamp_ms))).strftime("%Y-%m-%d")
    except (OverflowError, TypeError, ValueError):
        return UNKNOWN_DATE


def derive_keys(trigger, timestamp_ms: int) -> StorageKeys:
    base = f"{trigger.event_id}_{trigger.device}_{timestamp_ms}"
    date = utc_date(timestamp_ms)
    return StorageKeys(
        base=base,
        date=date,
        event_key=f"{date}/{base}.json",
        video_key=f"{date}/{base}.mp4",
        thumbnail_key=f"{date}/{base}.jpg",
    )


def timestamp_from_key(key: str) -> int:
    """
    Trailing millisecond timestamp of a stored key.
    '2023-08-02/evt_1_AA_1691000000000.mp4' → 1691000000000; 0 when unparseable.
    """
    name = key.rsplit("/", 1)[-1].rsplit(".", 1)[0]
    try:
        return int(name.rsplit("_", 1)[-1])
    except ValueError:
        return 0
