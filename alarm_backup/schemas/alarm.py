# alarm_backup/schemas/alarm.py
"""
Alarm webhook payload models.
camelCase on the wire (eventId, eventPath, ...), snake_case in Python.
All models are frozen: enrichment produces copies via model_copy().
"""

from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_WIRE = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)


class Source(BaseModel):
    model_config = _WIRE

    device: Optional[str] = None
    type: Optional[str] = None


class Condition(BaseModel):
    model_config = _WIRE

    type: Optional[str] = None
    source: Optional[str] = None


class Trigger(BaseModel):
    model_config = _WIRE

    key: Optional[str] = None        # motion | person | vehicle | ...
    device: Optional[str] = None     # usually the camera MAC
    event_id: Optional[str] = None
    # Populated by the orchestrator
    device_name: Optional[str] = None
    date: Optional[str] = None
    event_key: Optional[str] = None
    video_key: Optional[str] = None
    original_file_name: Optional[str] = None


class AlarmEvent(BaseModel):
    model_config = _WIRE

    name: Optional[str] = None
    timestamp: int = 0               # ms since epoch, 0 and negatives are tolerated
    triggers: Optional[list[Trigger]] = None
    sources: Optional[list[Source]] = None
    conditions: Optional[list[Condition]] = None
    event_path: Optional[str] = None
    event_local_link: Optional[str] = None
    thumbnail: Optional[str] = None

    @property
    def first_trigger(self) -> Optional[Trigger]:
        return self.triggers[0] if self.triggers else None

    def sanitized(self) -> "AlarmEvent":
        """Copy that is persisted as the event artifact: sources/conditions stripped."""
        return self.model_copy(update={"sources": None, "conditions": None})

    def with_first_trigger(self, trigger: Trigger) -> "AlarmEvent":
        return self.model_copy(update={"triggers": [trigger, *(self.triggers or [])[1:]]})

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class Credentials(BaseModel):
    """Video-source credentials stored in the secret store."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    hostname: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    apikey: Optional[str] = None

    @property
    def base_url(self) -> str:
        host = (self.hostname or "").rstrip("/")
        if not host.startswith(("http://", "https://")):
            host = "https://" + host
        return host

    def missing_fields(self) -> list[str]:
        return [f for f in ("hostname", "username", "password") if not (getattr(self, f) or "").strip()]


def event_link(credentials: Credentials, event_path: str) -> str:
    """Absolute link to an event on the video source, from a relative eventPath."""
    if urlparse(event_path).scheme:
        return event_path
    if not event_path.startswith("/"):
        event_path = "/" + event_path
    return credentials.base_url + event_path
