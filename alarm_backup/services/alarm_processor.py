# alarm_backup/services/alarm_processor.py
"""
Alarm processing pipeline: the core of the service.

    Received → Validated → KeysDerived → EventStored → [VideoAttempted → VideoStored] → Completed

Fatal (raised to the caller):   validation, missing bucket, credentials, event JSON write
Recoverable (logged + escalated): video fetch, video upload
Best effort (logged only):      thumbnail, summary row, dead-letter send, notification

Each step returns a StepOutcome; process() branches on its status.
"""

import base64
import binascii
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from alarm_backup.exceptions import (
    ArtifactStoreError,
    ConfigurationError,
    ValidationError,
    VideoFetchError,
    VideoUploadError,
)
from alarm_backup.schemas.alarm import AlarmEvent, Trigger, event_link
from alarm_backup.services.key_generator import StorageKeys, derive_keys
from alarm_backup.services.outcome import (
    ProcessingOutcome,
    ProcessingResult,
    StepOutcome,
    StepStatus,
)
from alarm_backup.utils.logger import get_logger
from alarm_backup.utils.responses import ERROR_GENERAL, ERROR_TRIGGERS

logger = get_logger(__name__)

REASON_NO_VIDEO = "NoVideoFilesDownloaded"
REASON_UPLOAD_FAILED = "VideoUploadFailed"

SUCCESS_MESSAGE = (
    "{function} has successfully processed the Unifi alarm event webhook "
    "with key {event_key} for {device_name} that occurred at {date}."
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlarmProcessor:
    def __init__(
        self,
        settings,
        credentials_provider,
        artifact_store,
        video_fetcher,
        dead_letter,
        notifier,
        summary_service=None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.credentials_provider = credentials_provider
        self.artifact_store = artifact_store
        self.video_fetcher = video_fetcher
        self.dead_letter = dead_letter
        self.notifier = notifier
        self.summary_service = summary_service
        self.clock = clock

    def process(self, alarm: Optional[AlarmEvent], attempt: int = 1) -> ProcessingResult:
        self._validate(alarm).raise_if_fatal()
        self._check_configuration().raise_if_fatal()

        credentials_step = self._resolve_credentials()
        credentials_step.raise_if_fatal()
        credentials = credentials_step.value

        trigger, keys = self._enrich(alarm.first_trigger, alarm.timestamp)
        alarm = alarm.with_first_trigger(trigger)
        logger.info(f"[ORCHESTRATOR] Processing {trigger.event_id} from {trigger.device_name} → {keys.event_key}")

        self._store_event(alarm, keys).raise_if_fatal()
        self._store_thumbnail(alarm, keys)

        video_step = self._retrieve_video(alarm, trigger, credentials, keys)
        outcome = ProcessingOutcome.SUCCESS
        dead_letter_id = None
        if video_step.status is StepStatus.RECOVERABLE:
            outcome = ProcessingOutcome.SUCCESS_DEGRADED
            dead_letter_id = self._escalate(alarm, video_step.reason, attempt)
        elif video_step.value:
            trigger = trigger.model_copy(update={"video_key": video_step.value})
            alarm = alarm.with_first_trigger(trigger)

        if self.summary_service is not None:
            self.summary_service.record(alarm, trigger)

        message = SUCCESS_MESSAGE.format(
            function=self.settings.FUNCTION_NAME,
            event_key=keys.event_key,
            device_name=trigger.device_name,
            date=trigger.date,
        )
        logger.info(f"[ORCHESTRATOR] ✅ {message}")
        return ProcessingResult(
            outcome=outcome,
            trigger=trigger,
            event_key=keys.event_key,
            video_key=trigger.video_key,
            message=message,
            failure_reason=video_step.reason,
            dead_letter_message_id=dead_letter_id,
        )

    # ── Steps ────────────────────────────────────────────────────────────────

    def _validate(self, alarm: Optional[AlarmEvent]) -> StepOutcome:
        if alarm is None:
            return StepOutcome.fatal(ValidationError(ERROR_GENERAL))
        if not alarm.triggers:
            return StepOutcome.fatal(ValidationError(ERROR_TRIGGERS))
        return StepOutcome.ok()

    def _check_configuration(self) -> StepOutcome:
        if not self.settings.STORAGE_BUCKET:
            return StepOutcome.fatal(ConfigurationError("STORAGE_BUCKET is not configured"))
        return StepOutcome.ok()

    def _resolve_credentials(self) -> StepOutcome:
        # Secret-store transport errors are not PipelineErrors and propagate unchanged
        try:
            return StepOutcome.ok(self.credentials_provider.get_credentials())
        except ConfigurationError as e:
            logger.error(f"[ORCHESTRATOR] Credentials unavailable: {e}")
            return StepOutcome.fatal(e)

    def _enrich(self, trigger: Trigger, timestamp_ms: int) -> tuple[Trigger, StorageKeys]:
        keys = derive_keys(trigger, timestamp_ms)
        try:
            occurred = (_EPOCH + timedelta(milliseconds=timestamp_ms)).strftime("%Y-%m-%dT%H:%M:%S")
        except OverflowError:
            occurred = keys.date
        enriched = trigger.model_copy(update={
            "device_name": self.settings.resolve_device_name(trigger.device),
            "date": occurred,
            "event_key": keys.event_key,
        })
        return enriched, keys

    def _store_event(self, alarm: AlarmEvent, keys: StorageKeys) -> StepOutcome:
        try:
            self.artifact_store.put_json(keys.event_key, alarm.sanitized().to_json())
        except ArtifactStoreError as e:
            logger.error(f"[ORCHESTRATOR] Failed to store event {keys.event_key}: {e}")
            return StepOutcome.fatal(e)
        return StepOutcome.ok(keys.event_key)

    def _store_thumbnail(self, alarm: AlarmEvent, keys: StorageKeys) -> StepOutcome:
        if not alarm.thumbnail:
            return StepOutcome.ok()
        try:
            data = _decode_thumbnail(alarm.thumbnail)
            self.artifact_store.put_bytes(keys.thumbnail_key, data, "image/jpeg")
        except (ArtifactStoreError, binascii.Error, ValueError) as e:
            logger.warning(f"[ORCHESTRATOR] Thumbnail not stored (non-critical): {e}")
            return StepOutcome.recoverable(e, "ThumbnailFailed")
        return StepOutcome.ok(keys.thumbnail_key)

    def _retrieve_video(self, alarm: AlarmEvent, trigger: Trigger, credentials, keys: StorageKeys) -> StepOutcome:
        if not alarm.event_path:
            logger.info(f"[ORCHESTRATOR] VIDEO_SKIPPED: no eventPath on {trigger.event_id}")
            return StepOutcome.ok()

        link = event_link(credentials, alarm.event_path)
        path = None
        try:
            try:
                path = self.video_fetcher.fetch(trigger, link, alarm.timestamp)
            except Exception as e:
                error = e if isinstance(e, VideoFetchError) else VideoFetchError(str(e))
                logger.warning(f"[ORCHESTRATOR] VIDEO_FAILED: fetch for {trigger.event_id}: {e}")
                return StepOutcome.recoverable(error, REASON_NO_VIDEO)

            try:
                self.artifact_store.put_file(keys.video_key, path)
            except Exception as e:
                logger.warning(f"[ORCHESTRATOR] VIDEO_FAILED: upload of {keys.video_key}: {e}")
                return StepOutcome.recoverable(VideoUploadError(str(e)), REASON_UPLOAD_FAILED)

            logger.info(f"[ORCHESTRATOR] 🎬 Video stored at {keys.video_key}")
            return StepOutcome.ok(keys.video_key)
        finally:
            self.video_fetcher.cleanup(path)

    def _escalate(self, alarm: AlarmEvent, reason: str, attempt: int) -> Optional[str]:
        message_id = None
        try:
            message_id = self.dead_letter.send(alarm, reason, attempt)
        except Exception as e:
            logger.error(f"[ORCHESTRATOR] Dead-letter send failed ({reason}): {e}", exc_info=True)

        dead_lettered_at = self.clock().strftime("%Y-%m-%d %H:%M:%S UTC")
        try:
            self.notifier.send_failure_notification(alarm, reason, message_id, dead_lettered_at)
        except Exception as e:
            logger.error(f"[ORCHESTRATOR] Failure notification raised: {e}", exc_info=True)
        return message_id


def _decode_thumbnail(thumbnail: str) -> bytes:
    """Thumbnails arrive as data URIs (data:image/jpeg;base64,...) or bare base64."""
    payload = thumbnail.partition(",")[2] if thumbnail.startswith("data:") else thumbnail
    data = base64.b64decode(payload, validate=True)
    if not data:
        raise ValueError("empty thumbnail")
    return data
