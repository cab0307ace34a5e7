# alarm_backup/services/queue_service.py
"""
Asynchronous processing via SQS.

Ingestion only validates and enqueues (202, fast ack). The message is delivered
PROCESSING_DELAY_SECONDS later, giving the video source time to finish writing
the clip, and processed from a batch envelope:

    {"Records": [{"messageId": ..., "body": "<alarm json>", "eventSource": "aws:sqs",
                  "attributes": {"ApproximateReceiveCount": "1", ...}}, ...]}

Records are processed one at a time; a failing record never aborts the batch.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as PydanticValidationError

from alarm_backup.exceptions import ConfigurationError, QueueError
from alarm_backup.schemas.alarm import AlarmEvent
from alarm_backup.schemas.queue import QUEUE_EVENT_SOURCE, BatchReport, QueueRecord
from alarm_backup.services.outcome import outcome_for_error
from alarm_backup.utils.json_parser import safe_parse_json
from alarm_backup.utils.logger import get_logger
from alarm_backup.utils.responses import ApiResponse, accepted

logger = get_logger(__name__)

QUEUED_MESSAGE = "Alarm event has been queued for processing"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_batch(payload: Any) -> Optional[list[QueueRecord]]:
    """
    Recognise a queue-origin batch envelope.
    Accepts a dict, JSON text or bytes. Returns the records, or None when the
    payload is anything else (including malformed JSON). Never raises.
    """
    if isinstance(payload, (str, bytes, bytearray)):
        payload = safe_parse_json(payload)
    if not isinstance(payload, dict):
        return None

    records = payload.get("Records")
    if not isinstance(records, list) or not records:
        return None
    if not all(isinstance(r, dict) and r.get("eventSource") == QUEUE_EVENT_SOURCE for r in records):
        return None
    return [QueueRecord.from_envelope(r) for r in records]


class AsyncQueueService:
    def __init__(self, settings, sqs_client, processor, dead_letter, clock: Callable[[], datetime] = _utcnow):
        self.settings = settings
        self.sqs = sqs_client
        self.processor = processor
        self.dead_letter = dead_letter
        self.clock = clock

    parse_batch = staticmethod(parse_batch)

    def enqueue(self, alarm: AlarmEvent) -> ApiResponse:
        queue_url = self.settings.ALARM_PROCESSING_QUEUE_URL
        if not queue_url:
            raise ConfigurationError("ALARM_PROCESSING_QUEUE_URL is not configured")

        delay = self.settings.PROCESSING_DELAY_SECONDS
        trigger = alarm.first_trigger
        event_id = (trigger.event_id if trigger else None) or "unknown"
        device = (trigger.device if trigger else None) or "unknown"

        try:
            response = self.sqs.send_message(
                QueueUrl=queue_url,
                MessageBody=alarm.to_json(),
                DelaySeconds=delay,
                MessageAttributes={
                    "EventId": {"DataType": "String", "StringValue": event_id},
                    "Device": {"DataType": "String", "StringValue": device},
                    "Timestamp": {"DataType": "Number", "StringValue": str(alarm.timestamp)},
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Failed to enqueue alarm {event_id}: {e}") from e

        message_id = response["MessageId"]
        estimated = self.clock() + timedelta(seconds=delay)
        logger.info(f"[QUEUE] 📥 Queued {event_id} from {device} (delay={delay}s, id={message_id})")

        return accepted({
            "msg": QUEUED_MESSAGE,
            "eventId": event_id,
            "device": device,
            "processingDelay": delay,
            "messageId": message_id,
            "estimatedProcessingTime": estimated.strftime("%Y-%m-%d %H:%M:%S UTC"),
        })

    def process_batch(self, records: list[QueueRecord]) -> BatchReport:
        report = BatchReport()
        logger.info(f"[QUEUE] Processing batch of {len(records)} record(s)")

        for record in records:
            try:
                alarm = AlarmEvent.model_validate_json(record.body)
            except PydanticValidationError as e:
                logger.error(f"[QUEUE] Record {record.message_id} has an unreadable body: {e}")
                report.failed += 1
                report.failed_message_ids.append(record.message_id)
                continue

            try:
                result = self.processor.process(alarm, attempt=record.receive_count)
            except Exception as e:
                logger.error(
                    f"[QUEUE] Record {record.message_id} failed ({outcome_for_error(e).value}): {e}",
                    exc_info=True,
                )
                report.failed += 1
                report.failed_message_ids.append(record.message_id)
                continue

            report.processed += 1
            logger.info(f"[QUEUE] Record {record.message_id} → {result.outcome.value}")

        logger.info(f"[QUEUE] Batch done: {report.processed} processed, {report.failed} failed")
        return report

    def send_to_dead_letter(self, alarm: AlarmEvent, reason: str, retry_attempt: int = 1) -> str:
        return self.dead_letter.send(alarm, reason, retry_attempt)

    def dead_letter_depth(self) -> int:
        return self.dead_letter.depth()
