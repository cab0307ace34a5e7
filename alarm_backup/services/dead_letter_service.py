# alarm_backup/services/dead_letter_service.py
"""
Dead-letter channel for alarms that could not be fully processed
(e.g. the event was stored but no video could be retrieved).

Messages carry the sanitized alarm as body plus diagnostic attributes:
    FailureReason      String   e.g. NoVideoFilesDownloaded
    OriginalTimestamp  Number   alarm timestamp (ms)
    RetryAttempt       Number   receive count of the queue message that failed
"""

from botocore.exceptions import BotoCoreError, ClientError

from alarm_backup.exceptions import ConfigurationError, QueueError
from alarm_backup.schemas.alarm import AlarmEvent
from alarm_backup.schemas.queue import DeadLetterAttributes
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)


class DeadLetterService:
    def __init__(self, settings, sqs_client):
        self.settings = settings
        self.sqs = sqs_client

    def send(self, alarm: AlarmEvent, reason: str, retry_attempt: int = 1) -> str:
        queue_url = self.settings.ALARM_PROCESSING_DLQ_URL
        if not queue_url:
            raise ConfigurationError("DLQ URL not configured")

        attributes = DeadLetterAttributes(
            failure_reason=reason,
            original_timestamp=alarm.timestamp,
            retry_attempt=retry_attempt,
        )
        try:
            response = self.sqs.send_message(
                QueueUrl=queue_url,
                MessageBody=alarm.sanitized().to_json(),
                MessageAttributes=attributes.to_message_attributes(),
            )
        except (ClientError, BotoCoreError) as e:
            raise QueueError(f"Failed to send alarm to dead-letter queue: {e}") from e

        message_id = response["MessageId"]
        logger.warning(f"[DLQ] Alarm sent to dead-letter queue: reason={reason} attempt={retry_attempt} id={message_id}")
        return message_id

    def depth(self) -> int:
        """Approximate messages waiting in the DLQ. 0 when unconfigured or unreadable."""
        queue_url = self.settings.ALARM_PROCESSING_DLQ_URL
        if not queue_url:
            return 0
        try:
            response = self.sqs.get_queue_attributes(
                QueueUrl=queue_url,
                AttributeNames=["ApproximateNumberOfMessages"],
            )
            return int(response.get("Attributes", {}).get("ApproximateNumberOfMessages", 0))
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.warning(f"[DLQ] Could not read dead-letter queue depth: {e}")
            return 0
