# alarm_backup/services/queue_poller.py
"""
Queue poller: long-polls the processing queue for deployments that are not
triggered by Lambda/SQS event source mappings (a container or a plain VM).

Received messages are wrapped in the same batch envelope Lambda would deliver,
routed, and deleted afterwards. Failed records are deleted too: their failure
is already visible through logs, the dead-letter queue and notifications.
"""

import time

from botocore.exceptions import BotoCoreError, ClientError

from alarm_backup.schemas.queue import QUEUE_EVENT_SOURCE
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)

# Reconnect delay in seconds (doubles on each failure, max 60s)
_MIN_BACKOFF = 3
_MAX_BACKOFF = 60


def to_envelope(messages: list) -> dict:
    """SQS ReceiveMessage output → Lambda-style batch envelope."""
    return {
        "Records": [
            {
                "messageId": m["MessageId"],
                "receiptHandle": m["ReceiptHandle"],
                "body": m.get("Body", ""),
                "attributes": m.get("Attributes", {}),
                "messageAttributes": m.get("MessageAttributes", {}),
                "eventSource": QUEUE_EVENT_SOURCE,
            }
            for m in messages
        ]
    }


class QueuePoller:
    def __init__(self, settings, sqs_client, router, sleep=time.sleep):
        self.settings = settings
        self.sqs = sqs_client
        self.router = router
        self.sleep = sleep
        self._running = False

    def poll_once(self) -> int:
        """Receive one batch, route it, delete it. Returns the number of messages handled."""
        queue_url = self.settings.ALARM_PROCESSING_QUEUE_URL
        response = self.sqs.receive_message(
            QueueUrl=queue_url,
            MaxNumberOfMessages=self.settings.QUEUE_POLL_BATCH_SIZE,
            WaitTimeSeconds=self.settings.QUEUE_POLL_WAIT_SECONDS,
            AttributeNames=["ApproximateReceiveCount"],
            MessageAttributeNames=["All"],
        )
        messages = response.get("Messages", [])
        if not messages:
            return 0

        result = self.router.route(to_envelope(messages))
        logger.info(f"[POLLER] Batch of {len(messages)} → HTTP {result.status_code}")

        self.sqs.delete_message_batch(
            QueueUrl=queue_url,
            Entries=[
                {"Id": str(i), "ReceiptHandle": m["ReceiptHandle"]}
                for i, m in enumerate(messages)
            ],
        )
        return len(messages)

    def run(self):
        """Poll until stop() is called. Reconnects with backoff on AWS errors."""
        if not self.settings.ALARM_PROCESSING_QUEUE_URL:
            logger.warning("ALARM_PROCESSING_QUEUE_URL not configured: polling disabled.")
            return

        logger.info(f"🚀 Polling {self.settings.ALARM_PROCESSING_QUEUE_URL}")
        self._running = True
        backoff = _MIN_BACKOFF
        while self._running:
            try:
                self.poll_once()
                backoff = _MIN_BACKOFF  # reset on success
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"❌ [POLLER] Queue error: {e}. Retry in {backoff}s")
                self.sleep(backoff)
                backoff = min(backoff * 2, _MAX_BACKOFF)

    def stop(self):
        self._running = False
