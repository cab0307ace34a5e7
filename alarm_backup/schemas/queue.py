# alarm_backup/schemas/queue.py
"""Queue envelope records and the dead-letter attribute wire contract."""

from dataclasses import dataclass, field
from typing import Any

QUEUE_EVENT_SOURCE = "aws:sqs"


@dataclass(frozen=True)
class QueueRecord:
    message_id: str
    body: str
    receive_count: int = 1
    attributes: dict = field(default_factory=dict)

    @classmethod
    def from_envelope(cls, record: dict) -> "QueueRecord":
        attrs = record.get("attributes") or {}
        try:
            receive_count = int(attrs.get("ApproximateReceiveCount", 1))
        except (TypeError, ValueError):
            receive_count = 1
        return cls(
            message_id=str(record.get("messageId", "unknown")),
            body=record.get("body") or "",
            receive_count=max(receive_count, 1),
            attributes=attrs,
        )


@dataclass(frozen=True)
class DeadLetterAttributes:
    failure_reason: str
    original_timestamp: Any
    retry_attempt: int

    def to_message_attributes(self) -> dict:
        return {
            "FailureReason": {"DataType": "String", "StringValue": self.failure_reason},
            "OriginalTimestamp": {"DataType": "Number", "StringValue": str(self.original_timestamp)},
            "RetryAttempt": {"DataType": "Number", "StringValue": str(int(self.retry_attempt))},
        }


@dataclass
class BatchReport:
    processed: int = 0
    failed: int = 0
    failed_message_ids: list = field(default_factory=list)

    def to_body(self) -> dict:
        return {
            "msg": "Batch processed",
            "processed": self.processed,
            "failed": self.failed,
            "failedMessageIds": self.failed_message_ids,
        }
