# tests/test_queue_service.py
"""Unit tests for enqueueing, batch detection and batch processing."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock
from botocore.exceptions import ClientError, EndpointConnectionError

from alarm_backup.config import Settings
from alarm_backup.exceptions import ConfigurationError, QueueError, ValidationError
from alarm_backup.schemas.alarm import AlarmEvent
from alarm_backup.services.outcome import ProcessingOutcome, ProcessingResult
from alarm_backup.services.queue_service import QUEUED_MESSAGE, AsyncQueueService, parse_batch

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/1/alarm-processing"

ALARM = {
    "name": "Backup Alarm",
    "timestamp": 1691000000000,
    "triggers": [{"key": "motion", "device": "28704E113F64", "eventId": "evt_1"}],
}


def make_record(message_id="m-1", body=None, receive_count="1"):
    return {
        "messageId": message_id,
        "receiptHandle": f"rh-{message_id}",
        "body": json.dumps(ALARM) if body is None else body,
        "attributes": {"ApproximateReceiveCount": receive_count},
        "eventSource": "aws:sqs",
    }


def make_service(queue_url=QUEUE_URL, delay=120):
    settings = Settings(_env_file=None, ALARM_PROCESSING_QUEUE_URL=queue_url, PROCESSING_DELAY_SECONDS=delay)
    sqs = MagicMock()
    sqs.send_message.return_value = {"MessageId": "msg-1"}
    processor = MagicMock()
    processor.process.return_value = ProcessingResult(outcome=ProcessingOutcome.SUCCESS)
    dead_letter = MagicMock()
    service = AsyncQueueService(
        settings, sqs, processor, dead_letter,
        clock=lambda: datetime(2023, 8, 2, 18, 13, 20, tzinfo=timezone.utc),
    )
    return service


class TestEnqueue:
    def test_accepted_response(self):
        service = make_service()
        response = service.enqueue(AlarmEvent.model_validate(ALARM))

        assert response.status_code == 202
        assert response.body == {
            "msg": QUEUED_MESSAGE,
            "eventId": "evt_1",
            "device": "28704E113F64",
            "processingDelay": 120,
            "messageId": "msg-1",
            "estimatedProcessingTime": "2023-08-02 18:15:20 UTC",
        }

    def test_message_shape(self):
        service = make_service(delay=45)
        service.enqueue(AlarmEvent.model_validate(ALARM))

        kwargs = service.sqs.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert kwargs["DelaySeconds"] == 45
        assert json.loads(kwargs["MessageBody"])["triggers"][0]["eventId"] == "evt_1"
        assert kwargs["MessageAttributes"]["EventId"]["StringValue"] == "evt_1"
        assert kwargs["MessageAttributes"]["Timestamp"]["StringValue"] == "1691000000000"

    def test_unparseable_delay_uses_default(self):
        service = make_service(delay="soon")
        service.enqueue(AlarmEvent.model_validate(ALARM))
        assert service.sqs.send_message.call_args.kwargs["DelaySeconds"] == 120

    def test_unconfigured_queue(self):
        service = make_service(queue_url=None)
        with pytest.raises(ConfigurationError):
            service.enqueue(AlarmEvent.model_validate(ALARM))

    def test_transport_failure(self):
        service = make_service()
        service.sqs.send_message.side_effect = ClientError({"Error": {"Code": "Throttling"}}, "SendMessage")
        with pytest.raises(QueueError):
            service.enqueue(AlarmEvent.model_validate(ALARM))

    def test_connection_failure(self):
        service = make_service()
        service.sqs.send_message.side_effect = EndpointConnectionError(endpoint_url="https://sqs.us-east-1.amazonaws.com")
        with pytest.raises(QueueError):
            service.enqueue(AlarmEvent.model_validate(ALARM))


class TestParseBatch:
    def test_dict_envelope(self):
        records = parse_batch({"Records": [make_record("a"), make_record("b", receive_count="3")]})
        assert [r.message_id for r in records] == ["a", "b"]
        assert records[1].receive_count == 3

    def test_json_text_and_bytes(self):
        raw = json.dumps({"Records": [make_record()]})
        assert len(parse_batch(raw)) == 1
        assert len(parse_batch(raw.encode())) == 1

    @pytest.mark.parametrize("payload", [
        None,
        "",
        "{not json",
        b"\xff\xfe",
        [],
        {"httpMethod": "POST", "path": "/alarmevent"},
        {"Records": []},
        {"Records": "nope"},
        {"Records": [{"eventSource": "aws:s3"}]},
        {"Records": [make_record(), {"eventSource": "aws:sns"}]},
    ])
    def test_not_a_batch(self, payload):
        assert parse_batch(payload) is None

    def test_bad_receive_count_defaults_to_one(self):
        records = parse_batch({"Records": [make_record(receive_count="many")]})
        assert records[0].receive_count == 1


class TestProcessBatch:
    def test_one_failure_does_not_abort_batch(self):
        service = make_service()
        service.processor.process.side_effect = [
            ValidationError("you must have triggers in your payload"),
            ProcessingResult(outcome=ProcessingOutcome.SUCCESS),
        ]
        records = parse_batch({"Records": [make_record("a"), make_record("b")]})

        report = service.process_batch(records)

        assert service.processor.process.call_count == 2
        assert report.processed == 1
        assert report.failed == 1
        assert report.failed_message_ids == ["a"]

    def test_unexpected_exception_is_isolated(self):
        service = make_service()
        service.processor.process.side_effect = [RuntimeError("boom"), ProcessingResult(outcome=ProcessingOutcome.SUCCESS)]
        report = service.process_batch(parse_batch({"Records": [make_record("a"), make_record("b")]}))
        assert (report.processed, report.failed) == (1, 1)

    def test_unreadable_body_is_skipped(self):
        service = make_service()
        records = parse_batch({"Records": [make_record("a", body="{broken"), make_record("b")]})

        report = service.process_batch(records)

        service.processor.process.assert_called_once()
        assert report.failed_message_ids == ["a"]

    def test_receive_count_is_passed_as_attempt(self):
        service = make_service()
        service.process_batch(parse_batch({"Records": [make_record(receive_count="4")]}))
        assert service.processor.process.call_args.kwargs["attempt"] == 4


class TestDeadLetterDelegation:
    def test_send_and_depth_delegate(self):
        service = make_service()
        service.dead_letter.send.return_value = "dlq-1"
        service.dead_letter.depth.return_value = 5
        alarm = AlarmEvent.model_validate(ALARM)

        assert service.send_to_dead_letter(alarm, "NoVideoFilesDownloaded") == "dlq-1"
        service.dead_letter.send.assert_called_once_with(alarm, "NoVideoFilesDownloaded", 1)
        assert service.dead_letter_depth() == 5
