# alarm_backup/services/request_router.py
"""
Request routing: classifies one unit of work and dispatches it.

    batch envelope (Records[*].eventSource == aws:sqs) → AsyncQueueService.process_batch   200
    OPTIONS  any                                        → CORS preflight                   200
    POST     …/alarmevent                               → validate + enqueue               202/400/500
    GET      …/latestvideo                              → ArtifactStore.latest_video        200/404/500
    GET      …/summary[?date=yyyy-mm-dd]                → SummaryService.daily_summary      200/400/500
    GET      …?eventId=…                                → ArtifactStore.video_for_event     200/404/500
    anything else                                       → 405
    missing method or path                              → 400

Routes match on the last path segment, so stage prefixes (dev/, prod/) are ignored.
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from alarm_backup.exceptions import ValidationError
from alarm_backup.schemas.alarm import AlarmEvent
from alarm_backup.services.queue_service import parse_batch
from alarm_backup.utils import responses
from alarm_backup.utils.json_parser import get_nested, safe_parse_json
from alarm_backup.utils.logger import get_logger
from alarm_backup.utils.responses import ApiResponse

logger = get_logger(__name__)

ROUTE_ALARM = "alarmevent"
ROUTE_LATEST_VIDEO = "latestvideo"
ROUTE_SUMMARY = "summary"


class RouteKind(str, Enum):
    ALARM = "alarm"
    LATEST_VIDEO = "latest_video"
    EVENT_VIDEO = "event_video"
    SUMMARY = "summary"
    OPTIONS = "options"
    UNSUPPORTED = "unsupported"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class GatewayRequest:
    method: Optional[str]
    path: Optional[str]
    headers: dict = field(default_factory=dict)
    query: dict = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def route(self) -> str:
        return (self.path or "").rstrip("/").rsplit("/", 1)[-1].lower()

    @classmethod
    def from_event(cls, event: Any) -> "GatewayRequest":
        """Build from an API Gateway proxy event (REST v1 or HTTP API v2 shape)."""
        if not isinstance(event, dict):
            return cls(method=None, path=None)

        method = event.get("httpMethod") or get_nested(event, "requestContext", "http", "method")
        path = event.get("path") or event.get("rawPath")
        body = event.get("body")
        if body and event.get("isBase64Encoded"):
            try:
                body = base64.b64decode(body).decode("utf-8", errors="replace")
            except (binascii.Error, ValueError):
                body = None

        return cls(
            method=method,
            path=path,
            headers=event.get("headers") or {},
            query=event.get("queryStringParameters") or {},
            body=body,
        )


def classify(request: GatewayRequest) -> RouteKind:
    if not request.method or not request.path:
        return RouteKind.MALFORMED

    method = request.method.upper()
    route = request.route
    if method == "OPTIONS":
        return RouteKind.OPTIONS
    if method == "POST" and route == ROUTE_ALARM:
        return RouteKind.ALARM
    if method == "GET":
        if route == ROUTE_LATEST_VIDEO:
            return RouteKind.LATEST_VIDEO
        if route == ROUTE_SUMMARY:
            return RouteKind.SUMMARY
        if request.query.get("eventId"):
            return RouteKind.EVENT_VIDEO
    return RouteKind.UNSUPPORTED


def parse_alarm_body(body: Optional[str]) -> AlarmEvent:
    """
    Webhook body → AlarmEvent.
    Accepts {"alarm": {...}, "timestamp": ms} (timestamp overrides) or a bare alarm object.
    Raises ValidationError for empty, unparseable or trigger-less payloads.
    """
    if not body or not body.strip():
        raise ValidationError(responses.ERROR_GENERAL)

    payload = safe_parse_json(body)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid alarm object format")

    alarm_data = payload.get("alarm", payload)
    if not isinstance(alarm_data, dict):
        raise ValidationError("Invalid alarm object format")
    if "alarm" in payload and "timestamp" in payload:
        alarm_data = {**alarm_data, "timestamp": payload["timestamp"]}

    try:
        alarm = AlarmEvent.model_validate(alarm_data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid alarm object format: {e.error_count()} error(s)") from e

    if not alarm.triggers:
        raise ValidationError(responses.ERROR_TRIGGERS)
    return alarm


class RequestRouter:
    def __init__(self, queue_service, artifact_store, summary_service):
        self.queue_service = queue_service
        self.artifact_store = artifact_store
        self.summary_service = summary_service

    def route(self, event: Any) -> ApiResponse:
        records = parse_batch(event)
        if records is not None:
            report = self.queue_service.process_batch(records)
            return responses.ok(report.to_body())
        return self.dispatch(GatewayRequest.from_event(event))

    def dispatch(self, request: GatewayRequest) -> ApiResponse:
        kind = classify(request)
        logger.info(f"[ROUTER] {request.method} {request.path} → {kind.value}")

        if kind is RouteKind.MALFORMED:
            return responses.bad_request(responses.ERROR_GENERAL)
        if kind is RouteKind.OPTIONS:
            return responses.options()
        if kind is RouteKind.ALARM:
            return self._handle_alarm(request)
        if kind is RouteKind.LATEST_VIDEO:
            return self._handle_latest_video()
        if kind is RouteKind.EVENT_VIDEO:
            return self._handle_event_video(request.query["eventId"])
        if kind is RouteKind.SUMMARY:
            return self._handle_summary(request.query.get("date"))
        if kind is RouteKind.UNSUPPORTED:
            return responses.error(
                405, f"{responses.ERROR_MESSAGE_405}{request.method.upper()} {request.path}"
            )
        raise AssertionError(f"unhandled route kind {kind}")

    # ── Handlers ─────────────────────────────────────────────────────────────

    def _handle_alarm(self, request: GatewayRequest) -> ApiResponse:
        try:
            alarm = parse_alarm_body(request.body)
        except ValidationError as e:
            logger.warning(f"[ROUTER] Rejected alarm: {e.message}")
            return responses.bad_request(e.message)

        try:
            return self.queue_service.enqueue(alarm)
        except Exception as e:
            logger.error(f"[ROUTER] Error queuing alarm for processing: {e}", exc_info=True)
            return responses.error(500, responses.ERROR_QUEUE)

    def _handle_latest_video(self) -> ApiResponse:
        try:
            result = self.artifact_store.latest_video()
        except Exception as e:
            logger.error(f"[ROUTER] Error retrieving latest video: {e}", exc_info=True)
            return responses.server_error("error retrieving latest video")
        if result is None:
            return responses.not_found("no videos found")
        return responses.ok(result)

    def _handle_event_video(self, event_id: str) -> ApiResponse:
        try:
            result = self.artifact_store.video_for_event(event_id)
        except Exception as e:
            logger.error(f"[ROUTER] Error retrieving video for {event_id}: {e}", exc_info=True)
            return responses.server_error(f"error retrieving event {event_id}")
        if result is None:
            return responses.not_found(f"video file for event {event_id} not found")
        return responses.ok(result)

    def _handle_summary(self, date: Optional[str]) -> ApiResponse:
        try:
            return responses.ok(self.summary_service.daily_summary(date))
        except ValidationError as e:
            return responses.bad_request(e.message)
        except Exception as e:
            logger.error(f"[ROUTER] Error building summary: {e}", exc_info=True)
            return responses.server_error("error building summary")
