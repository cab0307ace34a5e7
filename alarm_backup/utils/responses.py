# alarm_backup/utils/responses.py
"""
Gateway-style responses: status code, JSON body, CORS headers.
Produced by the router and converted to a FastAPI response or a Lambda proxy dict.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

# ── Messages ──────────────────────────────────────────────────────────────────
ERROR_MESSAGE_500 = "An internal server error has occured: "
ERROR_INTERNAL = "An internal server error has occured"
ERROR_MESSAGE_400 = "Your request is malformed or invalid: "
ERROR_MESSAGE_404 = "Route not found: "
ERROR_MESSAGE_405 = "Method not allowed: "
ERROR_GENERAL = "you must have a valid body object in your request"
ERROR_TRIGGERS = "you must have triggers in your payload"
ERROR_QUEUE = "Failed to queue alarm for processing"

ALLOWED_METHODS = "GET,POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token"

STANDARD_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
}


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: Optional[Any] = None
    headers: dict = field(default_factory=lambda: dict(STANDARD_HEADERS))

    @property
    def json_body(self) -> str:
        return "" if self.body is None else json.dumps(self.body, default=str)

    def to_gateway(self) -> dict:
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.json_body,
        }


def ok(body: Any) -> ApiResponse:
    return ApiResponse(200, body)


def accepted(body: Any) -> ApiResponse:
    return ApiResponse(202, body)


def error(status_code: int, message: str) -> ApiResponse:
    return ApiResponse(status_code, {"msg": message})


def bad_request(detail: str) -> ApiResponse:
    return error(400, ERROR_MESSAGE_400 + detail)


def not_found(detail: str) -> ApiResponse:
    return error(404, ERROR_MESSAGE_404 + detail)


def server_error(detail: str) -> ApiResponse:
    return error(500, ERROR_MESSAGE_500 + detail)


def options() -> ApiResponse:
    """CORS preflight: headers only, no body."""
    headers = dict(STANDARD_HEADERS)
    headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
    return ApiResponse(200, None, headers)
