# alarm_backup/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
Constructed once at process start and handed to every service by factory.py.
"""

import json
import os
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_PROCESSING_DELAY_SECONDS = 120
MAX_QUEUE_DELAY_SECONDS = 900   # SQS DelaySeconds upper bound


class Settings(BaseSettings):
    # ── Storage ───────────────────────────────────────────────────────────
    STORAGE_BUCKET: Optional[str] = None
    DOWNLOAD_DIRECTORY: str = "/tmp"
    PRESIGNED_URL_EXPIRY_SECONDS: int = 3600
    LATEST_VIDEO_SEARCH_DAYS: int = 30
    EVENT_SEARCH_DAYS: int = 90

    # ── Video source ──────────────────────────────────────────────────────
    UNIFI_CREDENTIALS_SECRET_ARN: Optional[str] = None
    VIDEO_FETCH_TIMEOUT_SECONDS: float = 60.0
    VIDEO_PRE_ROLL_MS: int = 2000
    VIDEO_POST_ROLL_MS: int = 10000
    VIDEO_SOURCE_VERIFY_TLS: bool = False   # Protect consoles ship self-signed certificates

    # ── Queues ────────────────────────────────────────────────────────────
    ALARM_PROCESSING_QUEUE_URL: Optional[str] = None
    ALARM_PROCESSING_DLQ_URL: Optional[str] = None
    PROCESSING_DELAY_SECONDS: int = DEFAULT_PROCESSING_DELAY_SECONDS
    QUEUE_POLL_WAIT_SECONDS: int = 20
    QUEUE_POLL_BATCH_SIZE: int = 10

    # ── Notifications ─────────────────────────────────────────────────────
    SUPPORT_EMAIL: Optional[str] = None

    # ── Device names ──────────────────────────────────────────────────────
    DEVICE_PREFIX: str = ""
    DEVICE_METADATA: Optional[str] = None   # {"devices": [{"deviceMac": ..., "deviceName": ...}]}

    # ── AWS / runtime ─────────────────────────────────────────────────────
    AWS_REGION: str = "us-east-1"
    FUNCTION_NAME: str = "alarm-backup"

    # ── Summary database ──────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./alarm_events.db"

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on read-only endpoints

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    @field_validator("PROCESSING_DELAY_SECONDS", mode="before")
    @classmethod
    def _tolerant_delay(cls, value):
        """Unparseable overrides fall back to the default instead of failing startup."""
        try:
            delay = int(str(value).strip())
        except (TypeError, ValueError):
            return DEFAULT_PROCESSING_DELAY_SECONDS
        return max(0, min(delay, MAX_QUEUE_DELAY_SECONDS))

    def resolve_device_name(self, device: Optional[str]) -> Optional[str]:
        """
        Map a device id (MAC) to its display name.
        DEVICE_METADATA wins, then {DEVICE_PREFIX}{device} env vars, else the id itself.
        """
        if not device:
            return device

        for entry in self._device_metadata():
            if str(entry.get("deviceMac", "")).lower() == device.lower():
                return entry.get("deviceName") or device

        if self.DEVICE_PREFIX:
            mapped = os.environ.get(f"{self.DEVICE_PREFIX}{device}")
            if mapped:
                return mapped

        return device

    def _device_metadata(self) -> list:
        if not self.DEVICE_METADATA:
            return []
        try:
            devices = json.loads(self.DEVICE_METADATA).get("devices", [])
        except (json.JSONDecodeError, AttributeError):
            return []
        if not isinstance(devices, list):
            return []
        return [d for d in devices if isinstance(d, dict)]

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
