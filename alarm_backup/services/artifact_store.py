# alarm_backup/services/artifact_store.py
"""
Artifact store: S3 wrapper for alarm event JSON, videos and thumbnails.

Layout (see key_generator.py):
    {yyyy-mm-dd}/{eventId}_{device}_{ts}.json   event metadata
    {yyyy-mm-dd}/{eventId}_{device}_{ts}.mp4    video
    {yyyy-mm-dd}/{eventId}_{device}_{ts}.jpg    thumbnail

Every write carries the STANDARD_IA storage class: artifacts are written once
and rarely read back.
"""

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from alarm_backup.exceptions import ArtifactStoreError, ConfigurationError
from alarm_backup.services.key_generator import timestamp_from_key
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)

STORAGE_CLASS = "STANDARD_IA"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".json": "application/json",
}

DOWNLOAD_MESSAGE = "Use the downloadUrl to download the video file directly. URL expires in {hours} hour(s)."


def content_type_for(path: str) -> str:
    return _CONTENT_TYPES.get(os.path.splitext(path)[1].lower(), DEFAULT_CONTENT_TYPE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArtifactStore:
    def __init__(self, settings, s3_client, clock: Callable[[], datetime] = _utcnow):
        self.settings = settings
        self.s3 = s3_client
        self.clock = clock

    @property
    def bucket(self) -> str:
        if not self.settings.STORAGE_BUCKET:
            raise ConfigurationError("STORAGE_BUCKET is not configured")
        return self.settings.STORAGE_BUCKET

    # ── Writes ───────────────────────────────────────────────────────────────

    def put_bytes(self, key: str, data: bytes, content_type: str):
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                StorageClass=STORAGE_CLASS,
            )
        except (ClientError, BotoCoreError) as e:
            raise ArtifactStoreError(f"Failed to write {key}: {e}") from e
        logger.info(f"[STORE] Wrote {key} ({len(data)} bytes, {content_type})")

    def put_json(self, key: str, document: str | dict):
        body = document if isinstance(document, str) else json.dumps(document, default=str)
        self.put_bytes(key, body.encode("utf-8"), "application/json")

    def put_file(self, key: str, path: str, content_type: Optional[str] = None):
        content_type = content_type or content_type_for(path)
        try:
            self.s3.upload_file(
                Filename=path,
                Bucket=self.bucket,
                Key=key,
                ExtraArgs={"ContentType": content_type, "StorageClass": STORAGE_CLASS},
            )
        except (ClientError, BotoCoreError, S3UploadFailedError, OSError) as e:
            raise ArtifactStoreError(f"Failed to upload {path} to {key}: {e}") from e
        logger.info(f"[STORE] Uploaded {os.path.basename(path)} → {key} ({content_type})")

    # ── Reads ────────────────────────────────────────────────────────────────

    def get_json(self, key: str) -> Optional[dict]:
        """Event document at key, or None when missing or unreadable."""
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            return json.loads(response["Body"].read())
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in ("NoSuchKey", "404"):
                logger.warning(f"[STORE] Could not read {key}: {e}")
            return None
        except BotoCoreError as e:
            logger.warning(f"[STORE] Could not read {key}: {e}")
            return None
        except (ValueError, KeyError) as e:
            logger.warning(f"[STORE] {key} is not valid JSON: {e}")
            return None

    def exists(self, key: str) -> bool:
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise ArtifactStoreError(f"Failed to check {key}: {e}") from e
        except BotoCoreError as e:
            raise ArtifactStoreError(f"Failed to check {key}: {e}") from e

    def list_keys(self, prefix: str) -> list[str]:
        keys = []
        try:
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise ArtifactStoreError(f"Failed to list {prefix}: {e}") from e
        return keys

    def presigned_url(self, key: str, filename: Optional[str] = None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        try:
            return self.s3.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=self.settings.PRESIGNED_URL_EXPIRY_SECONDS,
            )
        except (ClientError, BotoCoreError) as e:
            raise ArtifactStoreError(f"Failed to presign {key}: {e}") from e

    # ── Queries ──────────────────────────────────────────────────────────────

    def latest_video(self) -> Optional[dict]:
        """
        Most recent stored video, searching date folders newest-first.
        Returns the download descriptor, or None when nothing was found.
        """
        today = self.clock().date()
        for offset in range(self.settings.LATEST_VIDEO_SEARCH_DAYS):
            folder = (today - timedelta(days=offset)).strftime("%Y-%m-%d")
            videos = [k for k in self.list_keys(f"{folder}/") if k.endswith(".mp4")]
            if not videos:
                logger.debug(f"[STORE] No videos in {folder}, trying previous day")
                continue

            video_key = max(videos, key=timestamp_from_key)
            event_key = video_key[: -len(".mp4")] + ".json"
            logger.info(f"[STORE] Latest video is {video_key}")
            return self._download_descriptor(video_key, event_key)

        logger.info(f"[STORE] No videos found in the last {self.settings.LATEST_VIDEO_SEARCH_DAYS} days")
        return None

    def video_for_event(self, event_id: str) -> Optional[dict]:
        """
        Video of one event, found by prefix-scanning {date}/{eventId}_ over the
        search window. None when the event or its video does not exist.
        """
        today = self.clock().date()
        for offset in range(self.settings.EVENT_SEARCH_DAYS):
            folder = (today - timedelta(days=offset)).strftime("%Y-%m-%d")
            matches = self.list_keys(f"{folder}/{event_id}_")
            event_keys = [k for k in matches if k.endswith(".json")]
            if not event_keys:
                continue

            event_key = event_keys[0]
            video_key = event_key[: -len(".json")] + ".mp4"
            if video_key not in matches:
                logger.info(f"[STORE] Event {event_id} found at {event_key} but has no video")
                return None
            descriptor = self._download_descriptor(video_key, event_key)
            descriptor["eventId"] = event_id
            return descriptor

        logger.info(f"[STORE] Event {event_id} not found in the last {self.settings.EVENT_SEARCH_DAYS} days")
        return None

    def _download_descriptor(self, video_key: str, event_key: str) -> dict:
        event_data = self.get_json(event_key)
        filename = _original_filename(event_data) or os.path.basename(video_key)
        timestamp = timestamp_from_key(video_key)
        expiry = self.settings.PRESIGNED_URL_EXPIRY_SECONDS
        expires_at = self.clock() + timedelta(seconds=expiry)
        event_date = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=timestamp)

        return {
            "downloadUrl": self.presigned_url(video_key, filename),
            "filename": filename,
            "videoKey": video_key,
            "eventKey": event_key,
            "timestamp": timestamp,
            "eventDate": event_date.strftime("%Y-%m-%d %H:%M:%S"),
            "expiresAt": expires_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            "eventData": event_data,
            "message": DOWNLOAD_MESSAGE.format(hours=max(1, expiry // 3600)),
        }


def _original_filename(event_data: Optional[dict]) -> Optional[str]:
    triggers = (event_data or {}).get("triggers") or []
    if triggers and isinstance(triggers[0], dict):
        return triggers[0].get("originalFileName")
    return None
