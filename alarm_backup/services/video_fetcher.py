# alarm_backup/services/video_fetcher.py
"""
Video retrieval from the UniFi Protect console.

Flow (all over HTTPS, one httpx client per fetch):
    1. POST /api/auth/login                        → session cookie + CSRF token
       (skipped when the credentials carry an API key)
    2. GET  /proxy/protect/api/cameras             → camera id for the trigger's MAC
    3. GET  /proxy/protect/api/video/export        → mp4 for [ts - pre_roll, ts + post_roll]

The mp4 is streamed to DOWNLOAD_DIRECTORY/temp_{eventId}_{ticks}.mp4. The caller
owns the file afterwards and must hand it back to cleanup().
"""

import os
import time
from typing import Optional

import httpx

from alarm_backup.exceptions import VideoFetchError
from alarm_backup.schemas.alarm import Credentials, Trigger
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)

LOGIN_PATH = "/api/auth/login"
CAMERAS_PATH = "/proxy/protect/api/cameras"
EXPORT_PATH = "/proxy/protect/api/video/export"

NO_VIDEO_MESSAGE = "No video files were downloaded"


def _normalize_mac(value: Optional[str]) -> str:
    return (value or "").replace(":", "").replace("-", "").upper()


class VideoFetcher:
    def __init__(self, settings, credentials_provider, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.credentials_provider = credentials_provider
        self.transport = transport

    def fetch(self, trigger: Trigger, event_link: str, timestamp_ms: int) -> str:
        """
        Download the clip for one trigger. Returns the temp file path.
        Raises VideoFetchError on any failure; no partial file is left behind.
        """
        credentials = self.credentials_provider.get_credentials()
        deadline = time.monotonic() + self.settings.VIDEO_FETCH_TIMEOUT_SECONDS
        path = os.path.join(
            self.settings.DOWNLOAD_DIRECTORY,
            f"temp_{trigger.event_id}_{time.time_ns() // 100}.mp4",
        )
        logger.info(f"[VIDEO] Fetching video for {trigger.event_id} ({event_link})")

        try:
            with self._client(credentials) as client:
                self._authenticate(client, credentials)
                camera_id = self._camera_id(client, trigger.device)
                written = self._export(client, camera_id, timestamp_ms, path, deadline)
        except httpx.HTTPError as e:
            self.cleanup(path)
            raise VideoFetchError(f"Video source request failed: {e}") from e
        except OSError as e:
            self.cleanup(path)
            raise VideoFetchError(f"Could not write video to {path}: {e}") from e
        except VideoFetchError:
            self.cleanup(path)
            raise

        if written == 0:
            self.cleanup(path)
            raise VideoFetchError(NO_VIDEO_MESSAGE)

        logger.info(f"[VIDEO] Downloaded {written} bytes → {path}")
        return path

    def cleanup(self, path: Optional[str]):
        """Delete a temp video. Never raises."""
        if not path:
            return
        try:
            os.remove(path)
            logger.debug(f"[VIDEO] Removed temp file {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[VIDEO] Could not remove temp file {path}: {e}")

    # ── Protect API ──────────────────────────────────────────────────────────

    def _client(self, credentials: Credentials) -> httpx.Client:
        headers = {"X-API-KEY": credentials.apikey} if credentials.apikey else {}
        return httpx.Client(
            base_url=credentials.base_url,
            headers=headers,
            timeout=httpx.Timeout(self.settings.VIDEO_FETCH_TIMEOUT_SECONDS),
            verify=self.settings.VIDEO_SOURCE_VERIFY_TLS,
            transport=self.transport,
        )

    def _authenticate(self, client: httpx.Client, credentials: Credentials):
        if credentials.apikey:
            return
        response = client.post(
            LOGIN_PATH,
            json={"username": credentials.username, "password": credentials.password, "rememberMe": False},
        )
        if response.status_code != 200:
            raise VideoFetchError(f"Video source login failed with HTTP {response.status_code}")
        csrf = response.headers.get("x-csrf-token")
        if csrf:
            client.headers["X-CSRF-Token"] = csrf

    def _camera_id(self, client: httpx.Client, device: Optional[str]) -> str:
        response = client.get(CAMERAS_PATH)
        response.raise_for_status()
        wanted = _normalize_mac(device)
        for camera in response.json():
            if _normalize_mac(camera.get("mac")) == wanted:
                return camera["id"]
        raise VideoFetchError(f"Camera {device} not found on the video source")

    def _export(self, client: httpx.Client, camera_id: str, timestamp_ms: int, path: str, deadline: float) -> int:
        params = {
            "camera": camera_id,
            "start": timestamp_ms - self.settings.VIDEO_PRE_ROLL_MS,
            "end": timestamp_ms + self.settings.VIDEO_POST_ROLL_MS,
        }
        written = 0
        with client.stream("GET", EXPORT_PATH, params=params) as response:
            if response.status_code != 200:
                raise VideoFetchError(f"Video export returned HTTP {response.status_code}")
            with open(path, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=64 * 1024):
                    if time.monotonic() > deadline:
                        raise VideoFetchError(
                            f"Video export exceeded {self.settings.VIDEO_FETCH_TIMEOUT_SECONDS}s"
                        )
                    f.write(chunk)
                    written += len(chunk)
        return written
