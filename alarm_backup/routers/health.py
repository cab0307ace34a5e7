# alarm_backup/routers/health.py
"""
System health check endpoint.
Returns status of backend + summary DB + queues + video-source reachability.
"""

from datetime import datetime, timezone

import requests
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from alarm_backup.config import settings
from alarm_backup.database import get_db
from alarm_backup.exceptions import ConfigurationError
from alarm_backup.factory import get_services

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Queue configuration and dead-letter depth
    - Video source reachability (HTTP GET on the console)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": "ok",
        "database": "unknown",
        "queue": "ok" if settings.ALARM_PROCESSING_QUEUE_URL else "not configured",
        "deadLetterDepth": 0,
        "videoSource": "unknown",
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    services = get_services()
    result["deadLetterDepth"] = services.dead_letter.depth()

    # Ping the video source console
    try:
        credentials = services.credentials.get_credentials()
        resp = requests.get(credentials.base_url, timeout=3, verify=settings.VIDEO_SOURCE_VERIFY_TLS)
        result["videoSource"] = "ok" if resp.status_code < 500 else f"http_{resp.status_code}"
    except ConfigurationError as e:
        result["videoSource"] = f"not configured: {e.message}"
        result["status"] = "degraded"
    except requests.exceptions.ConnectionError:
        result["videoSource"] = "unreachable"
        result["status"] = "degraded"
    except Exception as e:
        result["videoSource"] = f"error: {str(e)}"

    return result
