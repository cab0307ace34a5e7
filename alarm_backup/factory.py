# alarm_backup/factory.py
"""
Service wiring. Builds the boto3 clients and every service once per process
and hands the same Settings instance to all of them.
"""

from dataclasses import dataclass
from functools import lru_cache

import boto3

from alarm_backup.config import Settings, settings as default_settings
from alarm_backup.database import SessionLocal
from alarm_backup.services.alarm_processor import AlarmProcessor
from alarm_backup.services.artifact_store import ArtifactStore
from alarm_backup.services.credentials_service import CredentialsProvider
from alarm_backup.services.dead_letter_service import DeadLetterService
from alarm_backup.services.notification_service import NotificationService
from alarm_backup.services.queue_service import AsyncQueueService
from alarm_backup.services.request_router import RequestRouter
from alarm_backup.services.summary_service import SummaryService
from alarm_backup.services.video_fetcher import VideoFetcher


@dataclass
class Services:
    settings: Settings
    sqs: object
    credentials: CredentialsProvider
    artifact_store: ArtifactStore
    dead_letter: DeadLetterService
    summary: SummaryService
    processor: AlarmProcessor
    queue: AsyncQueueService
    router: RequestRouter


def build_services(settings: Settings, session_factory=SessionLocal, boto_session=None) -> Services:
    session = boto_session or boto3.Session(region_name=settings.AWS_REGION)
    s3 = session.client("s3")
    sqs = session.client("sqs")
    secrets = session.client("secretsmanager")
    ses = session.client("ses")

    credentials = CredentialsProvider(settings, secrets)
    artifact_store = ArtifactStore(settings, s3)
    dead_letter = DeadLetterService(settings, sqs)
    summary = SummaryService(session_factory, dead_letter)
    processor = AlarmProcessor(
        settings,
        credentials_provider=credentials,
        artifact_store=artifact_store,
        video_fetcher=VideoFetcher(settings, credentials),
        dead_letter=dead_letter,
        notifier=NotificationService(settings, ses),
        summary_service=summary,
    )
    queue = AsyncQueueService(settings, sqs, processor, dead_letter)
    router = RequestRouter(queue, artifact_store, summary)

    return Services(
        settings=settings,
        sqs=sqs,
        credentials=credentials,
        artifact_store=artifact_store,
        dead_letter=dead_letter,
        summary=summary,
        processor=processor,
        queue=queue,
        router=router,
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Process-wide services built from the module-level settings."""
    return build_services(default_settings)
