# alarm_backup/worker.py
"""
Standalone queue worker.
Usage: python -m alarm_backup.worker
"""

import signal

from alarm_backup.database import create_tables
from alarm_backup.factory import get_services
from alarm_backup.services.queue_poller import QueuePoller
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)


def main():
    services = get_services()
    create_tables()
    poller = QueuePoller(services.settings, services.sqs, services.router)

    def _shutdown(signum, frame):
        logger.info("🛑 Worker shutting down after the current batch...")
        poller.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    poller.run()


if __name__ == "__main__":
    main()
