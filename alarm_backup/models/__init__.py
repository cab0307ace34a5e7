# Alarm Backup: Database Models
# Import all models here for SQLAlchemy discovery

from alarm_backup.models.summary_event import SummaryEvent   # noqa
