# alarm_backup/models/summary_event.py
"""
Processed alarm log table.
One row per alarm that completed the pipeline, with or without video.
Feeds the daily summary endpoint (counts per type, device and hour).
"""

from sqlalchemy import BigInteger, Column, DateTime, Integer, String
from alarm_backup.database import Base


class SummaryEvent(Base):
    __tablename__ = "summary_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(100), nullable=False, index=True)
    device = Column(String(100), index=True)
    device_name = Column(String(200))
    event_type = Column(String(50), index=True)      # trigger key: motion / person / vehicle ...
    alarm_name = Column(String(200))
    timestamp = Column(BigInteger, nullable=False)    # ms since epoch, as received
    event_date = Column(String(16), nullable=False, index=True)   # yyyy-mm-dd (UTC)
    event_key = Column(String(300), nullable=False)
    video_key = Column(String(300))                   # NULL when no video was stored
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<SummaryEvent {self.event_id} device={self.device} video={bool(self.video_key)}>"
