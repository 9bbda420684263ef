"""
Event record model for idempotency tracking.
Tracks delivery event IDs so WeChat retries are not processed twice.
"""

from sqlalchemy import JSON, Column, DateTime, String

from wechat_bridge.domain.message import Base
from wechat_bridge.utils.time import utcnow


class EventRecord(Base):
    """SQLAlchemy model for a seen WeChat delivery event."""

    __tablename__ = "events"

    event_id = Column(String(128), primary_key=True)
    message = Column(JSON, nullable=True)  # Decoded payload, kept for debugging
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<EventRecord(event_id={self.event_id}, at={self.created_at})>"
