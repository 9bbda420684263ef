"""
Message record model.
One row per completed question/answer turn, used to build prompt windows.
"""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

from wechat_bridge.utils.time import utcnow

Base = declarative_base()


class MessageRecord(Base):
    """SQLAlchemy model for a persisted conversation turn."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(128), nullable=False, index=True)
    msgid = Column(String(64), nullable=True, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    token = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    deleted_at = Column(DateTime, nullable=True)  # Set once by /clear, never unset

    def __repr__(self) -> str:
        return f"<MessageRecord(id={self.id}, session={self.session_id}, msgid={self.msgid})>"
