"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text

from siteledger.infrastructure.database import Base


class NotificationModel(Base):
    """Database representation for in-app notifications."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    # insertion order; breaks ties between equal created_at values
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), nullable=False, unique=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    actor_id = Column(String(64), nullable=False)
    subject_id = Column(String(64), nullable=True, index=True)
    kind = Column(String(32), nullable=False)
    title = Column(String(120), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(), nullable=False)
    updated_at = Column(DateTime(), nullable=False)


__all__ = ["NotificationModel"]
