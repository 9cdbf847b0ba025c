import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base


class ChatMessage(Base):
    """Free-standing chat line keyed only by the trimmed query id string."""

    __tablename__ = "chat_messages"
    __allow_unmapped__ = True
    __table_args__ = (
        Index("ix_chat_messages_query_timestamp", "query_id", "timestamp"),
        Index("ix_chat_messages_query_sender", "query_id", "sender", "timestamp"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    query_id = Column(String(64), nullable=False)
    message = Column(Text, nullable=False)
    sender = Column(String(255), nullable=False)
    sender_role = Column(String(32), nullable=False)
    team = Column(String(32), nullable=False)
    action_type = Column(String(32), nullable=False, default="message", server_default="message")
    is_system_message = Column(Boolean, nullable=False, default=False, server_default="false")
    details = Column("metadata", JSONB, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
