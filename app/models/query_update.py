import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class QueryUpdate(Base):
    """Append-only log that backs the ``updates?since=`` polling endpoint."""

    __tablename__ = "query_updates"
    __allow_unmapped__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    query_id = Column(String(64), nullable=False, index=True)
    app_no = Column(String(64), nullable=True)
    customer_name = Column(String(255), nullable=True)
    branch = Column(String(255), nullable=True)
    status = Column(String(32), nullable=True)
    action = Column(String(40), nullable=False)
    team = Column(String(32), nullable=True)
    marked_for_team = Column(String(10), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
