import uuid

from sqlalchemy import Column, DateTime, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class SanctionedApplication(Base):
    __tablename__ = "sanctioned_applications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    app_no = Column(String(64), nullable=False, unique=True)
    customer_name = Column(String(255), nullable=False)
    branch_code = Column(String(32), nullable=True, index=True)
    sanctioned_amount = Column(Numeric(14, 2), nullable=True)
    status = Column(String(32), nullable=False, default="active", server_default="active")
    sanctioned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
