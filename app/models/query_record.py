import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


MARKED_FOR_TEAMS = ("sales", "credit", "both")

SUB_QUERY_STATUSES = (
    "pending",
    "resolved",
    "approved",
    "deferred",
    "otc",
    "waiting for approval",
    "waived",
    "reverted",
)


class QueryRecord(Base):
    """One submitted application's set of queries.

    Sub-queries and remarks are owned by the record and always load with it.
    """

    __tablename__ = "query_records"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "marked_for_team IN ('sales', 'credit', 'both')",
            name="ck_query_records_marked_for_team",
        ),
        Index("ix_query_records_status_created", "status", "created_at"),
        Index("ix_query_records_visible_to", "visible_to", postgresql_using="gin"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    app_no = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False, default="")
    title = Column(String(255), nullable=True)
    priority = Column(String(10), nullable=False, default="medium", server_default="medium")
    branch = Column(String(255), nullable=True)
    branch_code = Column(String(32), nullable=True, index=True)
    assigned_to_branch = Column(String(32), nullable=True)
    marked_for_team = Column(String(10), nullable=False)
    visible_to = Column(JSONB, nullable=False, default=list)
    status = Column(String(32), nullable=False, default="pending", server_default="pending")
    submitted_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    sub_queries = relationship(
        "SubQuery",
        back_populates="record",
        order_by="SubQuery.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    remarks = relationship(
        "QueryRemark",
        back_populates="record",
        order_by="QueryRemark.created_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SubQuery(Base):
    __tablename__ = "sub_queries"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'resolved', 'approved', 'deferred', 'otc', "
            "'waiting for approval', 'waived', 'reverted')",
            name="ck_sub_queries_status",
        ),
        Index("ix_sub_queries_record_position", "record_id", "position"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    record_id = Column(
        UUID(as_uuid=True),
        ForeignKey("query_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False, default=0)
    text = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="pending", server_default="pending")
    proposed_action = Column(String(20), nullable=True)
    proposed_by = Column(String(255), nullable=True)
    proposed_by_team = Column(String(32), nullable=True)
    proposed_at = Column(DateTime(timezone=True), nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False, server_default="false")
    resolved_by = Column(String(255), nullable=True)
    resolved_by_team = Column(String(32), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution_reason = Column(Text, nullable=True)
    approved_by = Column(String(255), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    assigned_to_branch = Column(String(32), nullable=True)
    reverted_by = Column(String(255), nullable=True)
    reverted_at = Column(DateTime(timezone=True), nullable=True)
    revert_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    record = relationship("QueryRecord", back_populates="sub_queries")


class QueryRemark(Base):
    __tablename__ = "query_remarks"
    __allow_unmapped__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    record_id = Column(
        UUID(as_uuid=True),
        ForeignKey("query_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    author = Column(String(255), nullable=False)
    author_role = Column(String(32), nullable=False)
    author_team = Column(String(32), nullable=False)
    is_system = Column(Boolean, nullable=False, default=False, server_default="false")
    is_edited = Column(Boolean, nullable=False, default=False, server_default="false")
    edited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    record = relationship("QueryRecord", back_populates="remarks")
