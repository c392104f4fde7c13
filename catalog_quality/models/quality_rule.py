"""QualityRuleRecord model - Persisted data quality rule definitions"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
import uuid

from catalog_quality.database import Base


class QualityRuleRecord(Base):
    """
    Data quality rule as stored by the catalog.

    `parameters` is a type-specific JSON object (e.g. {"min": 120} for
    MIN_LENGTH); it is parsed into a typed parameter record when the rule set
    is loaded. Rule create/update/delete happens outside this service.
    """
    __tablename__ = "data_quality_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(30), nullable=False)  # REQUIRED, MIN_LENGTH, ..., CUSTOM
    severity = Column(String(20), nullable=False, default="WARNING")  # ERROR/WARNING/INFO

    # Scope (null = applies to all)
    attribute_id = Column(UUID(as_uuid=True), ForeignKey("attributes.id"), nullable=True)
    category_id = Column(UUID(as_uuid=True), nullable=True)
    family_id = Column(UUID(as_uuid=True), nullable=True)
    channel_id = Column(UUID(as_uuid=True), nullable=True)

    parameters = Column(JSONB, nullable=True)
    error_message = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default="now()", nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default="now()", onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_quality_rules_active_position", "is_active", "position"),
    )

    def __repr__(self):
        return f"<QualityRuleRecord(code={self.code}, type={self.type}, severity={self.severity})>"
