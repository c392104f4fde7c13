"""QualityValidationLog model - Append-only history of product evaluations"""
from sqlalchemy import Column, Integer, DateTime, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func
import uuid

from catalog_quality.database import Base


class QualityValidationLog(Base):
    """One evaluation run for one product"""

    __tablename__ = "quality_validation_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), nullable=False)
    overall_score = Column(
        Integer,
        CheckConstraint("overall_score >= 0 AND overall_score <= 100"),
        nullable=False,
    )
    error_count = Column(Integer, default=0, nullable=False)
    warning_count = Column(Integer, default=0, nullable=False)
    info_count = Column(Integer, default=0, nullable=False)
    details = Column(JSONB, nullable=True)  # Failed results and suggestions
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Indexes for performance
    __table_args__ = (
        Index("idx_validation_logs_product_created", "product_id", "created_at"),
        Index("idx_validation_logs_created_at", "created_at", postgresql_ops={"created_at": "DESC"}),
    )

    def __repr__(self):
        return f"<QualityValidationLog(product={self.product_id}, score={self.overall_score})>"
