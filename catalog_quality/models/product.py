"""
Catalog Models

Products, attribute definitions and per-product attribute values read by the
quality engine.
"""
from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from catalog_quality.database import Base


class Attribute(Base):
    """Attribute definition (e.g. 'color', 'ean')"""
    __tablename__ = "attributes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(String(30), nullable=False, default="TEXT")

    def __repr__(self):
        return f"<Attribute(code={self.code}, type={self.type})>"


class Product(Base):
    """Catalog product with its core fields"""
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sku = Column(String(100), unique=True, nullable=False)
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)
    price = Column(Numeric(15, 2), nullable=True)
    brand = Column(String(200), nullable=True)
    manufacturer = Column(String(200), nullable=True)
    weight = Column(Numeric(10, 3), nullable=True)

    # SEO
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)
    meta_keywords = Column(Text, nullable=True)
    url_key = Column(String(255), nullable=True)

    category_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    family_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    images = Column(JSONB, nullable=True)  # List of image URLs

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    attribute_values = relationship("ProductAttributeValue", back_populates="product", lazy="selectin")

    def __repr__(self):
        return f"<Product(sku={self.sku}, name={self.name})>"


class ProductAttributeValue(Base):
    """Value of one attribute for one product; JSON so text, numbers, booleans and lists fit"""
    __tablename__ = "product_attribute_values"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    attribute_id = Column(UUID(as_uuid=True), ForeignKey("attributes.id"), nullable=False)
    value = Column(JSONB, nullable=True)

    product = relationship("Product", back_populates="attribute_values")
    attribute = relationship("Attribute", lazy="joined")

    __table_args__ = (
        UniqueConstraint("product_id", "attribute_id", name="uq_product_attribute"),
    )

    def __repr__(self):
        return f"<ProductAttributeValue(product={self.product_id}, attribute={self.attribute_id})>"
