"""SQLAlchemy ORM Models for the Catalog Quality Database Schema"""
from catalog_quality.models.product import Attribute, Product, ProductAttributeValue
from catalog_quality.models.quality_rule import QualityRuleRecord
from catalog_quality.models.quality_validation_log import QualityValidationLog

__all__ = [
    "Attribute",
    "Product",
    "ProductAttributeValue",
    "QualityRuleRecord",
    "QualityValidationLog",
]
