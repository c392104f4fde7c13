"""
Product Provider

Database-backed product snapshots and uniqueness lookups for the quality
engine. Attribute values are stored as JSON and converted to the closed value
variant here, so the engine never sees raw database types.
"""
import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy import exists, func, select
from sqlalchemy.exc import SQLAlchemyError

from catalog_quality.database import AsyncSessionLocal
from catalog_quality.models.product import Attribute, Product, ProductAttributeValue
from catalog_quality.quality.collaborators import UniquenessScope
from catalog_quality.quality.errors import EvaluatorExecutionError, ProductNotFoundError, ProviderError
from catalog_quality.quality.product import ProductSnapshot, build_product
from catalog_quality.quality.rules import PRODUCT_FIELDS
from catalog_quality.quality.values import AttributeValue

logger = logging.getLogger(__name__)

# Core product columns exposed to rules as fields
SNAPSHOT_FIELDS = (
    "description",
    "short_description",
    "price",
    "brand",
    "manufacturer",
    "weight",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "url_key",
    "images",
)

# Core columns that UNIQUE rules may target directly
UNIQUE_TEXT_COLUMNS = {
    "sku": Product.sku,
    "name": Product.name,
    "description": Product.description,
    "short_description": Product.short_description,
    "brand": Product.brand,
    "manufacturer": Product.manufacturer,
    "meta_title": Product.meta_title,
    "meta_description": Product.meta_description,
    "meta_keywords": Product.meta_keywords,
    "url_key": Product.url_key,
}

UNIQUE_NUMERIC_COLUMNS = {
    "price": Product.price,
    "weight": Product.weight,
}


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def snapshot_from_product(product: Product, channel_id: Optional[str] = None) -> ProductSnapshot:
    """
    Convert an ORM product (with attribute values loaded) into a snapshot.

    Raises:
        ProviderError: an attribute value cannot be represented
    """
    fields: Dict[str, object] = {name: getattr(product, name) for name in SNAPSHOT_FIELDS}
    fields["categories"] = [str(product.category_id)] if product.category_id is not None else []

    attributes = {
        str(item.attribute_id): {"code": item.attribute.code, "value": item.value}
        for item in product.attribute_values
    }

    try:
        return build_product(
            id=product.id,
            sku=product.sku,
            name=product.name,
            category_id=product.category_id,
            family_id=product.family_id,
            channel_id=channel_id,
            attributes=attributes,
            fields=fields,
        )
    except TypeError as e:
        raise ProviderError(
            f"Unsupported attribute value: {e}", product_id=str(product.id), cause=e
        ) from e


class DatabaseProductProvider:
    """
    Loads products from the catalog tables.

    Args:
        channel_id: Channel context applied to every snapshot (channel-scoped
            rules only apply when this matches)
    """

    def __init__(self, channel_id: Optional[str] = None):
        self.channel_id = channel_id

    async def get_product(self, product_id: str) -> ProductSnapshot:
        """
        Raises:
            ProductNotFoundError: no product with this id
            ProviderError: the database could not be read
        """
        parsed_id = _parse_uuid(product_id)
        if parsed_id is None:
            raise ProductNotFoundError(f"Product not found: {product_id}", product_id=str(product_id))

        try:
            async with AsyncSessionLocal() as session:
                product = await session.get(Product, parsed_id)
                if product is None:
                    raise ProductNotFoundError(f"Product not found: {product_id}", product_id=str(product_id))
                return snapshot_from_product(product, self.channel_id)
        except SQLAlchemyError as e:
            raise ProviderError(f"Database error loading product: {e}", product_id=str(product_id), cause=e) from e

    async def list_product_ids(self) -> List[str]:
        """All product ids, oldest first"""
        async with AsyncSessionLocal() as session:
            result = await session.execute(select(Product.id).order_by(Product.created_at))
            return [str(product_id) for product_id in result.scalars().all()]


class DatabaseUniquenessLookup:
    """
    Answers "does another product already hold this value?".

    Core text columns are compared case-insensitively, price and weight
    numerically, and attribute values as JSON. Core fields without a column
    (categories, images) cannot be checked and raise EvaluatorExecutionError.
    Channel scope does not narrow the search: products are shared by every
    channel.
    """

    async def exists(
        self,
        attribute_code: str,
        value: AttributeValue,
        excluding_product_id: str,
        scope: UniquenessScope,
    ) -> bool:
        conditions = []
        excluded = _parse_uuid(excluding_product_id)
        if excluded is not None:
            conditions.append(Product.id != excluded)
        if scope.category_id is not None:
            conditions.append(Product.category_id == _parse_uuid(scope.category_id))
        if scope.family_id is not None:
            conditions.append(Product.family_id == _parse_uuid(scope.family_id))

        if attribute_code in UNIQUE_TEXT_COLUMNS:
            column = UNIQUE_TEXT_COLUMNS[attribute_code]
            conditions.append(func.lower(column) == value.as_text().strip().lower())
            query = select(exists().where(*conditions))
        elif attribute_code in UNIQUE_NUMERIC_COLUMNS:
            number = value.as_number()
            if number is None:
                return False
            conditions.append(UNIQUE_NUMERIC_COLUMNS[attribute_code] == number)
            query = select(exists().where(*conditions))
        elif attribute_code in PRODUCT_FIELDS:
            raise EvaluatorExecutionError(
                f"UNIQUE is not supported on product field '{attribute_code}'",
                product_id=excluding_product_id,
            )
        else:
            query = select(
                exists()
                .where(ProductAttributeValue.product_id == Product.id)
                .where(ProductAttributeValue.attribute_id == Attribute.id)
                .where(Attribute.code == attribute_code)
                .where(ProductAttributeValue.value == value.to_json())
                .where(*conditions)
            )

        async with AsyncSessionLocal() as session:
            duplicated = bool((await session.execute(query)).scalar())

        if duplicated:
            logger.debug(f"Duplicate value found for '{attribute_code}' (excluding product {excluding_product_id})")
        return duplicated
