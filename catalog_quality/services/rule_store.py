"""
Rule Store

Loads the active data quality rules from the database and parses each rule's
JSON parameters into its typed parameter record, once per snapshot.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select

from catalog_quality.database import AsyncSessionLocal
from catalog_quality.models.product import Attribute
from catalog_quality.models.quality_rule import QualityRuleRecord
from catalog_quality.quality.collaborators import RuleSet
from catalog_quality.quality.rules import QualityRule, build_rule

logger = logging.getLogger(__name__)


def _optional_str(value) -> Optional[str]:
    return str(value) if value is not None else None


def rule_from_record(record: QualityRuleRecord, attribute_code: Optional[str]) -> QualityRule:
    """
    Convert a stored rule row into a QualityRule.

    Raises:
        ValueError: unknown rule type or severity
    """
    return build_rule(
        id=str(record.id),
        code=record.code,
        name=record.name,
        type=record.type,
        severity=record.severity,
        parameters=record.parameters or {},
        description=record.description,
        attribute_id=_optional_str(record.attribute_id),
        attribute_code=attribute_code,
        category_id=_optional_str(record.category_id),
        family_id=_optional_str(record.family_id),
        channel_id=_optional_str(record.channel_id),
        error_message=record.error_message,
        is_active=record.is_active,
        position=record.position,
    )


class DatabaseRuleStore:
    """Read-only access to the rules in `data_quality_rules`"""

    async def load_active_rules(self) -> RuleSet:
        """
        Snapshot all active rules ordered by position.

        Rows with an unknown type or severity cannot be represented and are
        skipped with an error log; rows with malformed parameters are kept and
        fail at evaluation time.
        """
        async with AsyncSessionLocal() as session:
            query = (
                select(QualityRuleRecord, Attribute.code)
                .outerjoin(Attribute, QualityRuleRecord.attribute_id == Attribute.id)
                .where(QualityRuleRecord.is_active.is_(True))
                .order_by(QualityRuleRecord.position, QualityRuleRecord.code)
            )
            rows = (await session.execute(query)).all()

        rules: List[QualityRule] = []
        for record, attribute_code in rows:
            try:
                rules.append(rule_from_record(record, attribute_code))
            except ValueError as e:
                logger.error(f"Skipping quality rule {record.code}: {e}")

        logger.info(f"Loaded {len(rules)} active quality rules")
        return RuleSet(rules=tuple(rules), loaded_at=datetime.now(timezone.utc))

    async def list_active_rules(self) -> List[QualityRule]:
        return list((await self.load_active_rules()).rules)


# Singleton instance
_rule_store_instance: Optional[DatabaseRuleStore] = None


def get_rule_store() -> DatabaseRuleStore:
    """Get singleton instance of DatabaseRuleStore"""
    global _rule_store_instance
    if _rule_store_instance is None:
        _rule_store_instance = DatabaseRuleStore()
    return _rule_store_instance
