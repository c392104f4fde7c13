"""
Quality Statistics Service

Read-side queries over the validation log: per-product history with a trend
summary, and dashboard statistics across the catalog.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text

from catalog_quality.config import get_settings
from catalog_quality.database import AsyncSessionLocal

logger = logging.getLogger(__name__)


def calculate_trend(scores: Sequence[float]) -> str:
    """
    Classify a score series ordered newest first.

    Returns:
        "improving", "declining" or "stable"
    """
    if len(scores) < 2:
        return "stable"
    if scores[0] > scores[-1]:
        return "improving"
    if scores[0] < scores[-1]:
        return "declining"
    return "stable"


def summarize_history(history: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Average, latest score and trend for history entries ordered newest first"""
    scores = [entry["overall_score"] for entry in history]
    average = sum(scores) / len(scores) if scores else 0.0
    return {
        "average_score": round(average, 2),
        "latest_score": scores[0] if scores else None,
        "trend": calculate_trend(scores),
        "data_points": len(scores),
    }


def summarize_latest_logs(rows: Sequence[Dict[str, Any]], complete_threshold: int) -> Dict[str, Any]:
    """
    Aggregate the latest log entry of each product.

    A product with warnings but no errors counts only under
    `products_with_warnings`.
    """
    scores = [row["overall_score"] for row in rows]
    return {
        "products_evaluated": len(rows),
        "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
        "products_with_errors": sum(1 for row in rows if row["error_count"] > 0),
        "products_with_warnings": sum(
            1 for row in rows if row["warning_count"] > 0 and row["error_count"] == 0
        ),
        "products_below_threshold": sum(1 for score in scores if score < complete_threshold),
    }


class QualityStatsService:
    """Validation log queries for the API and scheduled jobs"""

    async def get_product_history(
        self,
        product_id: str,
        page: int = 1,
        page_size: int = 20,
    ) -> Optional[Dict[str, Any]]:
        """
        Paginated validation history for one product, newest first.

        Returns:
            History page with summary, or None if product_id is not a valid id
        """
        try:
            parsed_id = uuid.UUID(str(product_id))
        except ValueError:
            return None

        async with AsyncSessionLocal() as session:
            total = (await session.execute(
                text("SELECT COUNT(*) FROM quality_validation_logs WHERE product_id = :product_id"),
                {"product_id": parsed_id},
            )).scalar() or 0

            result = await session.execute(
                text("""
                    SELECT
                        id,
                        overall_score,
                        error_count,
                        warning_count,
                        info_count,
                        details,
                        created_at
                    FROM quality_validation_logs
                    WHERE product_id = :product_id
                    ORDER BY created_at DESC
                    LIMIT :limit OFFSET :offset
                """),
                {"product_id": parsed_id, "limit": page_size, "offset": (page - 1) * page_size},
            )

            history = []
            for row in result.fetchall():
                history.append({
                    "id": str(row.id),
                    "overall_score": row.overall_score,
                    "error_count": row.error_count,
                    "warning_count": row.warning_count,
                    "info_count": row.info_count,
                    "details": row.details or {},
                    "created_at": row.created_at.isoformat(),
                })

        return {
            "product_id": str(parsed_id),
            "page": page,
            "page_size": page_size,
            "total": total,
            "history": history,
            "summary": summarize_history(history),
        }

    async def get_dashboard_stats(self, days: int = 30, top_issues: int = 10) -> Dict[str, Any]:
        """
        Catalog-wide quality statistics over the last `days` days.

        Returns:
            Average score, products with errors / warnings only, active rules
            by severity and the most frequently failing rules
        """
        settings = get_settings()

        async with AsyncSessionLocal() as session:
            latest = await session.execute(
                text("""
                    SELECT DISTINCT ON (product_id)
                        product_id,
                        overall_score,
                        error_count,
                        warning_count
                    FROM quality_validation_logs
                    WHERE created_at >= NOW() - :days * INTERVAL '1 day'
                    ORDER BY product_id, created_at DESC
                """),
                {"days": days},
            )
            latest_rows = [dict(row._mapping) for row in latest.fetchall()]

            severity_result = await session.execute(text("""
                SELECT severity, COUNT(*) AS rule_count
                FROM data_quality_rules
                WHERE is_active = true
                GROUP BY severity
            """))
            rules_by_severity = {row.severity: row.rule_count for row in severity_result.fetchall()}

            issues_result = await session.execute(
                text("""
                    SELECT
                        failed ->> 'rule_code' AS rule_code,
                        failed ->> 'rule_name' AS rule_name,
                        failed ->> 'severity' AS severity,
                        COUNT(DISTINCT logs.product_id) AS affected_products
                    FROM quality_validation_logs AS logs,
                         jsonb_array_elements(logs.details -> 'failed_results') AS failed
                    WHERE logs.created_at >= NOW() - :days * INTERVAL '1 day'
                    GROUP BY 1, 2, 3
                    ORDER BY affected_products DESC, rule_code
                    LIMIT :limit
                """),
                {"days": days, "limit": top_issues},
            )
            issues: List[Dict[str, Any]] = [
                {
                    "rule_code": row.rule_code,
                    "rule_name": row.rule_name,
                    "severity": row.severity,
                    "affected_products": row.affected_products,
                }
                for row in issues_result.fetchall()
            ]

        stats = summarize_latest_logs(latest_rows, settings.complete_threshold)
        stats.update({
            "days": days,
            "total_rules_active": sum(rules_by_severity.values()),
            "rules_by_severity": rules_by_severity,
            "top_issues": issues,
        })

        logger.debug(
            f"Dashboard stats: {stats['products_evaluated']} products, "
            f"avg score {stats['average_score']}"
        )
        return stats


# Singleton instance
_stats_service_instance: Optional[QualityStatsService] = None


def get_quality_stats_service() -> QualityStatsService:
    """Get singleton instance of QualityStatsService"""
    global _stats_service_instance
    if _stats_service_instance is None:
        _stats_service_instance = QualityStatsService()
    return _stats_service_instance
