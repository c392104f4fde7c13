"""
Product Evaluation Script

Manually evaluate products against the active quality rules.
Usage: python -m catalog_quality.scripts.evaluate_products (--product ID [ID ...] | --all) [--concurrency N] [--channel ID]
"""
import asyncio
import argparse
import logging
import sys
from typing import List, Optional

from catalog_quality.quality.report import ProductQualityReport
from catalog_quality.services.product_provider import DatabaseProductProvider
from catalog_quality.services.quality_engine import get_quality_engine


def print_report(report: ProductQualityReport):
    """Print a one-product summary"""
    status = "BLOCKED" if report.blocks_publication else "ok"
    print(f"\n=== {report.product_sku} - {report.product_name} ===")
    print(f"  Score: {report.overall_score}/100 ({status})")
    print(f"  Errors: {report.error_count}  Warnings: {report.warning_count}  Info: {report.info_count}")

    for result in report.failed_results:
        print(f"    [{result.severity.value}] {result.rule_code}: {result.message}")

    if report.suggestions:
        print("  Suggestions:")
        for suggestion in report.suggestions[:5]:
            print(f"    P{suggestion.priority} (+{suggestion.impact_score}) {suggestion.message}")

    for warning in report.warnings:
        print(f"  ⚠ {warning}")


async def evaluate_products(
    product_ids: List[str],
    concurrency: Optional[int] = None,
    channel_id: Optional[str] = None,
) -> int:
    """
    Evaluate products and print each report.

    Returns:
        Number of products that could not be evaluated
    """
    engine = get_quality_engine()
    failed = 0
    scores = []

    async for item in engine.evaluate_batch(product_ids, concurrency_limit=concurrency, channel_id=channel_id):
        if item.ok:
            print_report(item.report)
            scores.append(item.report.overall_score)
        else:
            failed += 1
            print(f"\n✗ {item.product_id}: {item.error}")

    print("\n✅ Evaluation complete!")
    print(f"  Products evaluated: {len(scores)}")
    print(f"  Products failed: {failed}")
    if scores:
        print(f"  Average score: {sum(scores) / len(scores):.1f}")
    return failed


async def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Evaluate product data quality")
    parser.add_argument(
        "--product",
        "-p",
        nargs="+",
        help="Evaluate specific product ids"
    )
    parser.add_argument(
        "--all",
        "-a",
        action="store_true",
        help="Evaluate every product in the catalog"
    )
    parser.add_argument(
        "--concurrency",
        "-c",
        type=int,
        default=None,
        help="Products evaluated in parallel (default: QUALITY_BATCH_CONCURRENCY)"
    )
    parser.add_argument(
        "--channel",
        default=None,
        help="Channel context; enables rules scoped to that channel"
    )

    args = parser.parse_args()

    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")

    if args.all:
        product_ids = await DatabaseProductProvider().list_product_ids()
    elif args.product:
        product_ids = args.product
    else:
        print("ERROR: Specify --product or --all")
        parser.print_help()
        sys.exit(1)

    failed = await evaluate_products(product_ids, args.concurrency, args.channel)
    if failed:
        sys.exit(2)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    asyncio.run(main())
