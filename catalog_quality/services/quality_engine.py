"""
Quality Engine

Orchestrates the product quality pipeline:
- Rule set snapshot (RuleStore)
- Scope resolution
- Rule evaluation (pure evaluators, UNIQUE/CUSTOM with timeouts)
- Score aggregation
- Suggestion generation
- Validation log write (soft failure)

Per-rule failures never abort a report: malformed rules and failing
collaborators become failed ERROR results. A provider failure aborts that
product only.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Optional

from catalog_quality.config import QualitySettings, get_settings
from catalog_quality.quality.collaborators import (
    CustomRuleExecutor,
    ProductProvider,
    RuleSet,
    RuleStore,
    UniquenessLookup,
    ValidationLogEntry,
    ValidationLogWriter,
)
from catalog_quality.quality.errors import (
    ConfigurationError,
    EvaluatorExecutionError,
    LogWriteError,
    ProviderError,
    QualityEngineError,
)
from catalog_quality.quality.evaluators import (
    EXTERNAL_RULE_TYPES,
    ExternalRuleRunner,
    evaluate_pure,
    resolve_target_value,
)
from catalog_quality.quality.product import ProductSnapshot
from catalog_quality.quality.report import (
    FailureKind,
    ProductQualityReport,
    QualityValidationResult,
)
from catalog_quality.quality.rules import QualityRule, RuleSeverity
from catalog_quality.quality.scope import resolve_applicable_rules
from catalog_quality.quality.scoring import ScoreAggregator
from catalog_quality.quality.suggestions import SuggestionGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItemResult:
    """One product's outcome in a batch: a report or the error that aborted it"""
    product_id: str
    report: Optional[ProductQualityReport] = None
    error: Optional[QualityEngineError] = None

    @property
    def ok(self) -> bool:
        return self.report is not None


_WORKER_DONE = object()


class QualityEngine:
    """
    Evaluates products against the active data quality rules.

    All collaborators are injected; the engine keeps no mutable state between
    evaluations, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        product_provider: ProductProvider,
        log_writer: Optional[ValidationLogWriter] = None,
        uniqueness_lookup: Optional[UniquenessLookup] = None,
        custom_executor: Optional[CustomRuleExecutor] = None,
        settings: Optional[QualitySettings] = None,
    ):
        self.settings = settings or get_settings()
        self.rule_store = rule_store
        self.product_provider = product_provider
        self.log_writer = log_writer
        self.aggregator = ScoreAggregator(
            error_penalty=self.settings.error_penalty,
            warning_penalty=self.settings.warning_penalty,
        )
        self.suggestion_generator = SuggestionGenerator(
            self.aggregator,
            include_heuristics=self.settings.heuristic_suggestions,
        )
        self.external_runner = ExternalRuleRunner(
            uniqueness_lookup=uniqueness_lookup,
            custom_executor=custom_executor,
            timeout_seconds=self.settings.external_timeout_seconds,
        )

    async def load_rules(self) -> RuleSet:
        """Snapshot the active rule set"""
        rule_set = await self.rule_store.load_active_rules()
        logger.debug(f"Loaded {len(rule_set)} active quality rules")
        return rule_set

    async def evaluate(
        self,
        product_id: str,
        rule_set: Optional[RuleSet] = None,
        channel_id: Optional[str] = None,
    ) -> ProductQualityReport:
        """
        Fetch a product and evaluate it.

        Args:
            product_id: Product identifier understood by the provider
            rule_set: Rule snapshot to apply (loaded fresh if omitted)
            channel_id: Channel context; overrides the provider's channel so
                channel-scoped rules apply

        Returns:
            ProductQualityReport

        Raises:
            ProviderError: the product could not be loaded
        """
        product = await self._fetch_product(product_id)
        if channel_id is not None:
            product = replace(product, channel_id=channel_id)
        return await self.evaluate_product(product, rule_set)

    async def evaluate_product(
        self, product: ProductSnapshot, rule_set: Optional[RuleSet] = None
    ) -> ProductQualityReport:
        """
        Evaluate an already-fetched product and append a validation log entry.

        A log write failure does not fail the evaluation; it is reported in
        the returned report's `warnings`.
        """
        if rule_set is None:
            rule_set = await self.load_rules()

        rules = resolve_applicable_rules(product, rule_set.rules)

        # Sequential per product: results keep rule order
        results = [await self._evaluate_rule(rule, product) for rule in rules]

        summary = self.aggregator.aggregate(results)
        suggestions = self.suggestion_generator.generate(results, summary, product)

        report = ProductQualityReport(
            product_id=product.id,
            product_sku=product.sku,
            product_name=product.name,
            overall_score=summary.overall_score,
            error_count=summary.error_count,
            warning_count=summary.warning_count,
            info_count=summary.info_count,
            results=results,
            suggestions=suggestions,
            evaluated_at=datetime.now(timezone.utc),
        )

        if report.overall_score < self.settings.complete_threshold:
            logger.warning(
                f"Product {product.id} ({product.sku}) below quality threshold: "
                f"{report.overall_score} < {self.settings.complete_threshold} "
                f"({report.error_count} errors, {report.warning_count} warnings)"
            )

        return await self._write_log(report)

    async def evaluate_batch(
        self,
        product_ids: Iterable[str],
        concurrency_limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
        channel_id: Optional[str] = None,
    ) -> AsyncIterator[BatchItemResult]:
        """
        Evaluate many products concurrently, yielding results as they complete.

        The rule set is loaded once and shared read-only by every product.
        Once `cancel_event` is set, products not yet started are skipped and
        in-flight ones finish. Result order is not guaranteed.

        Args:
            product_ids: Products to evaluate
            concurrency_limit: Max products in flight (defaults to settings)
            cancel_event: Optional cancellation signal
            channel_id: Channel context applied to every product

        Yields:
            BatchItemResult per started product

        Raises:
            ValueError: concurrency_limit below 1
        """
        limit = concurrency_limit if concurrency_limit is not None else self.settings.batch_concurrency
        if limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {limit}")

        ids = list(product_ids)
        if not ids:
            return

        start_time = time.time()
        rule_set = await self.load_rules()
        logger.info(f"Starting batch evaluation of {len(ids)} products (concurrency={limit})")

        pending = iter(ids)
        queue: asyncio.Queue = asyncio.Queue()

        async def worker():
            try:
                # Shared iterator: each id is handed to exactly one worker
                for product_id in pending:
                    if cancel_event is not None and cancel_event.is_set():
                        break
                    await queue.put(await self._evaluate_item(product_id, rule_set, channel_id))
            finally:
                queue.put_nowait(_WORKER_DONE)

        workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(ids)))]
        remaining = len(workers)
        succeeded = failed = 0

        try:
            while remaining:
                item = await queue.get()
                if item is _WORKER_DONE:
                    remaining -= 1
                    continue
                if item.ok:
                    succeeded += 1
                else:
                    failed += 1
                yield item
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        skipped = len(ids) - succeeded - failed
        duration = time.time() - start_time
        logger.info(
            f"Batch evaluation complete: {succeeded} evaluated, {failed} failed, "
            f"{skipped} skipped in {duration:.2f}s"
        )

    async def _evaluate_item(
        self, product_id: str, rule_set: RuleSet, channel_id: Optional[str] = None
    ) -> BatchItemResult:
        try:
            report = await self.evaluate(product_id, rule_set, channel_id)
            return BatchItemResult(product_id=product_id, report=report)
        except QualityEngineError as e:
            return BatchItemResult(product_id=product_id, error=e)
        except Exception as e:
            logger.error(f"Unexpected failure evaluating product {product_id}: {e}", exc_info=True)
            return BatchItemResult(
                product_id=product_id,
                error=QualityEngineError(f"Evaluation failed: {e}", product_id=product_id, cause=e),
            )

    async def _fetch_product(self, product_id: str) -> ProductSnapshot:
        try:
            return await self.product_provider.get_product(product_id)
        except ProviderError as e:
            logger.error(f"Product provider failed for {product_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Product provider failed for {product_id}: {e}", exc_info=True)
            raise ProviderError(
                f"Could not load product: {e}", product_id=product_id, cause=e
            ) from e

    async def _evaluate_rule(self, rule: QualityRule, product: ProductSnapshot) -> QualityValidationResult:
        try:
            if rule.type in EXTERNAL_RULE_TYPES:
                outcome = await self.external_runner.evaluate(rule, product)
            else:
                outcome = evaluate_pure(rule, product)
        except ConfigurationError as e:
            return self._broken_result(rule, product, e, FailureKind.CONFIGURATION)
        except EvaluatorExecutionError as e:
            return self._broken_result(rule, product, e, FailureKind.EXECUTION)
        except Exception as e:
            error = EvaluatorExecutionError(
                f"Unexpected evaluator failure: {e}", rule_code=rule.code, product_id=product.id, cause=e
            )
            return self._broken_result(rule, product, error, FailureKind.EXECUTION)

        message = None
        if not outcome.passed:
            message = rule.error_message or outcome.message

        return QualityValidationResult(
            rule_id=rule.id,
            rule_code=rule.code,
            rule_name=rule.name,
            rule_type=rule.type,
            passed=outcome.passed,
            severity=rule.severity,
            message=message,
            attribute_code=rule.target_code,
            current_value=_current_value(rule, product),
        )

    def _broken_result(
        self,
        rule: QualityRule,
        product: ProductSnapshot,
        error: QualityEngineError,
        kind: FailureKind,
    ) -> QualityValidationResult:
        """Fail closed: a rule that cannot be evaluated counts as a failed ERROR"""
        logger.warning(f"Quality rule could not be evaluated: {error}")

        if kind == FailureKind.CONFIGURATION:
            message = f"Invalid rule configuration: {error.message}"
        else:
            message = f"Rule execution failed: {error.message}"

        return QualityValidationResult(
            rule_id=rule.id,
            rule_code=rule.code,
            rule_name=rule.name,
            rule_type=rule.type,
            passed=False,
            severity=RuleSeverity.ERROR,
            message=message,
            attribute_code=rule.target_code,
            current_value=_current_value(rule, product),
            failure_kind=kind,
        )

    async def _write_log(self, report: ProductQualityReport) -> ProductQualityReport:
        if self.log_writer is None:
            return report

        entry = ValidationLogEntry.from_report(report)
        try:
            await asyncio.wait_for(
                self.log_writer.append(entry), timeout=self.settings.log_timeout_seconds
            )
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                reason = f"timed out after {self.settings.log_timeout_seconds:.1f}s"
            else:
                reason = str(e) or type(e).__name__
            error = LogWriteError(
                f"Validation log write failed: {reason}", product_id=report.product_id, cause=e
            )
            logger.error(str(error), exc_info=True)
            return report.model_copy(update={"warnings": [*report.warnings, error.message]})

        return report


def _current_value(rule: QualityRule, product: ProductSnapshot):
    """JSON form of the value a rule looked at, or None if it has no target"""
    try:
        return resolve_target_value(rule, product).to_json()
    except (ConfigurationError, ArithmeticError):
        return None


# Singleton instance
_quality_engine_instance: Optional[QualityEngine] = None


def get_quality_engine() -> QualityEngine:
    """Get singleton instance of QualityEngine wired to the database collaborators"""
    global _quality_engine_instance
    if _quality_engine_instance is None:
        from catalog_quality.services.custom_rules import get_custom_rule_registry
        from catalog_quality.services.product_provider import (
            DatabaseProductProvider,
            DatabaseUniquenessLookup,
        )
        from catalog_quality.services.rule_store import DatabaseRuleStore
        from catalog_quality.services.validation_log import create_log_writer

        settings = get_settings()
        _quality_engine_instance = QualityEngine(
            rule_store=DatabaseRuleStore(),
            product_provider=DatabaseProductProvider(),
            log_writer=create_log_writer(settings),
            uniqueness_lookup=DatabaseUniquenessLookup(),
            custom_executor=get_custom_rule_registry(),
            settings=settings,
        )
    return _quality_engine_instance
