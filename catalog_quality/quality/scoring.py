"""
Score Aggregator

Turns per-rule results into severity counts and a 0-100 quality score.
"""
from dataclasses import dataclass
from typing import Iterable

from catalog_quality.quality.report import QualityValidationResult
from catalog_quality.quality.rules import RuleSeverity


@dataclass(frozen=True)
class ScoreSummary:
    overall_score: int
    error_count: int
    warning_count: int
    info_count: int

    @property
    def failed_count(self) -> int:
        return self.error_count + self.warning_count + self.info_count


class ScoreAggregator:
    """Calculate quality scores from validation results"""

    def __init__(self, error_penalty: int = 20, warning_penalty: int = 5):
        if warning_penalty > error_penalty:
            raise ValueError(
                f"Warning penalty ({warning_penalty}) must not exceed error penalty ({error_penalty})"
            )
        self.error_penalty = error_penalty
        self.warning_penalty = warning_penalty

    def calculate_score(self, error_count: int, warning_count: int) -> int:
        """
        Calculate quality score (0-100) from failure counts.

        Formula: 100 - (errors * error_penalty + warnings * warning_penalty)
        INFO failures never cost points.

        Args:
            error_count: Failed ERROR-severity results
            warning_count: Failed WARNING-severity results

        Returns:
            int: Score clamped to 0-100
        """
        score = 100 - (error_count * self.error_penalty + warning_count * self.warning_penalty)
        return max(0, min(100, score))  # Clamp to 0-100

    def penalty_for(self, severity: RuleSeverity) -> int:
        if severity == RuleSeverity.ERROR:
            return self.error_penalty
        if severity == RuleSeverity.WARNING:
            return self.warning_penalty
        return 0

    def aggregate(self, results: Iterable[QualityValidationResult]) -> ScoreSummary:
        """
        Tally failed results by severity and compute the overall score.

        Zero results yields a score of 100: an unmeasured product is not penalized.
        """
        error_count = warning_count = info_count = 0
        for result in results:
            if result.passed:
                continue
            if result.severity == RuleSeverity.ERROR:
                error_count += 1
            elif result.severity == RuleSeverity.WARNING:
                warning_count += 1
            else:
                info_count += 1

        return ScoreSummary(
            overall_score=self.calculate_score(error_count, warning_count),
            error_count=error_count,
            warning_count=warning_count,
            info_count=info_count,
        )

    def impact_of_fixing(self, summary: ScoreSummary, result: QualityValidationResult) -> int:
        """Score points gained if this one failed result passed instead"""
        if result.passed:
            return 0
        errors, warnings = summary.error_count, summary.warning_count
        if result.severity == RuleSeverity.ERROR:
            errors -= 1
        elif result.severity == RuleSeverity.WARNING:
            warnings -= 1
        return self.calculate_score(errors, warnings) - summary.overall_score
