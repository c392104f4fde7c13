"""
Suggestion Generator

Maps failed rules to actionable improvement hints with an estimated score
impact. Each failed result yields at most one suggestion, looked up by
(rule type, attribute code) with a per-type fallback. Rules that passed, and
rules that could not be evaluated at all, never produce a product suggestion.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from catalog_quality.quality.product import ProductSnapshot
from catalog_quality.quality.report import QualitySuggestion, QualityValidationResult
from catalog_quality.quality.rules import RuleSeverity, RuleType
from catalog_quality.quality.scoring import ScoreAggregator, ScoreSummary
from catalog_quality.quality.values import is_blank

MIN_DESCRIPTION_LENGTH = 100


@dataclass(frozen=True)
class SuggestionTemplate:
    type: str
    message: str  # Formatted with {label}


SUGGESTION_TEMPLATES: Dict[Tuple[RuleType, Optional[str]], SuggestionTemplate] = {
    (RuleType.REQUIRED, "images"): SuggestionTemplate(
        "ADD_IMAGE", "Add at least one image to improve the product presentation"),
    (RuleType.REQUIRED, "categories"): SuggestionTemplate(
        "ADD_CATEGORY", "Assign the product to at least one category"),
    (RuleType.REQUIRED, "description"): SuggestionTemplate(
        "IMPROVE_DESCRIPTION", "Write a product description"),
    (RuleType.MIN_LENGTH, "description"): SuggestionTemplate(
        "IMPROVE_DESCRIPTION", "Add a more detailed description"),
    (RuleType.MIN_LENGTH, "short_description"): SuggestionTemplate(
        "IMPROVE_DESCRIPTION", "Add a more detailed short description"),
    (RuleType.REQUIRED, None): SuggestionTemplate(
        "FILL_ATTRIBUTE", "Fill in '{label}' to improve quality"),
    (RuleType.MIN_LENGTH, None): SuggestionTemplate(
        "EXTEND_TEXT", "Extend '{label}' to meet the minimum length"),
    (RuleType.MAX_LENGTH, None): SuggestionTemplate(
        "SHORTEN_TEXT", "Shorten '{label}' to fit the maximum length"),
    (RuleType.REGEX, None): SuggestionTemplate(
        "FIX_FORMAT", "Correct the format of '{label}'"),
    (RuleType.FORMAT, None): SuggestionTemplate(
        "FIX_FORMAT", "Correct the format of '{label}'"),
    (RuleType.RANGE, None): SuggestionTemplate(
        "ADJUST_VALUE", "Adjust '{label}' to the allowed range"),
    (RuleType.ENUM, None): SuggestionTemplate(
        "USE_ALLOWED_VALUE", "Choose an allowed value for '{label}'"),
    (RuleType.UNIQUE, None): SuggestionTemplate(
        "RESOLVE_DUPLICATE", "Use a value for '{label}' that no other product has"),
    (RuleType.RELATIONSHIP, None): SuggestionTemplate(
        "FIX_RELATIONSHIP", "Make '{label}' consistent with related fields"),
    (RuleType.CUSTOM, None): SuggestionTemplate(
        "REVIEW_CUSTOM_CHECK", "Review the custom check on '{label}'"),
}


def lookup_template(rule_type: RuleType, attribute_code: Optional[str]) -> Optional[SuggestionTemplate]:
    if attribute_code is not None:
        template = SUGGESTION_TEMPLATES.get((rule_type, attribute_code))
        if template is not None:
            return template
    return SUGGESTION_TEMPLATES.get((rule_type, None))


def priority_for(severity: RuleSeverity, rule_type: RuleType) -> int:
    """ERROR -> 1-2, WARNING -> 3, INFO -> 4-5; missing required values rank first"""
    if severity == RuleSeverity.ERROR:
        return 1 if rule_type == RuleType.REQUIRED else 2
    if severity == RuleSeverity.WARNING:
        return 3
    return 4 if rule_type == RuleType.REQUIRED else 5


def _dedup_key(suggestion: QualitySuggestion, rule_code: Optional[str] = None) -> Tuple:
    """Same type on the same attribute is one suggestion; whole-product rules stay separate"""
    if suggestion.attribute_code is not None:
        return (suggestion.type, suggestion.attribute_code)
    return (suggestion.type, None, rule_code)


class SuggestionGenerator:
    """Derive ranked improvement suggestions from validation results"""

    def __init__(self, aggregator: ScoreAggregator, include_heuristics: bool = False):
        self.aggregator = aggregator
        self.include_heuristics = include_heuristics

    def generate(
        self,
        results: Sequence[QualityValidationResult],
        summary: ScoreSummary,
        product: Optional[ProductSnapshot] = None,
    ) -> List[QualitySuggestion]:
        """
        Build the deduplicated, priority-sorted suggestion list.

        Args:
            results: Ordered validation results (rule position order)
            summary: Score summary of the same results, for impact estimates
            product: Raw product data for heuristic suggestions (optional)

        Returns:
            Suggestions sorted by priority, then impact (desc), then rule position
        """
        ranked: List[Tuple[int, int, int, Tuple, QualitySuggestion]] = []

        for position, result in enumerate(results):
            suggestion = self._from_result(result, summary)
            if suggestion is not None:
                key = _dedup_key(suggestion, result.rule_code)
                ranked.append((suggestion.priority, -suggestion.impact_score, position, key, suggestion))

        if self.include_heuristics and product is not None:
            offset = len(results)
            for index, suggestion in enumerate(self._heuristics(product)):
                key = _dedup_key(suggestion)
                ranked.append((suggestion.priority, -suggestion.impact_score, offset + index, key, suggestion))

        ranked.sort(key=lambda entry: entry[:3])

        suggestions: List[QualitySuggestion] = []
        seen = set()
        for _, _, _, key, suggestion in ranked:
            if key in seen:
                continue
            seen.add(key)
            suggestions.append(suggestion)
        return suggestions

    def _from_result(
        self, result: QualityValidationResult, summary: ScoreSummary
    ) -> Optional[QualitySuggestion]:
        if result.passed or result.is_broken_rule:
            return None

        template = lookup_template(result.rule_type, result.attribute_code)
        if template is None:
            return None

        label = result.attribute_code or result.rule_name
        message = template.message.format(label=label)
        if result.rule_type == RuleType.CUSTOM and result.message:
            message = f"{message}: {result.message}"

        return QualitySuggestion(
            type=template.type,
            priority=priority_for(result.severity, result.rule_type),
            message=message,
            attribute_code=result.attribute_code,
            impact_score=self.aggregator.impact_of_fixing(summary, result),
        )

    def _heuristics(self, product: ProductSnapshot) -> List[QualitySuggestion]:
        """Checks not expressible as rules; they carry no score impact"""
        suggestions = []

        images = product.field_value("images")
        if is_blank(images):
            suggestions.append(QualitySuggestion(
                type="ADD_IMAGE",
                priority=4,
                message="Add at least one image to improve the product presentation",
                attribute_code="images",
                impact_score=0,
            ))

        description = product.field_value("description")
        if len(description.as_text().strip()) < MIN_DESCRIPTION_LENGTH:
            suggestions.append(QualitySuggestion(
                type="IMPROVE_DESCRIPTION",
                priority=5,
                message=f"Add a more detailed description (at least {MIN_DESCRIPTION_LENGTH} characters)",
                attribute_code="description",
                impact_score=0,
            ))

        if product.category_id is None and is_blank(product.field_value("categories")):
            suggestions.append(QualitySuggestion(
                type="ADD_CATEGORY",
                priority=4,
                message="Assign the product to at least one category",
                attribute_code="categories",
                impact_score=0,
            ))

        return suggestions
