"""
Ingredient Safety Evaluator
Rates a product's ingredient list for a user's age against the safety rule table
"""

from typing import List, Optional, Sequence
import logging

from pydantic import BaseModel, Field

from services.safety_rules import (
    IngredientFamily,
    Rating,
    ReasonCode,
    RuleTable,
    SafetyRule,
    get_rule_table,
)
from services.safety_notes import render_parent_note, render_teen_note

logger = logging.getLogger(__name__)


class Ingredient(BaseModel):
    """Single product ingredient as listed on the label"""
    inci_name: str = Field(..., description="INCI label name")
    family: str = Field("", description="Family classification key, e.g. 'retinoid'")
    common_name: Optional[str] = Field(None, description="Friendly name shown to users")

    @property
    def display_name(self) -> str:
        return self.common_name or self.inci_name


class Finding(BaseModel):
    """A rule that fired for one ingredient"""
    ingredient: str
    family: IngredientFamily
    rating: Rating
    reason_code: ReasonCode
    reason: str


class EvaluationResult(BaseModel):
    """Outcome of a single evaluation"""
    rating: Rating
    reason_codes: List[ReasonCode]
    notes_parent: str
    notes_teen: str
    findings: List[Finding] = Field(default_factory=list)
    unclassified: List[str] = Field(default_factory=list)


def _match_rule(rule: SafetyRule, user_age: int) -> Optional[ReasonCode]:
    """Reason code for the branch this rule triggers at user_age, if any"""
    if rule.in_age_band(user_age):
        if rule.rating is Rating.AVOID:
            return ReasonCode.AGE_BELOW_THRESHOLD
        if rule.rating is Rating.USE_WITH_CARE:
            return ReasonCode.CAUTION_RECOMMENDED
        return None

    # Outside the band (or no band): only use_with_care still applies
    if rule.rating is Rating.USE_WITH_CARE:
        return ReasonCode.POTENTIAL_IRRITANT
    return None


class IngredientSafetyEvaluator:
    """Stateless evaluator over an injected rule table"""

    def __init__(self, rules: Optional[RuleTable] = None):
        self.rules = rules if rules is not None else get_rule_table()

    def find_concerns(self, ingredients: Sequence[Ingredient], user_age: int):
        """
        Collect every rule that fires for the given age.

        Returns:
            (findings, unclassified) in ingredient order
        """
        findings: List[Finding] = []
        unclassified: List[str] = []

        for ingredient in ingredients:
            family = IngredientFamily.parse(ingredient.family)
            rule = self.rules.get(family)
            if rule is None:
                unclassified.append(ingredient.display_name)
                continue

            reason_code = _match_rule(rule, user_age)
            if reason_code is None:
                continue

            findings.append(Finding(
                ingredient=ingredient.display_name,
                family=family,
                rating=rule.rating,
                reason_code=reason_code,
                reason=rule.reason,
            ))

        return findings, unclassified

    def evaluate(self, ingredients: Sequence[Ingredient], user_age: int) -> EvaluationResult:
        """
        Rate an ingredient list for a user of the given age.

        The rating is the most severe rating among triggered rules; safe
        when nothing fires. Unknown families never trigger a rule.

        Args:
            ingredients: Ingredients in label order (may be empty)
            user_age: User age in years

        Returns:
            EvaluationResult with reason codes and parent/teen notes
        """
        findings, unclassified = self.find_concerns(ingredients, user_age)

        worst = Rating.SAFE
        for finding in findings:
            worst = worst.worse(finding.rating)

        if unclassified:
            logger.debug(f"No rule for {len(unclassified)} ingredient(s): {', '.join(unclassified)}")

        return EvaluationResult(
            rating=worst,
            reason_codes=[f.reason_code for f in findings],
            notes_parent=render_parent_note(findings),
            notes_teen=render_teen_note(findings, worst),
            findings=findings,
            unclassified=unclassified,
        )


def evaluate(
    ingredients: Sequence[Ingredient],
    user_age: int,
    rules: Optional[RuleTable] = None
) -> EvaluationResult:
    """Evaluate with the given rule table, or the process-wide one"""
    return IngredientSafetyEvaluator(rules).evaluate(ingredients, user_age)
