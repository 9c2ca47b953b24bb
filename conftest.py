"""Shared test fixtures for the safety service tests."""

import pytest

from services.safety_rules import DEFAULT_RULES, set_rule_table
from services.safety_evaluator import Ingredient, IngredientSafetyEvaluator


@pytest.fixture(autouse=True)
def default_rules(monkeypatch):
    """Every test starts from the built-in rule table with no external source."""
    monkeypatch.delenv("SAFETY_RULES_URL", raising=False)
    monkeypatch.delenv("SAFETY_RULES_FILE", raising=False)
    monkeypatch.delenv("SAFETY_RULES_API_KEY", raising=False)
    set_rule_table(DEFAULT_RULES, source="default")
    yield
    set_rule_table(DEFAULT_RULES, source="default")


@pytest.fixture
def evaluator():
    return IngredientSafetyEvaluator(DEFAULT_RULES)


@pytest.fixture
def make_ingredient():
    """Build an ingredient from a family, naming it after the family by default."""

    def _make(family, inci_name=None, common_name=None):
        return Ingredient(
            inci_name=inci_name or f"{family} ingredient",
            family=family,
            common_name=common_name,
        )

    return _make
