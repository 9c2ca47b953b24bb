from services.safety_rules import get_rule_table
from services.safety_evaluator import IngredientSafetyEvaluator

# Singleton instance, rebuilt when the rule table is replaced
_safety_evaluator = None


def get_safety_evaluator() -> IngredientSafetyEvaluator:
    """Get the evaluator bound to the current process-wide rule table"""
    global _safety_evaluator
    rules = get_rule_table()
    if _safety_evaluator is None or _safety_evaluator.rules is not rules:
        _safety_evaluator = IngredientSafetyEvaluator(rules)
    return _safety_evaluator


__all__ = ["get_safety_evaluator"]
