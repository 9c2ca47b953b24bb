"""
Safety Router
Ingredient safety evaluation endpoints
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from typing import List, Optional
import logging

from services import get_safety_evaluator
from services.safety_rules import (
    IngredientFamily,
    get_rule_table,
    get_rule_source,
    rule_table_to_records,
)
from services.safety_evaluator import Ingredient, EvaluationResult
from services.ingredient_classifier import parse_ingredient_text
from services.timing_logger import time_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/safety", tags=["safety"])

MAX_USER_AGE = 120


# Request/Response Models
class EvaluateRequest(BaseModel):
    """Evaluate a structured ingredient list"""
    ingredients: List[Ingredient] = Field(default_factory=list, description="Ingredients in label order")
    user_age: int = Field(..., ge=0, le=MAX_USER_AGE, description="User age in years")


class EvaluateTextRequest(BaseModel):
    """Evaluate a raw ingredient list as printed on the label"""
    ingredients_text: str = Field(..., min_length=1, description="Label ingredient text")
    user_age: int = Field(..., ge=0, le=MAX_USER_AGE, description="User age in years")


class EvaluateTextResponse(EvaluationResult):
    """Evaluation plus the ingredients parsed from the label text"""
    ingredients: List[Ingredient]


class RuleRecord(BaseModel):
    family: str
    rating: str
    reason: str
    age_min: Optional[int] = None
    age_max: Optional[int] = None


class RulesResponse(BaseModel):
    source: str
    count: int
    rules: List[RuleRecord]


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "---")


@router.post("/evaluate", response_model=EvaluationResult)
async def evaluate_ingredients(body: EvaluateRequest, request: Request):
    """
    Rate an ingredient list for a user's age.

    **Example:**
    ```json
    {
        "ingredients": [{"inci_name": "Retinol", "family": "retinoid"}],
        "user_age": 12
    }
    ```
    """
    try:
        logger.info(f"Evaluate request: {len(body.ingredients)} ingredients, age={body.user_age}")

        with time_operation("safety evaluation", _request_id(request)):
            result = get_safety_evaluator().evaluate(body.ingredients, body.user_age)

        logger.info(f"Evaluation result: {result.rating.value} ({len(result.reason_codes)} reason codes)")
        return result

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Evaluate endpoint error: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Evaluation failed: {str(e)}")


@router.post("/evaluate/text", response_model=EvaluateTextResponse)
async def evaluate_ingredient_text(body: EvaluateTextRequest, request: Request):
    """
    Parse label text into classified ingredients, then rate them.

    **Example:**
    ```json
    {
        "ingredients_text": "Aqua, Glycerin, Salicylic Acid, Parfum",
        "user_age": 11
    }
    ```
    """
    try:
        with time_operation("label evaluation", _request_id(request)) as timer:
            with timer.step("parse"):
                ingredients = parse_ingredient_text(body.ingredients_text)

            if not ingredients:
                raise HTTPException(status_code=400, detail="No ingredients found in text")

            with timer.step("evaluate"):
                result = get_safety_evaluator().evaluate(ingredients, body.user_age)

        return EvaluateTextResponse(**result.model_dump(), ingredients=ingredients)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Evaluate text endpoint error: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Evaluation failed: {str(e)}")


@router.get("/rules", response_model=RulesResponse)
async def list_rules():
    """Active safety rule table"""
    records = rule_table_to_records(get_rule_table())
    return {
        "source": get_rule_source(),
        "count": len(records),
        "rules": records,
    }


@router.get("/families")
async def list_families():
    """Known ingredient family keys"""
    families = [f.value for f in IngredientFamily if f is not IngredientFamily.UNKNOWN]
    return {"families": families, "count": len(families)}


@router.get("/health")
async def safety_health():
    """Health check for the safety rule table"""
    try:
        rules = get_rule_table()
        return {
            "status": "healthy",
            "rules": {
                "count": len(rules),
                "source": get_rule_source(),
            },
        }
    except Exception as e:
        logger.error(f"Safety health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }
