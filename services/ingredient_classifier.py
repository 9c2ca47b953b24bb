"""
Ingredient Family Classifier
Turns raw INCI label text into ingredient records tagged with a rule family
"""

from typing import List, Dict, Tuple
import re
import logging

from services.safety_rules import IngredientFamily
from services.safety_evaluator import Ingredient

logger = logging.getLogger(__name__)


# Label keywords per family; matched on word boundaries against normalized names
FAMILY_KEYWORDS: Dict[IngredientFamily, List[str]] = {
    IngredientFamily.RETINOID: [
        "retinol",
        "retinal",
        "retinaldehyde",
        "retinyl palmitate",
        "retinyl acetate",
        "retinyl retinoate",
        "hydroxypinacolone retinoate",
        "tretinoin",
        "adapalene",
    ],
    IngredientFamily.AHA: [
        "glycolic acid",
        "lactic acid",
        "mandelic acid",
    ],
    IngredientFamily.BHA: [
        "salicylic acid",
        "betaine salicylate",
        "willow bark extract",
    ],
    IngredientFamily.FRAGRANCE: [
        "fragrance",
        "parfum",
        "perfume",
        "limonene",
        "linalool",
        "citronellol",
        "geraniol",
        "eugenol",
        "coumarin",
    ],
    IngredientFamily.ALCOHOL: [
        "alcohol denat",
        "alcohol",
        "ethanol",
        "sd alcohol",
        "isopropyl alcohol",
    ],
    IngredientFamily.VITAMIN: [
        "niacinamide",
        "ascorbic acid",
        "sodium ascorbyl phosphate",
        "tocopherol",
        "tocopheryl acetate",
        "panthenol",
    ],
    IngredientFamily.HUMECTANT: [
        "glycerin",
        "glycerol",
        "hyaluronic acid",
        "sodium hyaluronate",
        "urea",
        "propanediol",
        "butylene glycol",
        "sodium pca",
    ],
    IngredientFamily.SUNSCREEN: [
        "zinc oxide",
        "titanium dioxide",
        "avobenzone",
        "octocrylene",
        "homosalate",
        "octisalate",
        "butyl methoxydibenzoylmethane",
    ],
}

# Fatty, waxy and preservative alcohols, not drying alcohols
NON_DRYING_ALCOHOLS = {
    "cetyl alcohol",
    "cetearyl alcohol",
    "stearyl alcohol",
    "behenyl alcohol",
    "myristyl alcohol",
    "lauryl alcohol",
    "benzyl alcohol",
    "phenethyl alcohol",
    "lanolin alcohol",
    "arachidyl alcohol",
    "oleyl alcohol",
    "isostearyl alcohol",
}

# Family checks run in this order; retinoid before alcohol etc.
_FAMILY_ORDER = [
    IngredientFamily.RETINOID,
    IngredientFamily.AHA,
    IngredientFamily.BHA,
    IngredientFamily.SUNSCREEN,
    IngredientFamily.VITAMIN,
    IngredientFamily.HUMECTANT,
    IngredientFamily.FRAGRANCE,
    IngredientFamily.ALCOHOL,
]


def build_family_patterns() -> List[Tuple[IngredientFamily, re.Pattern]]:
    """
    Build regex patterns for family matching.
    Returns (family, compiled pattern) pairs in priority order.
    """
    patterns = []
    for family in _FAMILY_ORDER:
        for keyword in FAMILY_KEYWORDS[family]:
            patterns.append((family, re.compile(r'\b' + re.escape(keyword) + r'\b')))
    return patterns


# Build patterns once at module load
FAMILY_PATTERNS = build_family_patterns()


def normalize_ingredient_text(text: str) -> str:
    """
    Normalize label text before splitting.
    Lowercases, strips parenthetical notes and unifies separators.
    """
    if not text:
        return ""

    # "Parfum (Fragrance)" -> "Parfum"
    text = re.sub(r'\s*\([^)]*\)', '', text)

    text = text.lower()

    # "Ingredients:" header often precedes the list
    text = re.sub(r'^\s*ingredients?\s*:\s*', '', text)

    text = re.sub(r'\b(aqua\s*/\s*water|water\s*/\s*aqua|aqua)\b', 'water', text)

    text = text.replace(' - ', ', ')
    text = text.replace(';', ',')
    text = text.replace('\n', ',')
    text = text.replace('.,', ',')

    return text


def split_ingredients(text: str) -> List[str]:
    """Split normalized label text into unique names, keeping label order"""
    seen = set()
    names = []
    for part in normalize_ingredient_text(text).split(','):
        name = re.sub(r'\s+', ' ', part).strip(' .*')
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def classify_ingredient(name: str) -> IngredientFamily:
    """Classify a single ingredient name, UNKNOWN when no pattern matches"""
    name_lower = re.sub(r'\s+', ' ', name.lower()).strip()
    if not name_lower:
        return IngredientFamily.UNKNOWN

    if name_lower in NON_DRYING_ALCOHOLS:
        return IngredientFamily.UNKNOWN

    for family, pattern in FAMILY_PATTERNS:
        if pattern.search(name_lower):
            return family

    return IngredientFamily.UNKNOWN


def parse_ingredient_text(text: str) -> List[Ingredient]:
    """
    Parse a raw label ingredient list into classified ingredients.

    Args:
        text: Ingredient list as printed on packaging

    Returns:
        Ingredients in label order with their family set
    """
    ingredients = []
    for name in split_ingredients(text):
        family = classify_ingredient(name)
        ingredients.append(Ingredient(inci_name=name, family=family.value))

    classified = sum(1 for i in ingredients if i.family != IngredientFamily.UNKNOWN.value)
    logger.info(f"Parsed {len(ingredients)} ingredients ({classified} classified)")
    return ingredients
