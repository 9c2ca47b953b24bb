"""
Ingredient Safety Rules
Rule table keyed by ingredient family, plus loaders for hosted/file rule sources
"""

from enum import Enum
from types import MappingProxyType
from typing import List, Dict, Any, Optional, Mapping, Iterable
from pathlib import Path
import json
import logging
import os

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)


class Rating(str, Enum):
    """Tri-level safety rating"""
    SAFE = "safe"
    USE_WITH_CARE = "use_with_care"
    AVOID = "avoid"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def worse(self, other: "Rating") -> "Rating":
        """Return whichever of the two ratings is more severe"""
        return other if other.severity > self.severity else self


_SEVERITY = {Rating.SAFE: 0, Rating.USE_WITH_CARE: 1, Rating.AVOID: 2}


class IngredientFamily(str, Enum):
    """Coarse ingredient classification used as the rule table key"""
    RETINOID = "retinoid"
    AHA = "aha"
    BHA = "bha"
    FRAGRANCE = "fragrance"
    ALCOHOL = "alcohol"
    VITAMIN = "vitamin"
    HUMECTANT = "humectant"
    SUNSCREEN = "sunscreen"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, label: Any) -> "IngredientFamily":
        """Map free-text family labels to a family, UNKNOWN when unrecognised"""
        if not isinstance(label, str) or not label:
            return cls.UNKNOWN
        try:
            return cls(label.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class ReasonCode(str, Enum):
    """Machine-readable token for the escalation branch that fired"""
    AGE_BELOW_THRESHOLD = "AGE_BELOW_THRESHOLD"
    CAUTION_RECOMMENDED = "CAUTION_RECOMMENDED"
    POTENTIAL_IRRITANT = "POTENTIAL_IRRITANT"


class RuleTableError(ValueError):
    """Raised when rule data cannot be turned into a rule table"""


class SafetyRule(BaseModel):
    """Safety rule for one ingredient family"""
    model_config = ConfigDict(frozen=True)

    rating: Rating
    reason: str = Field(..., min_length=1)
    age_min: Optional[int] = Field(None, ge=0)
    age_max: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _check_band(self) -> "SafetyRule":
        if self.age_min is not None and self.age_max is not None and self.age_min > self.age_max:
            raise ValueError(f"age_min ({self.age_min}) is greater than age_max ({self.age_max})")
        return self

    @property
    def has_age_band(self) -> bool:
        return self.age_max is not None

    def in_age_band(self, user_age: int) -> bool:
        """
        True when the user falls inside this rule's protected age band.
        age_max=0 is a real band covering age 0, not "no band".
        """
        if self.age_max is None or user_age < 0:
            return False
        if self.age_min is not None and user_age < self.age_min:
            return False
        return user_age <= self.age_max


RuleTable = Mapping[IngredientFamily, SafetyRule]


# Built-in rules; hosted/file sources replace these at startup
_DEFAULT_RULE_RECORDS: List[Dict[str, Any]] = [
    {
        "family": "retinoid",
        "age_max": 15,
        "rating": "avoid",
        "reason": "Retinoids are too strong for developing skin under 16",
    },
    {
        "family": "aha",
        "age_max": 13,
        "rating": "avoid",
        "reason": "AHAs can be too harsh for young skin",
    },
    {
        "family": "bha",
        "age_max": 13,
        "rating": "use_with_care",
        "reason": "BHAs should be used carefully on young skin",
    },
    {
        "family": "fragrance",
        "rating": "use_with_care",
        "reason": "Fragrance can irritate sensitive skin",
    },
    {
        "family": "alcohol",
        "rating": "use_with_care",
        "reason": "Drying alcohols can strip your skin barrier",
    },
    {
        "family": "vitamin",
        "rating": "safe",
        "reason": "Vitamins are generally safe and beneficial",
    },
    {
        "family": "humectant",
        "rating": "safe",
        "reason": "Hydrating ingredients are great for all ages",
    },
    {
        "family": "sunscreen",
        "rating": "safe",
        "reason": "Sunscreen is essential for protecting your skin",
    },
]


def build_rule_table(records: Iterable[Dict[str, Any]]) -> RuleTable:
    """
    Build an immutable rule table from plain records.

    Args:
        records: Dicts shaped {family, rating, reason, age_min?, age_max?}

    Returns:
        Read-only mapping of family to rule

    Raises:
        RuleTableError: on unknown/duplicate families or invalid rule fields
    """
    table: Dict[IngredientFamily, SafetyRule] = {}

    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise RuleTableError(f"Rule #{index} is not an object: {record!r}")

        label = record.get("family")
        family = IngredientFamily.parse(label)
        if family is IngredientFamily.UNKNOWN:
            raise RuleTableError(f"Rule #{index} has unknown family: {label!r}")
        if family in table:
            raise RuleTableError(f"Duplicate rule for family: {family.value}")

        fields = {k: v for k, v in record.items() if k != "family"}
        try:
            rule = SafetyRule(**fields)
        except ValidationError as e:
            raise RuleTableError(f"Invalid rule for family {family.value}: {e}") from e

        if rule.rating is Rating.SAFE and rule.has_age_band:
            # The evaluator only escalates avoid/use_with_care inside a band
            logger.warning(
                f"Rule for '{family.value}' is rated safe with age_max={rule.age_max}; "
                f"its age band has no effect on evaluation"
            )
        elif rule.rating is Rating.AVOID and not rule.has_age_band:
            # avoid only escalates inside a band; without age_max it never fires
            logger.warning(
                f"Rule for '{family.value}' is rated avoid without age_max; "
                f"it will never flag an ingredient"
            )

        table[family] = rule

    return MappingProxyType(table)


def rule_table_to_records(rules: RuleTable) -> List[Dict[str, Any]]:
    """Flatten a rule table back into JSON-friendly records"""
    records = []
    for family, rule in rules.items():
        record = {"family": family.value, "rating": rule.rating.value, "reason": rule.reason}
        if rule.age_min is not None:
            record["age_min"] = rule.age_min
        if rule.age_max is not None:
            record["age_max"] = rule.age_max
        records.append(record)
    return records


DEFAULT_RULES: RuleTable = build_rule_table(_DEFAULT_RULE_RECORDS)


def _extract_records(payload: Any) -> List[Dict[str, Any]]:
    """Accept either a bare list of rules or {"rules": [...]}"""
    if isinstance(payload, dict) and "rules" in payload:
        payload = payload["rules"]
    if not isinstance(payload, list):
        raise RuleTableError("Rule payload must be a list or an object with a 'rules' list")
    return payload


def fetch_rule_records(url: str, api_key: Optional[str] = None, timeout: float = 10) -> List[Dict[str, Any]]:
    """
    Fetch rule records from a hosted JSON endpoint.

    Args:
        url: Endpoint returning a list of rule records
        api_key: Optional key sent as apikey + bearer token headers
        timeout: Request timeout in seconds
    """
    headers = {"Accept": "application/json"}
    if api_key:
        headers["apikey"] = api_key
        headers["Authorization"] = f"Bearer {api_key}"

    logger.info(f"Fetching safety rules from {url}")
    response = requests.get(url, headers=headers, timeout=timeout)
    response.raise_for_status()
    return _extract_records(response.json())


def read_rule_records(path: Path) -> List[Dict[str, Any]]:
    """Read rule records from a local JSON file"""
    logger.info(f"Reading safety rules from {path}")
    with open(path, "r", encoding="utf-8") as f:
        return _extract_records(json.load(f))


DEFAULT_TIMEOUT = 10.0


def _parse_timeout(raw: Optional[str]) -> float:
    """Parse SAFETY_RULES_TIMEOUT, falling back to the default on bad values"""
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning(f"Invalid SAFETY_RULES_TIMEOUT {raw!r}; using {DEFAULT_TIMEOUT}s")
        return DEFAULT_TIMEOUT
    if timeout <= 0:
        logger.warning(f"SAFETY_RULES_TIMEOUT must be positive, got {raw!r}; using {DEFAULT_TIMEOUT}s")
        return DEFAULT_TIMEOUT
    return timeout


class RuleTableLoader:
    """Resolves the active rule table from environment configuration"""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        path: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url if url is not None else os.getenv("SAFETY_RULES_URL")
        self.api_key = api_key if api_key is not None else os.getenv("SAFETY_RULES_API_KEY")
        self.path = path if path is not None else os.getenv("SAFETY_RULES_FILE")
        self.timeout = timeout if timeout is not None else _parse_timeout(os.getenv("SAFETY_RULES_TIMEOUT"))
        self.source = "default"

    def load(self) -> RuleTable:
        """
        Load rules from the configured source, URL first, then file.
        Any failure falls back to the built-in DEFAULT_RULES.
        """
        try:
            if self.url:
                table = build_rule_table(fetch_rule_records(self.url, self.api_key, self.timeout))
                self.source = "url"
            elif self.path:
                table = build_rule_table(read_rule_records(Path(self.path)))
                self.source = "file"
            else:
                self.source = "default"
                return DEFAULT_RULES
        except (requests.RequestException, OSError, ValueError) as e:
            # ValueError covers RuleTableError, JSONDecodeError and UnicodeDecodeError
            logger.error(f"Failed to load safety rules: {str(e)}. Using built-in rules.")
            self.source = "default"
            return DEFAULT_RULES

        logger.info(f"Loaded {len(table)} safety rules from {self.source}")
        return table


# Process-wide rule table, loaded lazily
_rule_table: Optional[RuleTable] = None
_rule_source: str = "default"


def load_rule_table() -> RuleTable:
    """Load (or reload) the process-wide rule table from configuration"""
    global _rule_table, _rule_source
    loader = RuleTableLoader()
    _rule_table = loader.load()
    _rule_source = loader.source
    return _rule_table


def get_rule_table() -> RuleTable:
    """Get the process-wide rule table, loading it on first use"""
    if _rule_table is None:
        return load_rule_table()
    return _rule_table


def set_rule_table(rules: RuleTable, source: str = "injected") -> None:
    """Replace the process-wide rule table"""
    global _rule_table, _rule_source
    _rule_table = MappingProxyType(dict(rules))
    _rule_source = source


def get_rule_source() -> str:
    return _rule_source
