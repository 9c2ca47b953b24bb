"""Tests for the safety rule table and its loaders"""

import json
import logging

import pytest
import requests

from services import safety_rules
from services.safety_rules import (
    DEFAULT_RULES,
    IngredientFamily,
    Rating,
    RuleTableError,
    RuleTableLoader,
    build_rule_table,
    get_rule_source,
    get_rule_table,
    load_rule_table,
    rule_table_to_records,
)


def test_default_rules_cover_known_families():
    assert set(DEFAULT_RULES) == {f for f in IngredientFamily if f is not IngredientFamily.UNKNOWN}
    assert DEFAULT_RULES[IngredientFamily.RETINOID].age_max == 15
    assert DEFAULT_RULES[IngredientFamily.AHA].age_max == 13
    assert DEFAULT_RULES[IngredientFamily.FRAGRANCE].age_max is None


def test_rule_table_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_RULES[IngredientFamily.VITAMIN] = DEFAULT_RULES[IngredientFamily.RETINOID]


def test_rating_severity_order():
    assert Rating.SAFE.worse(Rating.AVOID) is Rating.AVOID
    assert Rating.AVOID.worse(Rating.USE_WITH_CARE) is Rating.AVOID
    assert Rating.SAFE.worse(Rating.USE_WITH_CARE) is Rating.USE_WITH_CARE


def test_parse_unknown_family():
    assert IngredientFamily.parse("retinoid") is IngredientFamily.RETINOID
    assert IngredientFamily.parse("retinol") is IngredientFamily.UNKNOWN
    assert IngredientFamily.parse(None) is IngredientFamily.UNKNOWN


@pytest.mark.parametrize("records", [
    [{"family": "peptide", "rating": "safe", "reason": "x"}],
    [{"family": "aha", "rating": "forbidden", "reason": "x"}],
    [{"family": "aha", "rating": "avoid", "reason": "x", "age_min": 14, "age_max": 12}],
    [{"family": "aha", "rating": "avoid", "reason": "x"}, {"family": "AHA", "rating": "safe", "reason": "y"}],
    ["aha"],
])
def test_malformed_rules_are_rejected(records):
    with pytest.raises(RuleTableError):
        build_rule_table(records)


def test_inert_safe_band_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="services.safety_rules"):
        build_rule_table([{"family": "vitamin", "rating": "safe", "reason": "x", "age_max": 10}])

    assert "has no effect" in caplog.text


def test_records_round_trip_through_table():
    records = rule_table_to_records(DEFAULT_RULES)

    assert build_rule_table(records) == DEFAULT_RULES
    assert {"family": "retinoid", "rating": "avoid",
            "reason": "Retinoids are too strong for developing skin under 16", "age_max": 15} in records


def test_loader_defaults_without_configuration():
    loader = RuleTableLoader()

    assert loader.load() is DEFAULT_RULES
    assert loader.source == "default"


def test_loader_reads_rules_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"rules": [
        {"family": "fragrance", "rating": "avoid", "reason": "Strict household", "age_max": 17},
    ]}))

    loader = RuleTableLoader(path=str(path))
    table = loader.load()

    assert loader.source == "file"
    assert list(table) == [IngredientFamily.FRAGRANCE]
    assert table[IngredientFamily.FRAGRANCE].rating is Rating.AVOID


def test_loader_falls_back_on_bad_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text("{not json")

    loader = RuleTableLoader(path=str(path))

    assert loader.load() is DEFAULT_RULES
    assert loader.source == "default"


def test_loader_falls_back_on_missing_file(tmp_path):
    loader = RuleTableLoader(path=str(tmp_path / "missing.json"))

    assert loader.load() is DEFAULT_RULES


class _FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


def test_loader_fetches_hosted_rules(monkeypatch):
    calls = {}

    def fake_get(url, headers=None, timeout=None):
        calls.update(url=url, headers=headers, timeout=timeout)
        return _FakeResponse([{"family": "alcohol", "rating": "avoid", "reason": "No drying alcohol", "age_max": 17}])

    monkeypatch.setattr(safety_rules.requests, "get", fake_get)

    loader = RuleTableLoader(url="https://rules.example/api", api_key="secret", timeout=3)
    table = loader.load()

    assert loader.source == "url"
    assert table[IngredientFamily.ALCOHOL].rating is Rating.AVOID
    assert calls["headers"]["apikey"] == "secret"
    assert calls["headers"]["Authorization"] == "Bearer secret"
    assert calls["timeout"] == 3


def test_loader_falls_back_when_hosted_rules_fail(monkeypatch):
    monkeypatch.setattr(safety_rules.requests, "get", lambda *a, **kw: _FakeResponse({}, status=503))

    loader = RuleTableLoader(url="https://rules.example/api")

    assert loader.load() is DEFAULT_RULES
    assert loader.source == "default"


def test_load_rule_table_reads_environment(monkeypatch, tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"family": "bha", "rating": "avoid", "reason": "x", "age_max": 12}]))
    monkeypatch.setenv("SAFETY_RULES_FILE", str(path))

    table = load_rule_table()

    assert get_rule_table() is table
    assert get_rule_source() == "file"
    assert table[IngredientFamily.BHA].age_max == 12


def test_parse_non_string_family():
    assert IngredientFamily.parse(5) is IngredientFamily.UNKNOWN
    assert IngredientFamily.parse(["retinoid"]) is IngredientFamily.UNKNOWN


def test_non_string_family_is_rejected():
    with pytest.raises(RuleTableError):
        build_rule_table([{"family": 5, "rating": "avoid", "reason": "x"}])


def test_loader_falls_back_on_non_string_family(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"family": 5, "rating": "avoid", "reason": "x", "age_max": 12}]))

    loader = RuleTableLoader(path=str(path))

    assert loader.load() is DEFAULT_RULES
    assert loader.source == "default"


def test_loader_falls_back_on_non_utf8_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_bytes(b'[{"family": "aha", "rating": "avoid", "reason": "caf\xe9"}]')

    loader = RuleTableLoader(path=str(path))

    assert loader.load() is DEFAULT_RULES
    assert loader.source == "default"


@pytest.mark.parametrize("raw", ["10s", "", "-3", "0"])
def test_bad_timeout_setting_uses_default(monkeypatch, raw):
    monkeypatch.setenv("SAFETY_RULES_TIMEOUT", raw)

    assert RuleTableLoader().timeout == safety_rules.DEFAULT_TIMEOUT


def test_timeout_setting_is_read(monkeypatch):
    monkeypatch.setenv("SAFETY_RULES_TIMEOUT", "2.5")

    assert RuleTableLoader().timeout == 2.5


def test_unbanded_avoid_rule_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="services.safety_rules"):
        build_rule_table([{"family": "fragrance", "rating": "avoid", "reason": "No fragrance"}])

    assert "avoid without age_max" in caplog.text


def test_banded_avoid_rule_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="services.safety_rules"):
        build_rule_table([{"family": "retinoid", "rating": "avoid", "reason": "x", "age_max": 15}])

    assert caplog.text == ""


def test_age_max_zero_is_a_band():
    table = build_rule_table([{"family": "aha", "rating": "avoid", "reason": "x", "age_max": 0}])
    rule = table[IngredientFamily.AHA]

    assert rule.in_age_band(0)
    assert not rule.in_age_band(1)
