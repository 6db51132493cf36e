import json
import logging

import pytest

from budget_core.config import (
    DEFAULT_CONFIG,
    CarryOverPolicy,
    EngineConfig,
    get_config_value,
    load_config,
)


def test_default_config_values():
    assert DEFAULT_CONFIG.epsilon == 0.01
    assert DEFAULT_CONFIG.carry_over is CarryOverPolicy.CARRY_ALWAYS
    assert DEFAULT_CONFIG.fiscal_year_start_month is None
    assert "Hidden Categories" in DEFAULT_CONFIG.hidden_master_names
    assert DEFAULT_CONFIG.other_for_internal_transfers is False


def test_load_config_overrides_are_coerced():
    config = load_config(carry_over="reset_negative", reserved_prefixes=["sys_"])
    assert config.carry_over is CarryOverPolicy.RESET_NEGATIVE
    assert config.reserved_prefixes == ("sys_",)


def test_with_overrides_keeps_original():
    config = DEFAULT_CONFIG.with_overrides(fiscal_year_start_month=4)
    assert config.fiscal_year_start_month == 4
    assert DEFAULT_CONFIG.fiscal_year_start_month is None


def test_invalid_values_rejected():
    with pytest.raises(ValueError):
        EngineConfig(fiscal_year_start_month=13)
    with pytest.raises(ValueError):
        EngineConfig(epsilon=-1)
    with pytest.raises(ValueError):
        load_config(carry_over="sometimes")


def test_active_interest_keywords_by_locale():
    config = DEFAULT_CONFIG.with_overrides(locales=["es"])
    assert "intereses" in config.active_interest_keywords()
    assert "interest" not in config.active_interest_keywords()
    assert "zinsen" in DEFAULT_CONFIG.active_interest_keywords()


def test_is_reserved():
    assert DEFAULT_CONFIG.is_reserved("Category/__ImmediateIncome__")
    assert DEFAULT_CONFIG.is_reserved("MasterCategory/__Hidden__")
    assert not DEFAULT_CONFIG.is_reserved("Groceries")
    assert not DEFAULT_CONFIG.is_reserved(None)


def test_load_config_from_file_ignores_unknown_keys(tmp_path, caplog):
    path = tmp_path / "engine.json"
    path.write_text(json.dumps({"epsilon": 0.5, "colour": "blue"}), encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="budget_core.config"):
        config = load_config(path)
    assert config.epsilon == 0.5
    assert config.carry_over is CarryOverPolicy.CARRY_ALWAYS
    assert "colour" in caplog.text


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


def test_get_config_value():
    assert get_config_value("interest_keywords", "en") == ["interest"]
    assert get_config_value("nope", "deeper", default=7) == 7
