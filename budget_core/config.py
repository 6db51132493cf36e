"""Engine configuration.

Defaults live in ``defaults.json`` next to this module so policy values
(carry-over handling, reserved category prefixes, interest keywords) can be
changed without touching code. Callers that need a different policy build
their own :class:`EngineConfig` with :func:`load_config` and pass it to the
calculators explicitly.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.json"


class CarryOverPolicy(str, Enum):
    """How a negative ``available`` balance enters the following month."""

    CARRY_ALWAYS = "carry_always"
    RESET_NEGATIVE = "reset_negative"
    PER_ENTRY = "per_entry"


@dataclass(frozen=True)
class EngineConfig:
    """Immutable policy bundle shared by every calculator.

    Attributes:
        epsilon: Amounts whose magnitude is below this value are treated as
            zero when classifying a flow as inflow or outflow.
        carry_over: Policy applied to overspent (negative) balances when they
            roll into the next month.
        fiscal_year_start_month: When set (1-12), negative balances never
            carry into this month regardless of ``carry_over``.
        reserved_prefixes: Category and master-category names or ids starting
            with one of these belong to system bookkeeping and are excluded
            from rollups.
        hidden_master_names: Master categories with these names are excluded
            from rollups.
        interest_keywords: Locale code to keywords marking interest payments.
        locales: Locales whose keywords are active; ``None`` enables all.
        other_for_internal_transfers: Label leftover transfers that stay inside
            the pool, and dust amounts, as ``other`` instead of falling
            through to the income/expense sign rule.
    """

    epsilon: float = 0.01
    carry_over: CarryOverPolicy = CarryOverPolicy.CARRY_ALWAYS
    fiscal_year_start_month: Optional[int] = None
    reserved_prefixes: Tuple[str, ...] = ("__", "Category/__", "MasterCategory/__")
    hidden_master_names: Tuple[str, ...] = ("Hidden Categories",)
    interest_keywords: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: {"en": ("interest",)})
    locales: Optional[Tuple[str, ...]] = None
    other_for_internal_transfers: bool = False

    def __post_init__(self) -> None:
        month = self.fiscal_year_start_month
        if month is not None and not 1 <= month <= 12:
            raise ValueError(f"fiscal_year_start_month must be within 1..12, got {month}")
        if self.epsilon < 0:
            raise ValueError("epsilon must not be negative")

    def active_interest_keywords(self) -> Tuple[str, ...]:
        locales = self.locales if self.locales is not None else tuple(self.interest_keywords)
        keywords = []
        for locale in locales:
            keywords.extend(self.interest_keywords.get(locale, ()))
        return tuple(keywords)

    def is_reserved(self, text: Optional[str]) -> bool:
        return bool(text) and any(text.startswith(prefix) for prefix in self.reserved_prefixes)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        return replace(self, **_coerce(overrides))


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(values)
    if "carry_over" in coerced:
        coerced["carry_over"] = CarryOverPolicy(coerced["carry_over"])
    for key in ("reserved_prefixes", "hidden_master_names"):
        if key in coerced:
            coerced[key] = tuple(coerced[key])
    if "interest_keywords" in coerced:
        coerced["interest_keywords"] = {
            locale: tuple(words) for locale, words in coerced["interest_keywords"].items()
        }
    if coerced.get("locales") is not None:
        coerced["locales"] = tuple(coerced["locales"])
    return coerced


def read_config_file(path: Optional[Path] = None) -> Dict[str, Any]:
    """Read a raw configuration mapping from a JSON file.

    Args:
        path: File to read; defaults to the bundled ``defaults.json``.

    Returns:
        Dictionary with the raw configuration values.

    Raises:
        FileNotFoundError: If the configuration file doesn't exist.
        json.JSONDecodeError: If the configuration file is invalid JSON.
    """
    config_path = Path(path) if path is not None else DEFAULTS_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_config(path: Optional[Path] = None, **overrides: Any) -> EngineConfig:
    """Build an :class:`EngineConfig` from a JSON file plus keyword overrides.

    Unknown keys in the file are ignored with a warning so that newer config
    files keep working with older engines.

    Example:
        >>> load_config(carry_over="reset_negative").carry_over
        <CarryOverPolicy.RESET_NEGATIVE: 'reset_negative'>
    """
    raw = read_config_file(path)
    known = set(EngineConfig.__dataclass_fields__)
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
    values = {k: v for k, v in raw.items() if k in known}
    values.update(overrides)
    return EngineConfig(**_coerce(values))


def get_config_value(*keys: str, default: Any = None, path: Optional[Path] = None) -> Any:
    """Get a nested raw configuration value by key path.

    Example:
        >>> get_config_value("interest_keywords", "en")
        ['interest']
    """
    try:
        value = read_config_file(path)
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError, FileNotFoundError):
        return default


DEFAULT_CONFIG = load_config()
