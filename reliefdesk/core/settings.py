from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from reliefdesk.core.coerce import safe_decimal

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

DEFAULT_HEURISTICS: dict[str, Any] = {
    "debt_brackets": {
        "under-10k": 5000,
        "10k-25k": 10000,
        "25k-50k": 25000,
        "50k-100k": 50000,
        "over-100k": 100000,
    },
    "installment_agreement": {
        "guaranteed_limit": 10000,
        "streamlined_limit": 50000,
        "max_months": 72,
        "minimum_payment": 25,
        "annual_interest_rate": 0.05,
        "timeline_months": [1, 2],
        "success_rate": {"streamlined": 95, "non_streamlined": 85},
    },
    "offer_in_compromise": {
        "minimum_debt": 10000,
        "quick_sale_factor": 0.8,
        "eligibility_horizon_months": 12,
        "lump_sum_horizon_months": 12,
        "periodic_horizon_months": 24,
        "confidence": {"high_below": 0.25, "medium_below": 1.0},
        "savings_fraction": [0.5, 0.8],
        "timeline_months": [6, 12],
        "success_rate": 40,
    },
    "currently_not_collectible": {
        "income_ceiling": 2000,
        "confidence": {"high_below": 0.5, "medium_below": 1.0},
        "timeline_months": [1, 3],
        "success_rate": 75,
    },
    "penalty_abatement": {
        "savings_fraction": [0.1, 0.25],
        "timeline_months": [2, 4],
        "success_rate": {"first_time": 80, "reasonable_cause": 50},
    },
    "innocent_spouse_relief": {
        "savings_fraction": [0.5, 1.0],
        "timeline_months": [6, 12],
        "success_rate": 30,
    },
    "summary": {
        "confidence_points": {"high": 90, "medium": 60, "low": 30},
        "risk": {"low_at": 70, "medium_at": 40},
    },
}


def _merge_nested_dict(existing: dict | None, incoming: dict | None) -> dict:
    if not isinstance(existing, dict):
        existing = {}
    if not isinstance(incoming, dict):
        return dict(existing)

    merged = {key: value for key, value in existing.items()}
    for key, value in incoming.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _merge_nested_dict(merged[key], value)
        else:
            merged[key] = value
    return merged


def _heuristics_path() -> Path:
    env_path = os.getenv("RELIEF_HEURISTICS_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return CONFIG_DIR / "heuristics.yaml"


def _load_heuristics() -> dict[str, Any]:
    path = _heuristics_path()
    if not path.exists():
        logger.warning("heuristics file %s missing, using built-in defaults", path)
        return _merge_nested_dict(DEFAULT_HEURISTICS, {})
    with path.open("r", encoding="utf-8") as fp:
        loaded = yaml.safe_load(fp) or {}
    return _merge_nested_dict(DEFAULT_HEURISTICS, loaded)


HEURISTICS = _load_heuristics()


def reload_heuristics() -> dict[str, Any]:
    """Re-read the heuristics file (used in tests and after config edits)."""

    global HEURISTICS
    HEURISTICS = _load_heuristics()
    return HEURISTICS


def heuristic(section: str, *keys: str, default: Any = None) -> Any:
    node: Any = HEURISTICS.get(section, {})
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


def heuristic_decimal(section: str, *keys: str, default: str = "0") -> Decimal:
    return safe_decimal(heuristic(section, *keys), default=default)


def heuristic_range(section: str, key: str) -> tuple[Decimal, Decimal]:
    values = heuristic(section, key, default=[0, 0])
    if not isinstance(values, (list, tuple)) or len(values) != 2:
        return Decimal("0"), Decimal("0")
    return safe_decimal(values[0]), safe_decimal(values[1])
