# ==== COMBO PRICING ==== #

"""
Combo pricing lookup backed by the combo pricing policy file.

Prices are snapshotted onto orders when they are created or re-priced, so
changing the policy never rewrites historic orders.
"""

import functools
import os
from decimal import Decimal
from typing import Any, Dict, List

import yaml

from app.observability.tracing import get_tracer


tracer = get_tracer(__name__)

_POLICY_PATH = os.path.join(
    os.path.dirname(__file__),
    "..",
    "business",
    "policies",
    "combo_pricing.yaml"
)

_FALLBACK_POLICY: Dict[str, Any] = {
    "combos": {"Combo 25": "25.00", "Combo 35": "35.00"},
    "default_price": "45.00",
}


# ==== POLICY LOADING ==== #


@functools.lru_cache(maxsize=1)
def get_pricing_config() -> Dict[str, Any]:
    """
    Load the combo pricing policy.

    Returns:
        Dict[str, Any]: Policy with ``combos`` and ``default_price``
    """
    with tracer.start_as_current_span("load_pricing_config") as span:
        try:
            with open(_POLICY_PATH, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            span.set_attribute("config_loaded", True)
        except FileNotFoundError:
            span.set_attribute("config_loaded", False)
            span.set_attribute("fallback_used", True)
            config = dict(_FALLBACK_POLICY)

        config.setdefault("combos", {})
        config.setdefault("default_price", _FALLBACK_POLICY["default_price"])
        return config


@functools.lru_cache(maxsize=1)
def _price_table() -> Dict[str, Decimal]:
    combos = get_pricing_config()["combos"]
    return {name: Decimal(str(value)) for name, value in combos.items()}


# ==== PRICE LOOKUP ==== #


def default_price() -> Decimal:
    return Decimal(str(get_pricing_config()["default_price"]))


def price(combo_type: str) -> Decimal:
    """
    Price of one combo.

    Unknown combo names fall back to the default price and never raise.

    Args:
        combo_type (str): Combo identifier, e.g. "Combo 25"

    Returns:
        Decimal: Price in the project currency
    """
    return _price_table().get(combo_type, default_price())


def is_known_combo(combo_type: str) -> bool:
    return combo_type in _price_table()


def available_combos() -> List[str]:
    """Combo names currently offered, in policy order."""
    return list(_price_table().keys())


def clear_cache() -> None:
    """Drop cached policy data, for tests and hot reloads."""
    get_pricing_config.cache_clear()
    _price_table.cache_clear()
