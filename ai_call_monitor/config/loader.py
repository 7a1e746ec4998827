"""
Configuration management and loading.

Handles store limits, interception rules and the externally supplied
pricing table.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from ai_call_monitor.core.pricing import ModelPricing, PricingTable
from ai_call_monitor.core.targets import (
    DEFAULT_API_MARKERS,
    DEFAULT_DENYLIST,
    DEFAULT_MODEL_MARKERS,
)
from ai_call_monitor.storage.metrics_store import CACHE_TTL_MS, CAPACITY


@dataclass(frozen=True)
class StoreConfig:
    """Retention and caching limits for the metrics store."""
    capacity: int = CAPACITY
    cache_ttl_ms: int = CACHE_TTL_MS

    def __post_init__(self):
        """Validate store limits."""
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        if self.cache_ttl_ms < 0:
            raise ValueError("cache_ttl_ms cannot be negative")


@dataclass(frozen=True)
class InterceptConfig:
    """Rules deciding which calls are monitored and how models are named."""
    api_markers: Tuple[str, ...] = DEFAULT_API_MARKERS
    denylist: Tuple[str, ...] = DEFAULT_DENYLIST
    model_markers: Tuple[Tuple[str, str], ...] = DEFAULT_MODEL_MARKERS

    def __post_init__(self):
        """Validate that no rule is an empty string."""
        if not self.api_markers:
            raise ValueError("api_markers cannot be empty")
        if any(not marker for marker in self.api_markers):
            raise ValueError("api_markers cannot contain empty strings")
        if any(not host for host in self.denylist):
            raise ValueError("denylist cannot contain empty strings")
        for marker, name in self.model_markers:
            if not marker or not name:
                raise ValueError("model_markers entries need a marker and a name")


@dataclass(frozen=True)
class MonitorConfig:
    """Complete monitor configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    intercept: InterceptConfig = field(default_factory=InterceptConfig)
    pricing: PricingTable = field(default_factory=PricingTable)


def load_monitor_config(path: str) -> MonitorConfig:
    """Load and validate monitor configuration from a YAML file.

    Every section is optional and falls back to defaults, but anything
    present is validated strictly: unknown keys and wrong types are
    errors rather than silently ignored.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated MonitorConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Monitor config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'store', 'intercept', 'pricing'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return MonitorConfig(
        store=_parse_store_config(_section(raw_config, 'store')),
        intercept=_parse_intercept_config(_section(raw_config, 'intercept')),
        pricing=_parse_pricing(_section(raw_config, 'pricing')),
    )


def _section(raw_config: Dict, name: str) -> Dict:
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _parse_store_config(data: Dict) -> StoreConfig:
    """Parse and validate the ``store`` section."""
    _check_keys(data, {'capacity', 'cache_ttl_ms'}, 'store')

    values = {}
    for key in ('capacity', 'cache_ttl_ms'):
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"'{key}' in store must be an integer")
        values[key] = value
    return StoreConfig(**values)


def _parse_string_list(value: Any, path: str) -> Tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{path}' must be a list of strings")
    return tuple(value)


def _parse_intercept_config(data: Dict) -> InterceptConfig:
    """Parse and validate the ``intercept`` section.

    Raises:
        ValueError: If configuration is invalid
    """
    _check_keys(data, {'api_markers', 'denylist', 'model_markers'}, 'intercept')

    values: Dict[str, Any] = {}
    if 'api_markers' in data:
        values['api_markers'] = _parse_string_list(data['api_markers'], 'intercept.api_markers')
    if 'denylist' in data:
        values['denylist'] = _parse_string_list(data['denylist'], 'intercept.denylist')

    if 'model_markers' in data:
        entries = data['model_markers']
        if not isinstance(entries, list):
            raise ValueError("'intercept.model_markers' must be a list")
        markers = []
        for index, entry in enumerate(entries):
            path = f"intercept.model_markers[{index}]"
            if not isinstance(entry, dict):
                raise ValueError(f"'{path}' must be a dictionary")
            _check_keys(entry, {'marker', 'name'}, path)
            marker, name = entry.get('marker'), entry.get('name')
            if not isinstance(marker, str) or not isinstance(name, str):
                raise ValueError(f"'{path}' requires string 'marker' and 'name'")
            markers.append((marker, name))
        values['model_markers'] = tuple(markers)

    return InterceptConfig(**values)


def _parse_price(value: Any, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{path}' must be a number")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{path}' must be a number")
    if not price.is_finite() or price < 0:
        raise ValueError(f"'{path}' must be >= 0")
    return price


def _parse_pricing(data: Dict) -> PricingTable:
    """Parse and validate the ``pricing`` section.

    Keys are model names or model-name prefixes, matched case-insensitively.
    """
    prices = {}
    for model, entry in data.items():
        path = f"pricing.{model}"
        if not isinstance(entry, dict):
            raise ValueError(f"'{path}' must be a dictionary")
        _check_keys(entry, {'prompt_cost_per_1k', 'completion_cost_per_1k'}, path)
        for key in ('prompt_cost_per_1k', 'completion_cost_per_1k'):
            if key not in entry:
                raise ValueError(f"Missing required '{key}' in {path}")

        prices[str(model).lower()] = ModelPricing(
            prompt_cost_per_1k=_parse_price(entry['prompt_cost_per_1k'], f"{path}.prompt_cost_per_1k"),
            completion_cost_per_1k=_parse_price(entry['completion_cost_per_1k'], f"{path}.completion_cost_per_1k"),
        )
    return PricingTable(prices)
