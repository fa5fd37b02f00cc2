"""
Configuration for the wave engine.

Every empirically chosen constant lives here so it can be tuned from
config.yaml without touching the algorithms.
"""

import copy
import logging
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "min_history_bars": 30,
    "base_zigzag_threshold": 5.0,
    # (total range % lower bound, threshold %), checked from the top down
    "zigzag_threshold_tiers": [
        [200.0, 12.0],
        [100.0, 10.0],
        [30.0, 8.0],
    ],
    "min_pivots": 4,
    "pivot_retry_factor": 0.6,
    "pivot_max_retries": 3,
    "min_zigzag_threshold": 3.0,
    "atr_period": 14,
    "rsi_period": 14,
    "macd_fast": 12,
    "macd_slow": 26,
    "macd_signal": 9,
    "bollinger_period": 20,
    "bollinger_std_dev": 2.0,
    "kd_period": 9,
    "short_ma_period": 5,
    "long_ma_period": 20,
    "macd_divergence_lookback": 20,
    "max_cycle_waves": 8,
    "divergence": {
        "lookback": 30,
        "near_extreme_pct": 2.0,
        "rsi_gap_pct": 5.0,
        "min_peak_separation": 4,
    },
    "rules": {
        "sharp_correction_pct": 10.0,
        "wave3_extension_ratio": 1.618,
    },
    "multi_view": {
        "windows": {
            "short": {"bars": 130, "threshold_scale": 0.8},
            "mid": {"bars": 195, "threshold_scale": 1.0},
            "long": {"bars": 260, "threshold_scale": 1.2},
        },
        "min_window_bars": 10,
        "high_consensus_confidence": 85,
        "medium_consensus_confidence": 70,
        "low_consensus_confidence": 55,
        "deep_pullback_pct": 25.0,
        "bounce_pullback_pct": 30.0,
        "near_high_pct": 5.0,
        "top_position_pct": 85.0,
        "extended_gain_pct": 200.0,
        "divergence_penalty": 5,
        "divergence_confidence_floor": 60,
        "weekly_min_wave_count": 2,
        "weekly_penalty": 10,
        "weekly_confidence_floor": 50,
    },
    "targets": {
        "default_up_pct": 10.0,
        "default_down_pct": 10.0,
        "default_stop_pct": 5.0,
    },
    "confidence": {
        "base": 50,
        "rule_pass": 10,
        "guideline_follow": 5,
        "rsi_confirm": 5,
        "macd_confirm": 5,
        "rsi_divergence": -10,
        "macd_divergence": -10,
        "risk_reward_excellent": 3.0,
        "risk_reward_excellent_bonus": 10,
        "risk_reward_good": 2.0,
        "risk_reward_good_bonus": 5,
        "risk_reward_poor": 1.0,
        "risk_reward_poor_penalty": -5,
        "levels": [
            [80, "very high"],
            [65, "high"],
            [50, "medium"],
            [35, "low"],
            [0, "very low"],
        ],
    },
    # Backend / ingest
    "history_source": "yahoo",
    "history_days": 400,
    "csv_history_dir": "./data",
    "history_cache_ttl_seconds": 300,
    "history_cache_max_entries": 256,
    "symbol_rate_limit_seconds": 1,
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load config.yaml and merge it over DEFAULT_CONFIG.
    A missing or unreadable file falls back to the defaults.
    """
    path = path or DEFAULT_CONFIG_PATH
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(f"{path} not found. Using default configuration values.")
        return copy.deepcopy(DEFAULT_CONFIG)
    except yaml.YAMLError as e:
        logger.error(f"Error loading {path}: {e}. Using default configuration values.")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not isinstance(loaded, dict):
        logger.error(f"{path} does not contain a mapping. Using default configuration values.")
        return copy.deepcopy(DEFAULT_CONFIG)
    return _deep_merge(DEFAULT_CONFIG, loaded)


def resolve_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Fill in defaults for a partial config dict (None means all defaults)."""
    if config is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    return _deep_merge(DEFAULT_CONFIG, config)
