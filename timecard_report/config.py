import logging
import os
from typing import Any, Dict, Optional

import yaml

from timecard_report.aggregation import AggregationPolicy


class ConfigError(ValueError):
    """Raised when a report config value has the wrong shape."""


DEFAULT_CONFIG_PATH = "config/report_config.yaml"
LOG_LEVEL_ENV = "TIMECARD_LOG_LEVEL"

POLICY_KEYS = (
    "extra_bonus_hours",
    "atraso_penalty_hours",
    "include_adjustment_records",
    "ignore_deltas_up_to_minutes",
)


def configure_logging() -> None:
    """INFO logging with a terse format; TIMECARD_LOG_LEVEL overrides the level."""
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    env_level = os.getenv(LOG_LEVEL_ENV)
    if env_level:
        try:
            logging.getLogger().setLevel(env_level.upper())
        except ValueError:
            logging.warning(f"Invalid {LOG_LEVEL_ENV} '{env_level}', keeping default INFO")


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load the YAML report config; fall back to an empty config if missing or broken."""
    if not path or not os.path.exists(path):
        logging.warning(f"Report config not found ({path}); using defaults.")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed loading report config '{path}': {e}; using defaults")
        return {}

    if not isinstance(cfg, dict):
        logging.error(f"Report config '{path}' must be a mapping; using defaults")
        return {}
    logging.info(f"Loaded report config from {path}")
    return cfg


def policy_from_config(cfg: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> AggregationPolicy:
    """Build the aggregation policy from the `policy` section plus non-None overrides.

    Raises:
        PolicyError: a value is out of range.
    """
    section = cfg.get("policy") or {}
    if not isinstance(section, dict):
        logging.warning("Ignoring 'policy' section: expected a mapping")
        section = {}

    unknown = set(section) - set(POLICY_KEYS)
    if unknown:
        logging.warning(f"Unknown policy key(s) ignored: {sorted(unknown)}")

    values = {k: section[k] for k in POLICY_KEYS if section.get(k) is not None}
    if overrides:
        values.update({k: v for k, v in overrides.items() if k in POLICY_KEYS and v is not None})
    return AggregationPolicy(**values)


def sheets_from_config(cfg: Dict[str, Any]) -> Optional[list]:
    """Sheet selection from the config: a single name or a list of names.

    Raises:
        ConfigError: `sheets` is neither a string nor a list of scalar names.
    """
    sheets = cfg.get("sheets")
    if sheets is None:
        return None
    if isinstance(sheets, str):
        return [sheets]
    if not isinstance(sheets, list) or any(isinstance(s, (dict, list)) or s is None for s in sheets):
        raise ConfigError(f"'sheets' must be a sheet name or a list of sheet names, got {sheets!r}")
    return [str(s) for s in sheets]
