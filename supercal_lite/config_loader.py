"""supercal_lite.config_loader

Lightweight config loader for supercal_lite.

- Reads YAML (PyYAML); a JSON file is accepted too since YAML is a superset.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .lite_models import DEFAULT_CATEGORY_EMOJI, DEFAULT_CATEGORY_PALETTE, HEX_COLOR_PATTERN
from .lite_recurrence_expander import MAX_SERIES_INSTANCES
from .lite_snapshot import MIN_COMPATIBLE_VERSION, SNAPSHOT_VERSION

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "SUPERCAL_CONFIG"
LOG_LEVEL_ENV = "SUPERCAL_LOG_LEVEL"

_HEX_COLOR_RE = re.compile(HEX_COLOR_PATTERN)


@dataclass
class Config:
    """Typed configuration for supercal_lite.

    Fields:
        prodid_app: application name written into PRODID
        prodid_locale: locale suffix written into PRODID
        uid_domain: domain appended to exported UIDs
        max_series_instances: expansion safety cap (1..100)
        category_palette: colours picked for categories minted on import
        default_category_emoji: emoji given to categories minted on import
        snapshot_version: data version written into JSON snapshots
        min_compatible_version: oldest snapshot version accepted on import
        log_level: logging level name
    """

    prodid_app: str = "SuperCalendrier"
    prodid_locale: str = "FR"
    uid_domain: str = "supercalendrier.com"
    max_series_instances: int = MAX_SERIES_INSTANCES
    category_palette: tuple[str, ...] = DEFAULT_CATEGORY_PALETTE
    default_category_emoji: str = DEFAULT_CATEGORY_EMOJI
    snapshot_version: str = SNAPSHOT_VERSION
    min_compatible_version: str = MIN_COMPATIBLE_VERSION
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        This method is conservative about types: it coerces numeric-like values to int,
        clamps max_series_instances into 1..100 and drops palette entries that are not
        #rrggbb colours, logging warnings when coercions occur.
        """
        if data is None:
            data = {}
        defaults = cls()

        def _coerce_str(key: str, default: str) -> str:
            raw = data.get(key, default)
            if raw is None or str(raw).strip() == "":
                return default
            return str(raw)

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        max_instances = _coerce_int("max_series_instances", MAX_SERIES_INSTANCES)
        if max_instances < 1:
            logger.warning("max_series_instances %d below minimum; coercing to 1", max_instances)
            max_instances = 1
        elif max_instances > MAX_SERIES_INSTANCES:
            logger.warning(
                "max_series_instances %d above maximum; coercing to %d",
                max_instances,
                MAX_SERIES_INSTANCES,
            )
            max_instances = MAX_SERIES_INSTANCES

        palette_raw = data.get("category_palette", DEFAULT_CATEGORY_PALETTE)
        if palette_raw is None:
            palette_raw = DEFAULT_CATEGORY_PALETTE
        if not isinstance(palette_raw, (list, tuple)):
            logger.warning("Config `category_palette` is not a list; coercing to single-item list")
            palette_raw = [palette_raw]
        palette = tuple(str(c) for c in palette_raw if _HEX_COLOR_RE.match(str(c)))
        if len(palette) != len(palette_raw):
            logger.warning(
                "Config `category_palette` dropped %d invalid colours",
                len(palette_raw) - len(palette),
            )
        if not palette:
            logger.warning("Config `category_palette` has no valid colours; using default palette")
            palette = DEFAULT_CATEGORY_PALETTE

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            prodid_app=_coerce_str("prodid_app", defaults.prodid_app),
            prodid_locale=_coerce_str("prodid_locale", defaults.prodid_locale),
            uid_domain=_coerce_str("uid_domain", defaults.uid_domain),
            max_series_instances=max_instances,
            category_palette=palette,
            default_category_emoji=_coerce_str("default_category_emoji", DEFAULT_CATEGORY_EMOJI),
            snapshot_version=_coerce_str("snapshot_version", SNAPSHOT_VERSION),
            min_compatible_version=_coerce_str("min_compatible_version", MIN_COMPATIBLE_VERSION),
            log_level=log_level,
        )


def _load_yaml(path: Path) -> Any:
    """Load the top-level value of a YAML (or JSON) file.

    The `yaml` import is deferred to keep package import cheap.
    """
    import yaml  # noqa: PLC0415

    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    # safe_load returns None for empty files; normalize to empty dict
    if loaded is None:
        return {}
    return loaded


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. If not provided, SUPERCAL_CONFIG is
              used, else ./supercal_lite/config.yaml (relative to current working dir).

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    - SUPERCAL_LOG_LEVEL, when set, overrides the file's log_level.
    """
    path = path or os.environ.get(CONFIG_PATH_ENV)
    p = Path(path) if path else Path.cwd() / "supercal_lite" / "config.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        cfg = Config()
    else:
        raw = _load_yaml(p)
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        cfg = Config.from_dict(raw)
        logger.info("Loaded configuration from %s", p)

    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        cfg.log_level = env_level.upper()

    logger.debug("Configuration values: %s", cfg)
    return cfg
