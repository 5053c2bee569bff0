"""
ConfigManager: YAML-backed policy configuration for the progress engine.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable policy values
  (cache TTLs per entity kind, projection defaults).
- Back configuration with YAML defaults shipped inside the package, optionally
  overlaid by a deployment directory named in ``PROGRESS_ENGINE_CONFIG_DIR``.

Responsibilities
----------------
- Load and deep-merge every ``*.yaml`` / ``*.yml`` file from the config
  directories into a single read-only mapping.
- Serve configuration reads with metrics for hits and misses.

Non-Responsibilities
--------------------
- Environment-driven settings (handled by ``Config``)
- Runtime mutation: the engine treats this configuration as static

Key Design Decisions
--------------------
- YAML is the single source for policy defaults; later directories override
  earlier ones key-by-key.
- Reads lazily initialize the manager so pure library use needs no bootstrap.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from progress_engine.core.config.errors import ConfigInitializationError
from progress_engine.core.logging.logger import get_logger

logger = get_logger(__name__)

PACKAGE_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
CONFIG_DIR_ENV = "PROGRESS_ENGINE_CONFIG_DIR"


@dataclass
class ConfigMetrics:
    gets: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    files_loaded: int = 0
    errors: int = 0


class ConfigManager:
    """
    Static policy configuration with dot-notation access.

    Features
    --------
    - Hierarchical config access with dot notation (e.g. ``"cache.ttl.bite"``).
    - Deep-merged YAML defaults with an optional deployment overlay directory.
    - Read metrics for observability.
    """

    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _lock = threading.Lock()
    _metrics: ConfigMetrics = ConfigMetrics()

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def _config_dirs(cls) -> List[Path]:
        dirs = [PACKAGE_CONFIG_DIR]
        extra = os.getenv(CONFIG_DIR_ENV)
        if extra:
            dirs.append(Path(extra))
        return dirs

    @classmethod
    def _load_yaml_dir(cls, config_dir: Path, target: Dict[str, Any]) -> int:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; skipping",
                extra={"config_dir": str(config_dir)},
            )
            return 0

        yaml_files = sorted(config_dir.glob("*.yaml")) + sorted(config_dir.glob("*.yml"))
        loaded = 0
        for yaml_file in yaml_files:
            with yaml_file.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
            if isinstance(data, dict):
                cls._deep_merge_dict(target, data)
                loaded += 1
                logger.debug("Loaded YAML config", extra={"file": str(yaml_file)})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )
        return loaded

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def initialize(cls) -> None:
        """
        Load YAML defaults (idempotent).

        Raises
        ------
        ConfigInitializationError
            If a YAML file cannot be read or parsed.
        """
        if cls._initialized:
            return

        with cls._lock:
            if cls._initialized:
                return

            merged: Dict[str, Any] = {}
            try:
                for config_dir in cls._config_dirs():
                    cls._metrics.files_loaded += cls._load_yaml_dir(config_dir, merged)
            except (OSError, yaml.YAMLError) as exc:
                cls._metrics.errors += 1
                logger.error(
                    "ConfigManager initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise ConfigInitializationError("Failed to load YAML configuration") from exc

            cls._cache = merged
            cls._initialized = True
            logger.info(
                "ConfigManager initialized",
                extra={
                    "yaml_file_count": cls._metrics.files_loaded,
                    "top_level_keys": sorted(cls._cache),
                },
            )

    # =========================================================================
    # READ API
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. ``"cache.ttl.mission"``).
        default:
            Value to return if the key is not present.

        Examples
        --------
        >>> ConfigManager.get("cache.ttl.bite")
        120000
        >>> ConfigManager.get("cache.ttl.unknown", 60000)
        60000
        """
        cls.initialize()
        cls._metrics.gets += 1

        value: Any = cls._cache
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                cls._metrics.cache_misses += 1
                return default
            value = value[part]

        cls._metrics.cache_hits += 1
        return value if value is not None else default

    # =========================================================================
    # CACHE CONTROL & METRICS
    # =========================================================================

    @classmethod
    def clear_cache(cls) -> None:
        """
        Drop loaded configuration so the next read reloads from YAML.

        Intended for tests that point ``PROGRESS_ENGINE_CONFIG_DIR`` elsewhere.
        """
        with cls._lock:
            cls._cache = {}
            cls._initialized = False
        logger.info("ConfigManager cache cleared")

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        total = cls._metrics.cache_hits + cls._metrics.cache_misses
        return {
            "initialized": cls._initialized,
            "gets": cls._metrics.gets,
            "cache_hits": cls._metrics.cache_hits,
            "cache_misses": cls._metrics.cache_misses,
            "hit_rate": round(cls._metrics.cache_hits / total * 100, 2) if total else 0.0,
            "files_loaded": cls._metrics.files_loaded,
            "errors": cls._metrics.errors,
        }

    @classmethod
    def reset_metrics(cls) -> None:
        cls._metrics = ConfigMetrics()


def get_config_value(key: str, default: Optional[Any] = None) -> Any:
    """Module-level shortcut for ``ConfigManager.get``."""
    return ConfigManager.get(key, default)
