"""
Configuration Module - Centralized configuration management.

Provides:
1. Hierarchical configuration with defaults
2. Environment variable overrides (STAKERANK_* prefix)
3. Config file loading (JSON/TOML/YAML)
4. Validation on startup

Configuration Hierarchy (highest to lowest priority):
1. Environment variables
2. Config file
3. Default values

Example:
    config = StakeRankConfig.load("stakerank.toml")
    params = config.curve.to_parameters()

    # Override with environment
    # STAKERANK_CURVE_CEILING=600
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .models import CurveParameters

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Sections
# =============================================================================

@dataclass
class CurveConfig:
    """Bonding-curve parameters; immutable once an engine is built."""
    total: int = 3_470_483_788
    ceiling: int = 588
    decimals: int = 1_000_000

    def __post_init__(self):
        if self.total <= 0 or self.ceiling <= 0 or self.decimals <= 0:
            raise ValueError("curve total, ceiling and decimals must be positive")

    def to_parameters(self) -> CurveParameters:
        return CurveParameters(total=self.total, ceiling=self.ceiling, decimals=self.decimals)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"  # "json" or "text"
    file: Optional[str] = None
    redact: bool = True


@dataclass
class StorageConfig:
    """Storage configuration."""
    state_file: str = "./data/stakerank/ledger.json"


# =============================================================================
# Main Configuration
# =============================================================================

_SECTIONS = {
    "curve": CurveConfig,
    "logging": LoggingConfig,
    "storage": StorageConfig,
}


@dataclass
class StakeRankConfig:
    """Combines all configuration sections into a single object."""
    curve: CurveConfig = field(default_factory=CurveConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def load(
        cls,
        config_file: Optional[Union[str, Path]] = None,
        env_prefix: str = "STAKERANK",
    ) -> "StakeRankConfig":
        """
        Load configuration with hierarchy: env vars > config file > defaults.

        Args:
            config_file: Path to config file (JSON, TOML or YAML)
            env_prefix: Prefix for environment variables

        Returns:
            Loaded and validated configuration
        """
        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = cls._load_file(Path(config_file))

        config_dict = cls._apply_env_overrides(config_dict, env_prefix)

        config = cls._from_dict(config_dict)
        config.validate()
        return config

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        content = path.read_text()

        if path.suffix == ".json":
            parsed = json.loads(content)
        elif path.suffix == ".toml":
            parsed = tomllib.loads(content)
        elif path.suffix in {".yaml", ".yml"}:
            parsed = yaml.safe_load(content)
        else:
            logger.warning(f"Unknown config file format: {path.suffix}")
            return {}

        if not isinstance(parsed, dict):
            raise ValueError(f"Config file must be a mapping at top level: {path}")
        return parsed

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any], prefix: str) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        for key, value in os.environ.items():
            if not key.startswith(f"{prefix}_"):
                continue

            # STAKERANK_CURVE_CEILING -> curve.ceiling
            parts = key[len(prefix) + 1:].lower().split("_")

            if len(parts) < 2 or parts[0] not in _SECTIONS:
                continue

            section = parts[0]
            field_name = "_".join(parts[1:])

            config.setdefault(section, {})
            config[section][field_name] = cls._parse_env_value(value)

        return config

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        # Integer
        try:
            return int(value)
        except ValueError:
            pass

        # Boolean
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        # String
        return value

    @classmethod
    def _from_dict(cls, config_dict: Dict[str, Any]) -> "StakeRankConfig":
        """Build config object from dictionary."""
        sections = {}
        for name, section_cls in _SECTIONS.items():
            raw = dict(config_dict.get(name, {}))
            known = {f.name for f in fields(section_cls)}
            for unknown in sorted(set(raw) - known):
                logger.warning(f"Ignoring unknown config key: {name}.{unknown}")
                raw.pop(unknown)
            sections[name] = section_cls(**raw)
        return cls(**sections)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def validate(self) -> None:
        """Validate configuration."""
        # Curve validation happens in CurveConfig.__post_init__ and CurveParameters
        self.curve.to_parameters()

        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid logging level: {self.logging.level}")

        if self.logging.format not in ("json", "text"):
            raise ValueError(f"Invalid logging format: {self.logging.format}")


# =============================================================================
# Global Config Instance
# =============================================================================

_global_config: Optional[StakeRankConfig] = None


def get_config() -> StakeRankConfig:
    """Get global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = StakeRankConfig.load()
    return _global_config


def set_config(config: StakeRankConfig) -> None:
    """Set global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset global configuration to None (forces reload)."""
    global _global_config
    _global_config = None
