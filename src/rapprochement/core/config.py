#!/usr/bin/env python3
"""
Configuration Management for the Reconciliation Engine

Directories and logging come from RAPPROCHEMENT_* variables (and .env);
every matching and anomaly tuning constant lives in one MatchingConfig.
"""

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .currency import parse_euros_to_cents

load_dotenv()


class Environment(Enum):
    """Deployment environment, from RAPPROCHEMENT_ENV."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


ASSIGNMENT_STRATEGIES = ("greedy", "optimal")


@dataclass(frozen=True)
class MatchingConfig:
    """
    Tuning parameters for scoring, matching and anomaly detection.

    Amounts are expressed in euros, like the rest of the external contract.
    The defaults are the values the product shipped with: ±2% amount
    tolerance, ±7 day window, suggestions from 70 and auto-validation from 95.
    """

    amount_tolerance_pct: float = 2.0
    date_window_days: int = 7
    suggestion_threshold: int = 70
    auto_threshold: int = 95
    anomaly_amount_threshold: float = 500.0

    # Learning loop
    supplier_boost_max: int = 10

    # Assignment
    assignment_strategy: str = "greedy"
    max_runtime_seconds: float | None = None

    # Anomaly severities
    critical_amount_threshold: float = 1000.0
    vat_tolerance: float = 0.01
    vat_critical_threshold: float = 10.0
    outlier_min_transactions: int = 5
    outlier_sigma: float = 3.0
    outlier_amount_floor: float = 5000.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchingConfig":
        """
        Create from a mapping, ignoring unknown keys.

        Args:
            data: Mapping of field names to values (e.g. parsed YAML)

        Returns:
            MatchingConfig with defaults for missing fields
        """
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def with_overrides(self, **overrides: Any) -> "MatchingConfig":
        """Return a copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for display and JSON output."""
        return asdict(self)

    def cents(self, field_name: str) -> int:
        """Get a euro-denominated setting in cents."""
        return parse_euros_to_cents(getattr(self, field_name))

    def validate(self) -> list[str]:
        """Validate thresholds and return list of errors."""
        errors = []

        for name in ("suggestion_threshold", "auto_threshold"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                errors.append(f"{name} must be between 0 and 100, got {value}")
        if self.suggestion_threshold > self.auto_threshold:
            errors.append("suggestion_threshold must not exceed auto_threshold")
        if self.amount_tolerance_pct < 0:
            errors.append("amount_tolerance_pct must be non-negative")
        if self.date_window_days < 0:
            errors.append("date_window_days must be non-negative")
        if not 0 <= self.supplier_boost_max <= 100:
            errors.append("supplier_boost_max must be between 0 and 100")
        if self.assignment_strategy not in ASSIGNMENT_STRATEGIES:
            errors.append(
                f"assignment_strategy must be one of {', '.join(ASSIGNMENT_STRATEGIES)}, "
                f"got {self.assignment_strategy!r}"
            )
        if self.max_runtime_seconds is not None and self.max_runtime_seconds <= 0:
            errors.append("max_runtime_seconds must be positive when set")
        if self.outlier_min_transactions < 2:
            errors.append("outlier_min_transactions must be at least 2")

        return errors


DEFAULT_MATCHING_CONFIG = MatchingConfig()

# Environment variable -> (MatchingConfig field, parser)
_MATCHING_ENV_VARS: dict[str, tuple[str, Any]] = {
    "MATCH_AMOUNT_TOLERANCE_PCT": ("amount_tolerance_pct", float),
    "MATCH_DATE_WINDOW_DAYS": ("date_window_days", int),
    "MATCH_SUGGESTION_THRESHOLD": ("suggestion_threshold", int),
    "MATCH_AUTO_THRESHOLD": ("auto_threshold", int),
    "ANOMALY_AMOUNT_THRESHOLD": ("anomaly_amount_threshold", float),
    "MATCH_SUPPLIER_BOOST_MAX": ("supplier_boost_max", int),
    "MATCH_ASSIGNMENT_STRATEGY": ("assignment_strategy", str),
    "MATCH_MAX_RUNTIME_SECONDS": ("max_runtime_seconds", float),
}


def load_matching_config(yaml_file: Path | None = None) -> MatchingConfig:
    """
    Build MatchingConfig from defaults, an optional YAML file and the environment.

    Later sources win: defaults < YAML file < environment variables.

    Args:
        yaml_file: Optional YAML file with MatchingConfig field names as keys

    Returns:
        MatchingConfig instance

    Raises:
        ValueError: If the YAML file is not a mapping or an env value is malformed
    """
    values: dict[str, Any] = {}

    if yaml_file is not None and yaml_file.exists():
        with open(yaml_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Matching configuration must be a mapping: {yaml_file}")
        values.update(data.get("matching", data))

    for env_name, (field_name, parser) in _MATCHING_ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            values[field_name] = parser(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_name}: {raw!r}") from e

    return MatchingConfig.from_dict(values)


# Root logger format per environment; others use the compact form
_LOG_FORMATS = {
    Environment.DEVELOPMENT: "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
_COMPACT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _resolve_data_dir(env: Environment) -> Path:
    """RAPPROCHEMENT_DATA_DIR, else ./data (a temp directory under test)."""
    configured = os.getenv("RAPPROCHEMENT_DATA_DIR")
    if env == Environment.TEST:
        return Path(configured) if configured else Path(tempfile.gettempdir()) / "test_rapprochement"
    return Path(configured or "./data").expanduser().resolve()


@dataclass
class Config:
    """
    Process-wide settings of the reconciliation engine.

    Tenant stores live under data_dir/tenants, CLI result files under
    data_dir/exports. Matching tuning comes from defaults, then
    matching.yaml, then MATCH_* variables.
    """

    environment: Environment

    data_dir: Path
    tenants_dir: Path
    output_dir: Path

    matching: MatchingConfig = field(default_factory=MatchingConfig)

    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Config":
        """
        Build the configuration from RAPPROCHEMENT_* variables and .env.

        Creates the data, tenants and exports directories if missing.

        Raises:
            ValueError: If RAPPROCHEMENT_ENV or a matching override is malformed
        """
        env = Environment(os.getenv("RAPPROCHEMENT_ENV", "development"))
        data_dir = _resolve_data_dir(env)

        config_dirs = {"tenants_dir": data_dir / "tenants", "output_dir": data_dir / "exports"}
        for directory in (data_dir, *config_dirs.values()):
            directory.mkdir(parents=True, exist_ok=True)

        matching_file = os.getenv("RAPPROCHEMENT_MATCHING_FILE")
        matching = load_matching_config(Path(matching_file) if matching_file else data_dir / "matching.yaml")

        return cls(
            environment=env,
            data_dir=data_dir,
            matching=matching,
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            **config_dirs,
        )

    def validate(self) -> list[str]:
        """List configuration problems; empty when usable."""
        errors = [
            f"{name} does not exist: {path}"
            for name, path in (
                ("data_dir", self.data_dir),
                ("tenants_dir", self.tenants_dir),
                ("output_dir", self.output_dir),
            )
            if not path.exists()
        ]
        if self.log_level not in _LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")
        errors.extend(f"matching: {error}" for error in self.matching.validate())
        return errors

    def setup_logging(self) -> None:
        """Configure the root logger (no-op if a handler is already installed)."""
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format=_LOG_FORMATS.get(self.environment, _COMPACT_LOG_FORMAT),
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-friendly dictionary."""
        return {
            "environment": self.environment.value,
            "data_dir": str(self.data_dir),
            "tenants_dir": str(self.tenants_dir),
            "output_dir": str(self.output_dir),
            "matching": self.matching.to_dict(),
            "debug": self.debug,
            "log_level": self.log_level,
        }


_config: Config | None = None


def get_config() -> Config:
    """
    Return the process-wide configuration, loading it on first use.

    Raises:
        ValueError: If the configuration does not validate (nothing is cached)
    """
    global _config
    if _config is None:
        config = Config.from_environment()
        errors = config.validate()
        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")
        config.setup_logging()
        _config = config
    return _config


def reload_config() -> Config:
    """Forget the cached configuration and load it again."""
    global _config
    _config = None
    return get_config()


def get_tenants_dir() -> Path:
    return get_config().tenants_dir
