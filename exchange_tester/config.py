"""Tester configuration management with validation - single source of truth."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict, fields


@dataclass
class TesterConfiguration:
    """
    Validated tester configuration - single source of truth for defaults.

    All default values are defined here. YAML files and environment variables
    override these defaults. Durations are in seconds.
    """
    app_url: str = "http://localhost:12510"
    bank_url: str = "http://localhost:5515"
    bank_app_id: str = "isucon-final"
    log_url: str = "http://localhost:5516"
    log_app_id: str = "isucon-final"
    client_timeout: float = 10.0
    retire_timeout: float = 5.0
    trade_settlement_timeout: float = 5.0
    log_propagation_timeout: float = 10.0
    polling_interval: float = 0.5

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        """
        Get default configuration as dictionary.

        Returns:
            Dictionary with default values from the dataclass
        """
        return asdict(cls())

    def validate(self) -> None:
        """Validate configuration values."""
        for name in ("app_url", "bank_url", "log_url"):
            if not getattr(self, name):
                raise ValueError(f"{name} must not be empty")
        for name in ("client_timeout", "retire_timeout", "trade_settlement_timeout",
                     "log_propagation_timeout", "polling_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.polling_interval > min(self.trade_settlement_timeout, self.log_propagation_timeout):
            raise ValueError("polling_interval must not exceed the convergence timeouts")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)


# field name -> environment variable
_ENV_OVERRIDES = {
    "app_url": "EXCHANGE_URL",
    "bank_url": "ISUBANK_URL",
    "bank_app_id": "ISUBANK_APP_ID",
    "log_url": "ISULOG_URL",
    "log_app_id": "ISULOG_APP_ID",
    "client_timeout": "CLIENT_TIMEOUT",
    "retire_timeout": "RETIRE_TIMEOUT",
    "trade_settlement_timeout": "TRADE_SETTLEMENT_TIMEOUT",
    "log_propagation_timeout": "LOG_PROPAGATION_TIMEOUT",
    "polling_interval": "POLLING_INTERVAL",
}


def _load_from_yaml(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML file

    Returns:
        Configuration dictionary from YAML (under 'tester' key if present)
    """
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Failed to load config file {config_path}: {e}") from e
    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return config.get("tester", config)


def _apply_environment_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over file/config defaults.
    """
    types = {f.name: f.type for f in fields(TesterConfiguration)}
    for name, env_name in _ENV_OVERRIDES.items():
        if env_name not in os.environ:
            continue
        raw = os.environ[env_name]
        if types[name] in (float, "float"):
            try:
                config[name] = float(raw)
            except ValueError as e:
                raise ValueError(f"{env_name} must be a number, got {raw!r}") from e
        else:
            config[name] = raw
    return config


def load_config(config_path: Optional[str] = None) -> TesterConfiguration:
    """
    Load tester configuration from YAML file or use defaults.

    Configuration priority (highest to lowest):
    1. Environment variables
    2. YAML file values
    3. TesterConfiguration dataclass defaults

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated TesterConfiguration

    Raises:
        ValueError: If configuration is invalid
    """
    config = TesterConfiguration.get_defaults()

    if config_path and Path(config_path).exists():
        yaml_config = _load_from_yaml(config_path)
        config.update({k: v for k, v in yaml_config.items() if v is not None})

    config = _apply_environment_overrides(config)

    try:
        tester_cfg = TesterConfiguration(**config)
    except TypeError as e:
        raise ValueError(f"Invalid configuration field: {e}") from e
    tester_cfg.validate()
    return tester_cfg
