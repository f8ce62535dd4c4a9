"""Configuration management for the lots tool.

This module provides configuration loading, validation, and management
for the lot actions CLI, including ledger API settings and output options.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration errors."""

    pass


class LotActionsConfig:
    """Configuration for the lots tool.

    Manages configuration from files, environment variables, and defaults.

    Attributes:
        ledger_url: Event ledger API URL
        ledger_timeout: Ledger request timeout in seconds
        use_ledger: Submit actions to the ledger API (True) or the local stub ledger (False)
        cycle_id: Wheel cycle the lots belong to
        db_path: Local SQLite database path
        verbose: Enable verbose logging
        json_output: Output in JSON format
    """

    def __init__(
        self,
        ledger_url: str = "http://localhost:8000",
        ledger_timeout: int = 30,
        use_ledger: bool = False,
        cycle_id: int = 1,
        db_path: str = "~/.wheel_lots/lots.db",
        verbose: bool = False,
        json_output: bool = False,
    ):
        """Initialize configuration.

        Args:
            ledger_url: Event ledger API URL
            ledger_timeout: Ledger request timeout in seconds
            use_ledger: Whether to submit to the ledger API
            cycle_id: Wheel cycle id
            db_path: Local SQLite database path
            verbose: Enable verbose logging
            json_output: Output in JSON format

        Example:
            >>> config = LotActionsConfig(
            ...     ledger_url="http://localhost:8000",
            ...     cycle_id=3,
            ... )
        """
        self.ledger_url = ledger_url
        self.ledger_timeout = ledger_timeout
        self.use_ledger = use_ledger
        self.cycle_id = cycle_id
        self.db_path = db_path
        self.verbose = verbose
        self.json_output = json_output

        self._validate()

    def _validate(self):
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.ledger_timeout <= 0:
            raise ConfigurationError("ledger_timeout must be positive")

        if self.cycle_id < 1:
            raise ConfigurationError("cycle_id must be a positive integer")

        if not self.ledger_url.startswith(("http://", "https://")):
            raise ConfigurationError("ledger_url must start with http:// or https://")

        if not self.db_path:
            raise ConfigurationError("db_path must not be empty")

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get default configuration file path.

        Returns:
            Path to default config file (~/.wheel_lots/config.yaml)
        """
        return Path.home() / ".wheel_lots" / "config.yaml"

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "LotActionsConfig":
        """Load configuration from YAML file.

        If the file doesn't exist, returns default configuration. Merges
        file configuration with environment variable overrides.

        Args:
            path: Optional path to config file (default: ~/.wheel_lots/config.yaml)

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration file is invalid
        """
        config_path = path or cls.get_default_config_path()

        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = file_config
                logger.debug(f"Loaded configuration from {config_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in configuration file: {e}"
                ) from e
            except OSError as e:
                raise ConfigurationError(
                    f"Failed to load configuration file: {e}"
                ) from e
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "LotActionsConfig":
        """Merge configuration dictionary with defaults and environment variables.

        Precedence order (highest to lowest):
        1. Environment variables
        2. Config file values
        3. Default values

        Args:
            config_dict: Configuration dictionary from file

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            >>> config = LotActionsConfig.merge_with_defaults({
            ...     "ledger": {"url": "http://example.com:8000"}
            ... })
        """
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        ledger_config = config_dict.get("ledger") or {}
        cycle_config = config_dict.get("cycle") or {}
        cli_config = config_dict.get("cli") or {}

        try:
            ledger_url = os.getenv(
                "LOTS_LEDGER_URL",
                ledger_config.get("url", "http://localhost:8000"),
            )
            ledger_timeout = int(
                os.getenv("LOTS_LEDGER_TIMEOUT", ledger_config.get("timeout", 30))
            )
            use_ledger = os.getenv("LOTS_USE_LEDGER") is not None or ledger_config.get(
                "enabled", False
            )
            cycle_id = int(os.getenv("LOTS_CYCLE_ID", cycle_config.get("id", 1)))
            db_path = os.getenv(
                "LOTS_DB_PATH",
                cycle_config.get("db_path", "~/.wheel_lots/lots.db"),
            )
            verbose = os.getenv("LOTS_VERBOSE") is not None or cli_config.get(
                "verbose", False
            )
            json_output = os.getenv("LOTS_JSON_OUTPUT") is not None or cli_config.get(
                "json_output", False
            )

            return cls(
                ledger_url=ledger_url,
                ledger_timeout=ledger_timeout,
                use_ledger=bool(use_ledger),
                cycle_id=cycle_id,
                db_path=db_path,
                verbose=bool(verbose),
                json_output=bool(json_output),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def save_to_file(self, path: Optional[Path] = None):
        """Save configuration to YAML file.

        Args:
            path: Optional path to save to (default: ~/.wheel_lots/config.yaml)

        Raises:
            ConfigurationError: If save fails
        """
        config_path = path or self.get_default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(config_path, "w") as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to the nested file layout."""
        return {
            "ledger": {
                "url": self.ledger_url,
                "timeout": self.ledger_timeout,
                "enabled": self.use_ledger,
            },
            "cycle": {
                "id": self.cycle_id,
                "db_path": self.db_path,
            },
            "cli": {
                "verbose": self.verbose,
                "json_output": self.json_output,
            },
        }

    def __repr__(self) -> str:
        return (
            f"LotActionsConfig("
            f"ledger_url={self.ledger_url!r}, "
            f"ledger_timeout={self.ledger_timeout}, "
            f"use_ledger={self.use_ledger}, "
            f"cycle_id={self.cycle_id}, "
            f"db_path={self.db_path!r}, "
            f"verbose={self.verbose}, "
            f"json_output={self.json_output}"
            ")"
        )


def load_config(config_path: Optional[Path] = None) -> LotActionsConfig:
    """Load configuration from file or defaults.

    Example:
        >>> from src.lots.config import load_config
        >>> config = load_config()
        >>> print(config.ledger_url)
    """
    return LotActionsConfig.load_from_file(config_path)
