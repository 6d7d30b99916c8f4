"""
Configuration management for the Restic Operator
"""

import logging
import os
from typing import Optional
from dataclasses import dataclass, field


DEFAULT_RESTICPROFILE_IMAGE = 'creativeprojects/resticprofile'


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class OperatorConfig:
    """Main operator configuration"""

    # Operator metadata
    name: str = 'restic-operator'
    version: str = '0.1.0'

    # Kubernetes API configuration
    namespace: Optional[str] = None  # None means watch all namespaces

    # Reconcile cadence, in seconds
    requeue_interval: float = 10.0
    error_requeue_interval: float = 5.0

    # Size of the thread pool running the synchronous handlers
    max_workers: int = 10

    # Image repository used when a backup does not name an image
    default_image: str = DEFAULT_RESTICPROFILE_IMAGE

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv('LOG_LEVEL', 'INFO'))

    @classmethod
    def from_env(cls) -> 'OperatorConfig':
        """
        Create configuration from environment variables

        Environment variables:
        - OPERATOR_NAMESPACE: Namespace to watch (default: all)
        - LOG_LEVEL: Logging level (default: INFO)
        - REQUEUE_INTERVAL: Steady-state requeue delay in seconds (default: 10)
        - ERROR_REQUEUE_INTERVAL: Requeue delay after a failed reconcile (default: 5)
        - MAX_WORKERS: Handler thread pool size (default: 10)
        - RESTICPROFILE_IMAGE: Default resticprofile image repository
        """
        config = cls()

        if namespace := os.getenv('OPERATOR_NAMESPACE'):
            config.namespace = namespace

        if image := os.getenv('RESTICPROFILE_IMAGE'):
            config.default_image = image

        config.requeue_interval = _env_float('REQUEUE_INTERVAL', config.requeue_interval)
        config.error_requeue_interval = _env_float('ERROR_REQUEUE_INTERVAL', config.error_requeue_interval)
        config.max_workers = _env_int('MAX_WORKERS', config.max_workers)

        return config

    def validate(self) -> None:
        """
        Validate configuration

        Raises:
            ValueError: If configuration is invalid
        """
        if self.requeue_interval <= 0:
            raise ValueError("Requeue interval must be positive")

        if self.error_requeue_interval <= 0:
            raise ValueError("Error requeue interval must be positive")

        if self.error_requeue_interval > self.requeue_interval:
            raise ValueError("Error requeue interval must not exceed the requeue interval")

        if self.max_workers < 1:
            raise ValueError("At least one worker is required")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

        if not self.default_image:
            raise ValueError("Default image must not be empty")

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level.upper())


# Global configuration instance
_config: Optional[OperatorConfig] = None


def get_config() -> OperatorConfig:
    """
    Get the global configuration instance (singleton pattern)

    Returns:
        OperatorConfig: The global configuration
    """
    global _config
    if _config is None:
        _config = OperatorConfig.from_env()
        _config.validate()
    return _config


def set_config(config: OperatorConfig) -> None:
    """
    Set the global configuration instance

    Args:
        config: New configuration instance
    """
    global _config
    config.validate()
    _config = config
