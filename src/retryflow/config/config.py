"""Retry engine configuration from YAML file.

Loads the `retryflow:` section of a YAML file into dataclasses:
- Default retry policy
- Orchestration mode and reconciler timing
- Retention and record store location
- Dead-letter sink and logging settings

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.

Example:
    retryflow:
      mode: scheduled
      sweep_interval: 5
      store_path: /var/lib/retryflow/records.json
      policy:
        max_attempts: 5
        base_delay: 1.0
        non_retryable_errors: ValidationError,AuthenticationError
      dead_letter:
        bootstrap_servers: ${KAFKA_BOOTSTRAP_SERVERS:-}
        topic: inventory.events.dlq
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from retryflow.retry.policy import DEFAULT_NON_RETRYABLE_ERRORS, RetryPolicy

logger = logging.getLogger(__name__)

VALID_MODES = ["blocking", "scheduled"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Default config file: ./config.yaml, overridable via RETRYFLOW_CONFIG
DEFAULT_CONFIG_FILE = Path("config.yaml")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_name_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [name.strip() for name in value.split(",") if name.strip()]
    return [str(name) for name in value]


@dataclass
class RetryPolicyConfig:
    """Default retry policy settings. Durations in seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    jitter_fraction: float = 0.1
    retryable_errors: list[str] = field(default_factory=list)
    non_retryable_errors: list[str] = field(
        default_factory=lambda: sorted(DEFAULT_NON_RETRYABLE_ERRORS)
    )

    def __post_init__(self):
        """Coerce YAML/env strings to their proper types."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.multiplier = float(self.multiplier)
        self.max_delay = float(self.max_delay)
        self.jitter_fraction = float(self.jitter_fraction)
        self.retryable_errors = _as_name_list(self.retryable_errors)
        self.non_retryable_errors = _as_name_list(self.non_retryable_errors)

    def to_policy(self) -> RetryPolicy:
        """Build the immutable policy; raises PolicyValidationError on bad values."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
            jitter_fraction=self.jitter_fraction,
            retryable_errors=frozenset(self.retryable_errors),
            non_retryable_errors=frozenset(self.non_retryable_errors),
        )


@dataclass
class DeadLetterConfig:
    """Dead-letter sink. Empty bootstrap_servers keeps parked events in memory."""

    bootstrap_servers: str = ""
    topic: str = "retryflow.dlq"
    client_id: str = "retryflow-dlq"
    request_timeout_ms: int = 30000

    def __post_init__(self):
        self.bootstrap_servers = str(self.bootstrap_servers or "")
        self.request_timeout_ms = int(self.request_timeout_ms)

    @property
    def uses_kafka(self) -> bool:
        return bool(self.bootstrap_servers.strip())


@dataclass
class RetryFlowConfig:
    """Retry engine configuration.

    Configuration structure:
        retryflow:
          policy: {...}            # Default RetryPolicy
          mode: scheduled          # or blocking
          sweep_interval: 5        # Reconciler sweep period (seconds)
          max_concurrency: 10      # Resumptions in flight per sweep
          retention_days: 30       # Age before terminal records are cleaned up
          cleanup_interval: null   # Seconds between automatic cleanups (off if null)
          delete_on_success: true
          claim_timeout: 300       # Seconds an attempt holds its record before it is due again
          store_path: null         # JSON store file; in-memory when null
          dead_letter: {...}
          log_level: INFO
          json_logs: false

    Logging is configured by the host application, e.g.
    setup_logging(config.log_level, json_format=config.json_logs).
    """

    policy: RetryPolicyConfig = field(default_factory=RetryPolicyConfig)
    mode: str = "scheduled"
    sweep_interval: float = 5.0
    max_concurrency: int = 10
    retention_days: int = 30
    cleanup_interval: float | None = None
    delete_on_success: bool = True
    claim_timeout: float = 300.0
    store_path: str | None = None
    dead_letter: DeadLetterConfig = field(default_factory=DeadLetterConfig)
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self):
        """Convert nested dicts and coerce scalar types."""
        if isinstance(self.policy, dict):
            self.policy = RetryPolicyConfig(**self.policy)
        if isinstance(self.dead_letter, dict):
            self.dead_letter = DeadLetterConfig(**self.dead_letter)

        self.mode = str(self.mode).strip().lower()
        self.sweep_interval = float(self.sweep_interval)
        self.max_concurrency = int(self.max_concurrency)
        self.retention_days = int(self.retention_days)
        if self.cleanup_interval in ("", None):
            self.cleanup_interval = None
        else:
            self.cleanup_interval = float(self.cleanup_interval)
        self.delete_on_success = _as_bool(self.delete_on_success)
        self.claim_timeout = float(self.claim_timeout)
        self.store_path = str(self.store_path) if self.store_path else None
        self.log_level = str(self.log_level).upper()
        self.json_logs = _as_bool(self.json_logs)

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)

    @property
    def claim_lease(self) -> timedelta:
        return timedelta(seconds=self.claim_timeout)

    def validate(self) -> None:
        """Validate configuration values and the derived retry policy."""
        if self.mode not in VALID_MODES:
            raise ValueError(f"mode must be one of {VALID_MODES}, got '{self.mode}'")
        if self.sweep_interval <= 0:
            raise ValueError(f"sweep_interval must be > 0, got {self.sweep_interval}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {self.retention_days}")
        if self.cleanup_interval is not None and self.cleanup_interval <= 0:
            raise ValueError(f"cleanup_interval must be > 0, got {self.cleanup_interval}")
        if self.claim_timeout <= 0:
            raise ValueError(f"claim_timeout must be > 0, got {self.claim_timeout}")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{self.log_level}'"
            )
        self.policy.to_policy()


def load_config(path: Path | None = None) -> RetryFlowConfig:
    """Load retry engine configuration.

    Resolution: explicit path, then $RETRYFLOW_CONFIG, then ./config.yaml.
    A missing file yields defaults; a file without a `retryflow:` section
    is an error.
    """
    if path is None:
        path = Path(os.getenv("RETRYFLOW_CONFIG", str(DEFAULT_CONFIG_FILE)))
    path = Path(path)

    if not path.exists():
        logger.debug(f"No configuration file at {path}, using defaults")
        config = RetryFlowConfig()
        config.validate()
        return config

    logger.info(f"Loading configuration from file: {path}")
    yaml_data = _expand_env_vars(load_yaml(path))

    if "retryflow" not in yaml_data:
        raise ValueError(
            f"Invalid config file {path}: missing 'retryflow:' section"
        )

    section = yaml_data["retryflow"] or {}
    known = set(RetryFlowConfig.__dataclass_fields__)
    unknown = sorted(set(section) - known)
    if unknown:
        logger.warning(f"Ignoring unknown retryflow config keys: {unknown}")

    config = RetryFlowConfig(**{k: v for k, v in section.items() if k in known})
    config.validate()
    return config


__all__ = [
    "RetryFlowConfig",
    "RetryPolicyConfig",
    "DeadLetterConfig",
    "load_config",
    "load_yaml",
    "DEFAULT_CONFIG_FILE",
]
