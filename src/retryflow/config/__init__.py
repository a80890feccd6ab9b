from retryflow.config.config import (
    DeadLetterConfig,
    RetryFlowConfig,
    RetryPolicyConfig,
    load_config,
    load_yaml,
)

__all__ = [
    "RetryFlowConfig",
    "RetryPolicyConfig",
    "DeadLetterConfig",
    "load_config",
    "load_yaml",
]
