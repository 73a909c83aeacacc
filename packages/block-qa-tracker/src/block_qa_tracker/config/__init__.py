"""Configuration module for the block QA tracker.

Loads and validates the optional TOML configuration file and reads the
streaming source credentials from the environment.
"""

from block_qa_tracker.config.tracker import (
    API_KEY_ENV_VAR,
    TOKEN_ENV_VAR,
    ArtifactConfig,
    Credentials,
    LoggingConfig,
    NotifyConfig,
    RpcConfig,
    ScheduleConfig,
    StreamConfig,
    TrackerConfig,
    credentials_from_env,
    load_tracker_config,
    print_config_summary,
    validate_tracker_config,
)

__all__ = [
    "API_KEY_ENV_VAR",
    "TOKEN_ENV_VAR",
    "ArtifactConfig",
    "Credentials",
    "LoggingConfig",
    "NotifyConfig",
    "RpcConfig",
    "ScheduleConfig",
    "StreamConfig",
    "TrackerConfig",
    "credentials_from_env",
    "load_tracker_config",
    "print_config_summary",
    "validate_tracker_config",
]
