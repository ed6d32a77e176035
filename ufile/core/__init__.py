"""Configuration, errors, value types and polling helpers."""

from ufile.core.config import ClientConfig, Settings, build_client_config
from ufile.core.errors import (
    ConfigurationError,
    ConflictError,
    NotArchivedError,
    RemoteError,
    UFileError,
    WaitTimeoutError,
)
from ufile.core.polling import RetryPolicy, apoll_until, poll_until

__all__ = [
    "ClientConfig",
    "ConfigurationError",
    "ConflictError",
    "NotArchivedError",
    "RemoteError",
    "RetryPolicy",
    "Settings",
    "UFileError",
    "WaitTimeoutError",
    "apoll_until",
    "build_client_config",
    "poll_until",
]
