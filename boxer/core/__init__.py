"""Core domain types: configuration, errors and results."""

from .config import BoxerConfig, ConfigOverrides, ConfigResolution, resolve_config
from .errors import BoxerError, ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "BoxerConfig",
    "ConfigOverrides",
    "ConfigResolution",
    "resolve_config",
    # errors
    "BoxerError",
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
