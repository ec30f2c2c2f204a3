"""Configuration facade for syncback.

What:
  Re-export the runtime configuration loader and its schema so call sites do
  not depend on module filenames.
"""

from .loader import (
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import AccountConfig, RuntimeConfig

__all__ = [
    "AccountConfig",
    "RuntimeConfig",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
]
