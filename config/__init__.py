"""
Configuration module for the conductor project.

Exports the configuration models and loader functions.
"""

from .defaults import DEFAULT_MAX_ITERATIONS, DEFAULT_MODEL, DEFAULT_MODEL_PROVIDERS
from .loader import (
    get_config,
    load_config,
    load_config_file,
    merge_configs,
    resolve_api_key,
    strip_jsonc_comments,
)
from .main_config import Config
from .tools_config import ToolClassificationConfig

__all__ = [
    # Constants
    "DEFAULT_MODEL",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_MODEL_PROVIDERS",
    # Config models
    "Config",
    "ToolClassificationConfig",
    # Loader functions
    "load_config",
    "get_config",
    "load_config_file",
    "merge_configs",
    "strip_jsonc_comments",
    "resolve_api_key",
]
