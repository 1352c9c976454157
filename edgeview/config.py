"""
config.py - Configuration loader for the DICOM edge viewer.

Loads settings from config.yaml with sensible defaults so that no
path, kernel or display parameter is hard-coded inside a module.

CONFIG is read once, when this module is first imported, and is not
modified afterwards.  Components receive the pieces they need as typed
objects (see decoder_config_from / kernel_from) rather than reaching
into CONFIG themselves.
"""

import copy
import logging
import os
from typing import Any, Optional

import numpy as np
import yaml

from edgeview.acquisition import EXECUTOR_KINDS, DecoderConfig
from edgeview.errors import InvalidArgument
from edgeview.kernels import DEFAULT_KERNEL, resolve_kernel
from edgeview.windowing import WINDOW_PRESETS

# Resolve the config file relative to the repo root, not the CWD,
# so imports work regardless of where the script is launched from.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.path.join(_REPO_ROOT, "config.yaml")

_DEFAULTS: dict[str, Any] = {
    "decoder": {
        "data_root": "data",
        "executor": "process",
        "force": True,
    },
    "filter": {
        "kernel": "edge_detection",
        "custom_kernel": None,
        "slice_index": 0,
    },
    "render": {
        "background": [0.0, 0.0, 0.0],
        "window_preset": None,
    },
    "logging": {
        "level": "INFO",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, returning a new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str = _CONFIG_PATH) -> dict[str, Any]:
    """
    Load the YAML configuration file and merge it with built-in defaults.

    Parameters
    ----------
    config_path : str
        Path to config.yaml. Defaults to the repo-root config.yaml.

    Returns
    -------
    dict
        Merged configuration dictionary.
    """
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
    else:
        user_config = {}

    if not isinstance(user_config, dict):
        raise InvalidArgument(f"{config_path} must contain a mapping at the top level.")

    return _deep_merge(_DEFAULTS, user_config)


def decoder_config_from(config: dict[str, Any], base_dir: str = _REPO_ROOT) -> DecoderConfig:
    """
    Build the DecoderConfig handed to the acquisition adapter.

    A relative ``decoder.data_root`` is resolved against *base_dir*.
    """
    section = config["decoder"]
    executor = section.get("executor", "process")
    if executor not in EXECUTOR_KINDS:
        raise InvalidArgument(
            f"decoder.executor must be one of {list(EXECUTOR_KINDS)}, got '{executor}'."
        )
    data_root = section.get("data_root") or "."
    if not os.path.isabs(data_root):
        data_root = os.path.join(base_dir, data_root)
    return DecoderConfig(
        data_root=os.path.normpath(data_root),
        executor=executor,
        force=bool(section.get("force", True)),
    )


def kernel_from(config: dict[str, Any], preset: Optional[str] = None) -> np.ndarray:
    """Resolve the configured kernel; *preset* overrides the configured name."""
    section = config["filter"]
    if preset is not None:
        return resolve_kernel(preset=preset)
    return resolve_kernel(preset=section.get("kernel"), custom=section.get("custom_kernel"))


def kernel_name_from(config: dict[str, Any], preset: Optional[str] = None) -> str:
    """Label of the kernel kernel_from() resolves: the preset name, or "custom"."""
    if preset is not None:
        return preset
    section = config["filter"]
    if section.get("custom_kernel") is not None:
        return "custom"
    return section.get("kernel") or DEFAULT_KERNEL


def window_preset_from(config: dict[str, Any]) -> Optional[str]:
    value = config["render"].get("window_preset")
    if value is not None and (not isinstance(value, str) or value not in WINDOW_PRESETS):
        raise InvalidArgument(
            f"render.window_preset must be null or one of {list(WINDOW_PRESETS)}, got {value!r}."
        )
    return value


def slice_index_from(config: dict[str, Any]) -> int:
    value = config["filter"].get("slice_index", 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgument(f"filter.slice_index must be a non-negative integer, got {value!r}.")
    return value


def background_from(config: dict[str, Any]) -> tuple[float, float, float]:
    value = config["render"].get("background", [0.0, 0.0, 0.0])
    try:
        r, g, b = (float(c) for c in value)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"render.background must be three numbers, got {value!r}.") from exc
    return r, g, b


def log_level_from(config: dict[str, Any]) -> int:
    name = str(config["logging"].get("level", "INFO")).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise InvalidArgument(f"logging.level '{name}' is not a logging level name.")
    return level


# Module-level singleton so callers can just do `from edgeview.config import CONFIG`
CONFIG = load_config()
