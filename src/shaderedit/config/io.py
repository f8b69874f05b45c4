from __future__ import annotations

import logging
import pathlib
from typing import Any

import pydantic
import ruamel.yaml

from shaderedit import exceptions
from shaderedit.config import models

logger = logging.getLogger(__name__)

LOCAL_CONFIG_DIR = ".shaderedit"


def get_global_config_path() -> pathlib.Path:
    """Get user-level config path (~/.config/shaderedit/config.yaml)."""
    return pathlib.Path.home() / ".config" / "shaderedit" / "config.yaml"


def get_local_config_path(project_dir: pathlib.Path) -> pathlib.Path:
    """Get project-level config path (<project dir>/.shaderedit/config.yaml)."""
    return project_dir / LOCAL_CONFIG_DIR / "config.yaml"


def _load_config_raw(path: pathlib.Path) -> dict[str, Any]:
    """Load YAML config as plain dict."""
    if not path.exists():
        return {}

    try:
        yaml = ruamel.yaml.YAML(typ="safe")
        with path.open() as f:
            data = yaml.load(f)
    except ruamel.yaml.YAMLError as e:
        raise exceptions.ConfigError(f"Invalid YAML in {path}: {e}") from e
    except PermissionError:
        raise exceptions.ConfigError(f"Permission denied reading {path}") from None
    except OSError as e:
        raise exceptions.ConfigError(f"Error reading {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise exceptions.ConfigError(f"Config in {path} must be a mapping")
    return dict(data)  # pyright: ignore[reportUnknownArgumentType]


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge `override` into a copy of `base`."""
    merged = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = _merge(existing, value)  # pyright: ignore[reportUnknownArgumentType]
        else:
            merged[key] = value
    return merged


def load_config(
    project_dir: pathlib.Path | None = None,
    *,
    global_path: pathlib.Path | None = None,
) -> models.ShaderEditConfig:
    """Load global config, overlay the project-local one, and validate.

    Args:
        project_dir: Directory holding the project file; None skips local config.
        global_path: Override for the user-level config path.

    Raises:
        ConfigError: If a file is unreadable or a value fails validation.
    """
    global_file = global_path if global_path is not None else get_global_config_path()
    data = _load_config_raw(global_file)
    if project_dir is not None:
        local_file = get_local_config_path(project_dir)
        data = _merge(data, _load_config_raw(local_file))

    try:
        config = models.ShaderEditConfig.model_validate(data)
    except pydantic.ValidationError as e:
        raise exceptions.ConfigError(f"Invalid configuration: {e}") from e

    logger.debug(f"Loaded config: {config.model_dump()}")
    return config
