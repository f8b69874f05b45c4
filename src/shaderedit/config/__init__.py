from __future__ import annotations

from shaderedit.config.io import get_global_config_path, get_local_config_path, load_config
from shaderedit.config.models import EditorConfig, ShaderEditConfig, TrackingConfig

__all__ = [
    "EditorConfig",
    "ShaderEditConfig",
    "TrackingConfig",
    "get_global_config_path",
    "get_local_config_path",
    "load_config",
]
