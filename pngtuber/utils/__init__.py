"""
Utility modules for the PNGTuber overlay.
"""

from .colors import normalize_hex, lighten_color, darken_color, skin_palette, beard_palette
from .config_loader import (
    AvatarConfig,
    AudioConfig,
    RemoteConfig,
    ServerConfig,
    load_config,
    resolve_config,
    apply_query_params,
    clamp_threshold,
)

__all__ = [
    "normalize_hex",
    "lighten_color",
    "darken_color",
    "skin_palette",
    "beard_palette",
    # Configuration
    "AvatarConfig",
    "AudioConfig",
    "RemoteConfig",
    "ServerConfig",
    "load_config",
    "resolve_config",
    "apply_query_params",
    "clamp_threshold",
]
