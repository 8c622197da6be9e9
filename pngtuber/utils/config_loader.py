"""
Configuration loading.

Reads config/config.yaml into a resolved AvatarConfig and applies
URL-style overrides (the same query parameters the browser overlay
accepts, e.g. '?threshold=40&skin=f5d0c5&obs=true').
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Union
from urllib.parse import parse_qs

import yaml

from .colors import normalize_hex

logger = logging.getLogger(__name__)

# Project root (go up from pngtuber/utils/)
PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "config.yaml"


@dataclass
class AudioConfig:
    """Local capture settings."""
    sample_rate: int = 48000
    device: Optional[Union[int, str]] = None  # None = default input device
    fft_size: int = 256
    smoothing: float = 0.3   # Analyser bin smoothing
    frame_rate: float = 60.0  # Samples per second pushed to the state machine


@dataclass
class RemoteConfig:
    """Control-plane connection tuning."""
    host: str = "127.0.0.1"
    poll_interval: float = 0.016  # ~60Hz
    handshake_timeout: float = 3.0


@dataclass
class ServerConfig:
    """Overlay server settings."""
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AvatarConfig:
    """
    Resolved configuration for one avatar session.

    Attributes:
        threshold: Talk sensitivity (0-100, lower triggers more easily)
        skin_color: Skin base colour ('#rrggbb')
        beard_color: Beard base colour ('#rrggbb')
        obs_mode: Start capture automatically, trying the OBS control plane first
        settings_visible: Show the settings panel in the overlay
        remote_port: OBS WebSocket port
        remote_password: OBS WebSocket password ('' = no authentication)
        remote_source_name: OBS input whose volume is polled
    """
    threshold: int = 30
    skin_color: str = "#f5d0c5"
    beard_color: str = "#2d2d2d"
    obs_mode: bool = False
    settings_visible: bool = False
    remote_port: str = "4455"
    remote_password: str = ""
    remote_source_name: str = "Mic/Aux"
    audio: AudioConfig = field(default_factory=AudioConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from a YAML file (config/config.yaml by default)."""
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def clamp_threshold(value: int) -> int:
    """Clamp a threshold into [0, 100]."""
    return max(0, min(100, int(value)))


def _color(value, default: str) -> str:
    if value is None:
        return default
    try:
        return normalize_hex(str(value))
    except ValueError:
        logger.warning(f"Ignoring invalid colour {value!r}, using {default}")
        return default


def resolve_config(raw: Optional[dict]) -> AvatarConfig:
    """
    Build an AvatarConfig from the parsed YAML dict.

    Missing sections and keys fall back to defaults.
    """
    raw = raw or {}
    avatar = raw.get("avatar", {}) or {}
    remote = raw.get("remote", {}) or {}
    audio = raw.get("audio", {}) or {}
    server = raw.get("server", {}) or {}
    logging_config = raw.get("logging", {}) or {}

    defaults = AvatarConfig()

    return AvatarConfig(
        threshold=clamp_threshold(avatar.get("threshold", defaults.threshold)),
        skin_color=_color(avatar.get("skin_color"), defaults.skin_color),
        beard_color=_color(avatar.get("beard_color"), defaults.beard_color),
        obs_mode=bool(remote.get("enabled", defaults.obs_mode)),
        settings_visible=bool(avatar.get("settings_visible", defaults.settings_visible)),
        remote_port=str(remote.get("port", defaults.remote_port)),
        remote_password=str(remote.get("password") or ""),
        remote_source_name=str(remote.get("source_name", defaults.remote_source_name)),
        audio=AudioConfig(
            sample_rate=int(audio.get("sample_rate", 48000)),
            device=audio.get("device"),
            fft_size=int(audio.get("fft_size", 256)),
            smoothing=float(audio.get("smoothing", 0.3)),
            frame_rate=float(audio.get("frame_rate", 60.0)),
        ),
        remote=RemoteConfig(
            host=str(remote.get("host", "127.0.0.1")),
            poll_interval=float(remote.get("poll_interval", 0.016)),
            handshake_timeout=float(remote.get("handshake_timeout", 3.0)),
        ),
        server=ServerConfig(
            host=str(server.get("host", "127.0.0.1")),
            port=int(server.get("port", 8000)),
        ),
        log_level=str(logging_config.get("level", "INFO")).upper(),
    )


def apply_query_params(config: AvatarConfig, query: str) -> AvatarConfig:
    """
    Apply URL-style overrides and return a new AvatarConfig.

    Example: 'threshold=40&skin=f5d0c5&beard=2d2d2d&obs=true&settings=true'

    Unknown parameters are ignored; invalid values are skipped with a warning.
    """
    params = {k: v[-1] for k, v in parse_qs(query.lstrip('?')).items()}
    updates = {}

    if "threshold" in params:
        try:
            updates["threshold"] = clamp_threshold(int(params["threshold"]))
        except ValueError:
            logger.warning(f"Ignoring invalid threshold {params['threshold']!r}")

    if "skin" in params:
        updates["skin_color"] = _color(params["skin"], config.skin_color)
    if "beard" in params:
        updates["beard_color"] = _color(params["beard"], config.beard_color)

    # Flags are only switched on by the literal 'true', like the overlay page
    if "obs" in params:
        updates["obs_mode"] = params["obs"] == "true"
    if "settings" in params:
        updates["settings_visible"] = params["settings"] == "true"

    if "port" in params:
        if params["port"].isdigit():
            updates["remote_port"] = params["port"]
        else:
            logger.warning(f"Ignoring invalid port {params['port']!r}")
    if "password" in params:
        updates["remote_password"] = params["password"]
    if "source" in params:
        updates["remote_source_name"] = params["source"]

    return replace(config, **updates)
