"""
HTTP Routes - REST API endpoints.

Provides health, configuration, threshold and microphone endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from .. import __version__
from ..utils.colors import beard_palette, skin_palette

router = APIRouter(tags=["API"])


class HealthResponse(BaseModel):
    status: str
    source: str
    talking: bool
    version: str


class ConfigResponse(BaseModel):
    threshold: int
    skin_color: str
    beard_color: str
    skin_palette: dict[str, str]
    beard_palette: dict[str, str]
    obs_mode: bool
    settings_visible: bool
    remote_source_name: str


class ThresholdRequest(BaseModel):
    threshold: int = Field(ge=0, le=100)


class ThresholdResponse(BaseModel):
    threshold: int


class MicrophoneResponse(BaseModel):
    started: bool
    source: str
    error: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns the active source and current talk state.
    """
    session = request.app.state.session
    return HealthResponse(
        status="error" if session.last_error else "ok",
        source=session.selection.value,
        talking=session.is_talking,
        version=__version__,
    )


@router.get("/config", response_model=ConfigResponse)
async def get_config(request: Request):
    """Current avatar configuration, including derived gradient stops."""
    config = request.app.state.session.config
    return ConfigResponse(
        threshold=config.threshold,
        skin_color=config.skin_color,
        beard_color=config.beard_color,
        skin_palette=skin_palette(config.skin_color),
        beard_palette=beard_palette(config.beard_color),
        obs_mode=config.obs_mode,
        settings_visible=config.settings_visible,
        remote_source_name=config.remote_source_name,
    )


@router.post("/threshold", response_model=ThresholdResponse)
async def set_threshold(body: ThresholdRequest, request: Request):
    """Change the talk threshold at runtime."""
    value = request.app.state.session.set_threshold(body.threshold)
    request.app.state.broadcaster.broadcast({"type": "threshold", "value": value})
    return ThresholdResponse(threshold=value)


@router.post("/microphone", response_model=MicrophoneResponse)
async def enable_microphone(request: Request):
    """Start local capture (the overlay's 'enable microphone' button)."""
    session = request.app.state.session
    started = await session.enable_microphone()
    error = session.last_error
    return MicrophoneResponse(
        started=started,
        source=session.selection.value,
        error=str(error) if error else None,
    )
