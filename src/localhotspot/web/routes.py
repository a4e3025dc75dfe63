"""
API routes for the localhotspot web interface.
"""

import asyncio
from concurrent.futures import Future
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from localhotspot.builder import check_credentials
from localhotspot.config import (
    DEFAULT_CONFIG_PATH,
    Band,
    ControllerSettings,
    MacRandomization,
    SecurityMode,
    load_config,
)
from localhotspot.controller import LifecycleController, Outcome, TetherResult
from localhotspot.notification import LoggingNotificationBackend, TetherNotifier
from localhotspot.service import create_controller

router = APIRouter()


def _load_initial_settings() -> ControllerSettings:
    """Load settings from file or use defaults."""
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ControllerSettings()


# Global settings and controller
_settings = _load_initial_settings()
_controller: Optional[LifecycleController] = None


def _get_controller() -> LifecycleController:
    """Get or create the global lifecycle controller."""
    global _controller
    if _controller is None:
        _controller = create_controller(_settings)
        TetherNotifier(
            LoggingNotificationBackend(),
            title=_settings.notification_title,
            message=_settings.notification_message,
            notification_id=_settings.notification_id,
        ).attach(_controller)
    return _controller


def set_controller(controller: LifecycleController) -> None:
    """Replace the global controller (for testing)."""
    global _controller
    reset_controller()
    _controller = controller


def reset_controller() -> None:
    """Shut down and forget the global controller."""
    global _controller
    if _controller is not None:
        _controller.close()
    _controller = None


class StatusResponse(BaseModel):
    """Current access point status."""

    active: bool
    state: str
    ssid: Optional[str]
    security_mode: Optional[str]
    band: Optional[int]
    channel: Optional[int]


class StartRequest(BaseModel):
    """Access point start request."""

    ssid: str = ""
    password: str = ""
    security_mode: SecurityMode = SecurityMode.WPA2_PSK
    band: int = Band.GHZ_2
    channel: Optional[int] = None
    auto_shutdown: bool = False
    mac_randomization: MacRandomization = MacRandomization.PERSISTENT


class ResultResponse(BaseModel):
    """Outcome of a start or stop request."""

    outcome: str
    ok: bool
    error: Optional[str]
    active: bool


def _wait_timeout() -> float:
    return _settings.start_timeout + 5


async def _wait(future: Future) -> TetherResult:
    try:
        return await asyncio.wait_for(asyncio.wrap_future(future), timeout=_wait_timeout())
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Timed out waiting for the radio") from None


def _result_response(result: TetherResult, controller: LifecycleController) -> ResultResponse:
    return ResultResponse(
        outcome=result.outcome.value,
        ok=result.ok,
        error=str(result.error) if result.error else None,
        active=controller.get_tether_state(),
    )


@router.get("/status", response_model=StatusResponse)
async def get_status() -> StatusResponse:
    """Get current access point status."""
    controller = _get_controller()
    config = controller.session_config
    return StatusResponse(
        active=controller.get_tether_state(),
        state=controller.state.value,
        ssid=config.ssid if config else None,
        security_mode=config.security_mode.value if config else None,
        band=int(config.band) if config else None,
        channel=config.channel if config else None,
    )


@router.post("/start", response_model=ResultResponse)
async def start_hotspot(request: StartRequest) -> ResultResponse:
    """Start the access point, replacing a running one."""
    error = check_credentials(request.ssid, request.password, request.security_mode)
    if error:
        raise HTTPException(status_code=400, detail=error)

    controller = _get_controller()
    future = controller.start_tethering(
        request.ssid,
        request.password,
        security_mode=request.security_mode,
        channel=request.channel,
        band=request.band,
        auto_shutdown=request.auto_shutdown,
        mac_randomization=request.mac_randomization,
    )
    result = await _wait(future)
    if result.outcome is Outcome.REJECTED:
        raise HTTPException(status_code=400, detail=str(result.error))
    return _result_response(result, controller)


@router.post("/stop", response_model=ResultResponse)
async def stop_hotspot() -> ResultResponse:
    """Stop the access point. Stopping a stopped access point succeeds."""
    controller = _get_controller()
    result = await _wait(controller.stop_tethering())
    return _result_response(result, controller)
