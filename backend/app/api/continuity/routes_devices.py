"""Device registry routes."""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from app.api.deps import get_current_user_id, get_delivery_service, get_registry_service
from app.domain.common.types import to_epoch_ms
from app.domain.continuity.models import ActiveDevice, Device, DeviceState
from app.domain.continuity.services import DeviceRegistryService, NotificationDeliveryService

router = APIRouter()


class RegisterDeviceRequest(BaseModel):
    """Register (or re-register) a device; optional context makes it a heartbeat too."""
    device_id: str
    device_type: Optional[str] = None  # desktop | mobile | tablet | unknown; detected from User-Agent if omitted
    device_name: Optional[str] = None
    browser_info: Optional[str] = None
    current_context: Optional[Any] = None


class HeartbeatRequest(BaseModel):
    """Heartbeat request."""
    device_id: str
    current_context: Optional[Any] = None
    connection_id: Optional[str] = None


class DeviceResponse(BaseModel):
    """Device listing item."""
    device_id: str
    device_type: str
    device_name: Optional[str] = None
    last_heartbeat: int  # ms since epoch
    is_active: bool
    current_context: Optional[Any] = None


class DeviceStateResponse(BaseModel):
    """One device's stored state. is_stale is true once liveness has lapsed."""
    device_id: str
    device_type: str
    device_name: Optional[str] = None
    current_context: Optional[Any] = None
    connection_id: Optional[str] = None
    last_heartbeat: int  # ms since epoch
    is_active: bool
    is_stale: bool


class TransferSessionRequest(BaseModel):
    """Hand the session of from_device over to to_device."""
    from_device: str
    to_device: str


class TransferSessionResponse(BaseModel):
    """The session_transferred event queued for the target device."""
    event_id: str
    from_device: str
    to_device: str
    source: str  # snapshot | heartbeat
    context: Optional[Any] = None
    transferred_at: int  # ms since epoch


class ConnectionResponse(BaseModel):
    """Polling parameters for a newly connected device."""
    connection_id: str
    device_id: str
    poll_interval_ms: int
    lookback_seconds: int
    page_size: int


def _device_response(device: Device | ActiveDevice, is_active: bool) -> DeviceResponse:
    return DeviceResponse(
        device_id=device.device_id,
        device_type=device.device_type.value,
        device_name=device.device_name,
        last_heartbeat=to_epoch_ms(device.last_heartbeat),
        is_active=is_active,
        current_context=device.current_context,
    )


@router.post("", response_model=DeviceResponse)
async def register_device(
    request: RegisterDeviceRequest,
    user_agent: Optional[str] = Header(default=None),
    sec_ch_ua_mobile: Optional[str] = Header(default=None),
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistryService = Depends(get_registry_service),
):
    """Register a device for the current user (idempotent)."""
    device = await registry.register_device(
        user_id,
        request.device_id,
        device_type=request.device_type,
        device_name=request.device_name,
        browser_info=request.browser_info,
        user_agent=user_agent,
        mobile_hint=sec_ch_ua_mobile,
    )
    if request.current_context is not None:
        device = await registry.send_heartbeat(user_id, request.device_id, current_context=request.current_context)
    return _device_response(device, registry.is_live(device))


@router.post("/heartbeat", response_model=DeviceResponse)
async def send_heartbeat(
    request: HeartbeatRequest,
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistryService = Depends(get_registry_service),
):
    """Refresh liveness (auto-registers unknown devices)."""
    device = await registry.send_heartbeat(
        user_id,
        request.device_id,
        current_context=request.current_context,
        connection_id=request.connection_id,
    )
    return _device_response(device, registry.is_live(device))


@router.get("", response_model=list[DeviceResponse])
async def list_devices(
    include_inactive: bool = False,
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistryService = Depends(get_registry_service),
):
    """Active devices of the current user, most recent heartbeat first."""
    devices = await registry.get_active_devices(user_id, include_inactive=include_inactive)
    return [_device_response(d, d.is_active) for d in devices]


@router.post("/transfer", response_model=TransferSessionResponse)
async def transfer_session(
    request: TransferSessionRequest,
    user_id: str = Depends(get_current_user_id),
    delivery: NotificationDeliveryService = Depends(get_delivery_service),
):
    """Package from_device's latest state and notify to_device."""
    event = await delivery.transfer_session(user_id, request.from_device, request.to_device)
    package = event.event_data
    return TransferSessionResponse(
        event_id=event.id,
        from_device=package["from_device"],
        to_device=package["to_device"],
        source=package["source"],
        context=package["context"],
        transferred_at=package["transferred_at"],
    )


@router.get("/{device_id}/state", response_model=DeviceStateResponse)
async def get_device_state(
    device_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistryService = Depends(get_registry_service),
):
    """Stored state of one device (404 when the device is unknown)."""
    state: DeviceState = await registry.get_device_state(user_id, device_id)
    return DeviceStateResponse(
        device_id=state.device_id,
        device_type=state.device_type.value,
        device_name=state.device_name,
        current_context=state.current_context,
        connection_id=state.connection_id,
        last_heartbeat=to_epoch_ms(state.last_heartbeat),
        is_active=state.is_active,
        is_stale=state.is_stale,
    )


@router.post("/{device_id}/connect", response_model=ConnectionResponse)
async def connect_device(
    device_id: str,
    user_id: str = Depends(get_current_user_id),
    delivery: NotificationDeliveryService = Depends(get_delivery_service),
):
    """Open a polling connection: heartbeat plus the polling parameters to use."""
    info = await delivery.open_connection(user_id, device_id)
    return ConnectionResponse(**info.model_dump())


@router.post("/{device_id}/disconnect")
async def disconnect_device(
    device_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: DeviceRegistryService = Depends(get_registry_service),
):
    """Mark a device inactive until its next heartbeat."""
    await registry.disconnect(user_id, device_id)
    return {"ok": True}
