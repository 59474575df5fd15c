"""Polling delivery routes: poll, heartbeat-via-poll, publish, acknowledge."""
import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_current_user_id, get_delivery_service
from app.domain.common.errors import ValidationError
from app.domain.common.types import from_epoch_ms, to_epoch_ms
from app.domain.continuity.models import DeviceNotification, PollResult
from app.domain.continuity.services import NotificationDeliveryService

logger = logging.getLogger(__name__)

router = APIRouter()


class EventResponse(BaseModel):
    """Delivered (or published) event."""
    id: str
    source_device: str
    target_device: Optional[str] = None
    event_type: str
    event_data: Any = None
    timestamp: int  # created_at, ms since epoch
    delivered: bool
    acknowledged: bool


class PollResponse(BaseModel):
    """One page of events. Poll again immediately while has_more is true."""
    events: list[EventResponse]
    has_more: bool
    next_check_timestamp: int  # pass back as last_check
    heartbeat: bool = False


class PollActionRequest(BaseModel):
    """POST /poll body. action=heartbeat refreshes liveness and polls in one round trip."""
    action: Literal["poll", "heartbeat", "acknowledge"] = "poll"
    device_id: Optional[str] = None
    last_check: Optional[int] = None  # ms since epoch
    current_context: Optional[Any] = None
    connection_id: Optional[str] = None
    event_ids: list[str] = []


class PublishEventRequest(BaseModel):
    """Publish an event for the user's other devices."""
    source_device: str
    event_type: str
    event_data: Any = None
    target_device: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    """Acknowledge request."""
    event_ids: list[str]


def _event_response(n: DeviceNotification) -> EventResponse:
    return EventResponse(
        id=n.id,
        source_device=n.source_device,
        target_device=n.target_device,
        event_type=n.event_type,
        event_data=n.event_data,
        timestamp=to_epoch_ms(n.created_at),
        delivered=n.delivered,
        acknowledged=n.acknowledged,
    )


def _poll_response(result: PollResult, heartbeat: bool = False) -> PollResponse:
    return PollResponse(
        events=[_event_response(e) for e in result.events],
        has_more=result.has_more,
        next_check_timestamp=to_epoch_ms(result.next_check_timestamp),
        heartbeat=heartbeat,
    )


@router.get("/poll", response_model=PollResponse)
async def poll(
    device_id: str,
    last_check: Optional[int] = None,
    user_id: str = Depends(get_current_user_id),
    delivery: NotificationDeliveryService = Depends(get_delivery_service),
):
    """Drain undelivered events from the user's other devices."""
    since = from_epoch_ms(last_check) if last_check is not None else None
    result = await delivery.poll(user_id, device_id, since)
    return _poll_response(result)


@router.post("/poll")
async def poll_action(
    request: PollActionRequest,
    user_id: str = Depends(get_current_user_id),
    delivery: NotificationDeliveryService = Depends(get_delivery_service),
):
    """Poll channel actions: poll, heartbeat (+poll), acknowledge."""
    if request.action == "acknowledge":
        count = await delivery.acknowledge(request.event_ids, user_id=user_id)
        return {"acknowledged_count": count}

    if not request.device_id:
        raise ValidationError("device_id is required")
    since = from_epoch_ms(request.last_check) if request.last_check is not None else None
    if request.action == "heartbeat":
        _, result = await delivery.heartbeat_and_poll(
            user_id,
            request.device_id,
            current_context=request.current_context,
            connection_id=request.connection_id,
            last_check=since,
        )
        return _poll_response(result, heartbeat=True)

    result = await delivery.poll(user_id, request.device_id, since)
    return _poll_response(result)


@router.post("/events", response_model=EventResponse)
async def publish_event(
    request: PublishEventRequest,
    user_id: str = Depends(get_current_user_id),
    delivery: NotificationDeliveryService = Depends(get_delivery_service),
):
    """Record an event for delivery to the user's other devices."""
    event = await delivery.publish_event(
        user_id,
        request.source_device,
        request.event_type,
        request.event_data,
        request.target_device,
    )
    return _event_response(event)


@router.post("/events/ack")
async def acknowledge_events(
    request: AcknowledgeRequest,
    user_id: str = Depends(get_current_user_id),
    delivery: NotificationDeliveryService = Depends(get_delivery_service),
):
    """Record client receipt of delivered events."""
    count = await delivery.acknowledge(request.event_ids, user_id=user_id)
    logger.debug("User %s acknowledged %d event(s)", user_id, count)
    return {"acknowledged_count": count}
