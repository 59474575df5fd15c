"""Common domain types."""
from datetime import datetime, timezone
from typing import Any, Callable, Union
from uuid import uuid4

from app.domain.common.errors import ValidationError

# Opaque application payload: anything json.dumps accepts.
JsonValue = Union[dict[str, Any], list[Any], str, int, float, bool, None]

Clock = Callable[[], datetime]


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid4())


def utcnow() -> datetime:
    """Naive UTC now; store columns are DateTime without time zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_ms(value: datetime | None) -> int:
    """Naive UTC datetime -> ms since epoch (0 when missing)."""
    if value is None:
        return 0
    return int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """ms since epoch -> naive UTC datetime. Out-of-range values raise ValidationError."""
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (ValueError, OverflowError, OSError) as e:
        raise ValidationError(f"timestamp out of range: {value}") from e
