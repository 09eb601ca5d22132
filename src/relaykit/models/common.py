"""Common models shared across components."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


class RelayModel(BaseModel):
    """Base model for all relaykit models."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_ms(moment: datetime | None = None) -> str:
    """Format a timestamp as ISO 8601 with millisecond precision and a Z suffix."""
    moment = moment or utcnow()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )
