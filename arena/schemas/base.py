"""Base schemas shared by all API responses."""
from pydantic import BaseModel, ConfigDict, PlainSerializer
from datetime import datetime, UTC
from typing import Annotated


def serialize_datetime_utc(dt: datetime) -> str:
    """ISO 8601 with a ``Z`` suffix; naive values (SQLite) are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


# Datetime that always serializes as explicit UTC, in both python and json dumps
UTCDateTime = Annotated[datetime, PlainSerializer(serialize_datetime_utc, return_type=str)]


class BaseSchema(BaseModel):
    """ORM-readable base for API responses."""

    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
    )
