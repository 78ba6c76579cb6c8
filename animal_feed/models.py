"""Event and feed models shared by the producer, consumer and read API."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from .errors import EventValidationError

EVENT_TYPE = "animal_image"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_instant(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision and a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class ImageEvent(BaseModel):
    """A single image travelling from the producer to the feed. Immutable."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    image_url: str = Field(alias="imageUrl")
    timestamp: datetime = Field(default_factory=_utc_now)

    @field_validator("timestamp", mode="after")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are treated as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_instant(value)

    def is_valid(self) -> bool:
        """Return True when both id and image URL are non-blank."""
        return bool(self.id.strip()) and bool(self.image_url.strip())

    def to_payload(self) -> str:
        """Serialize to the JSON wire form used on the channel and in the feed list."""
        data = {"type": EVENT_TYPE, **self.model_dump(by_alias=True)}
        return json.dumps(data)


class FeedEntry(BaseModel):
    """Public projection of an ImageEvent."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    image_url: str = Field(alias="imageUrl")
    created_at: datetime = Field(alias="createdAt")

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_instant(value)

    @classmethod
    def from_event(cls, event: ImageEvent) -> "FeedEntry":
        return cls(id=event.id, image_url=event.image_url, created_at=event.timestamp)


class FeedPage(BaseModel):
    """One page of the feed plus paging metadata."""
    model_config = ConfigDict(populate_by_name=True)

    images: list[FeedEntry] = Field(default_factory=list)
    page: int
    size: int
    total_elements: int = Field(0, alias="totalElements")
    has_next: bool = Field(False, alias="hasNext")
    is_empty: bool = Field(True, alias="isEmpty")

    @classmethod
    def empty(cls, page: int, size: int) -> "FeedPage":
        """Well-formed page with no images, used when the feed cannot be read."""
        return cls(images=[], page=page, size=size, total_elements=0, has_next=False, is_empty=True)


def decode_event(raw: Any, trusted_types: Iterable[str] = (EVENT_TYPE,)) -> ImageEvent:
    """
    Decode a wire payload into an ImageEvent.

    Accepts bytes, str (JSON) or an already-parsed dict. The payload must be a
    JSON object with string `id` and `imageUrl` fields; an optional `type`
    tag must be one of `trusted_types`. Anything else raises
    EventValidationError. Blank values are allowed here and rejected later
    by ImageEvent.is_valid().
    """
    if isinstance(raw, ImageEvent):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EventValidationError("Payload is not valid UTF-8") from exc
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EventValidationError(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise EventValidationError(f"Expected a JSON object, got {type(raw).__name__}")

    type_tag = raw.get("type")
    if type_tag is not None and (not isinstance(type_tag, str) or type_tag not in set(trusted_types)):
        raise EventValidationError(f"Untrusted event type: {type_tag!r}")

    for field in ("id", "imageUrl"):
        if not isinstance(raw.get(field), str):
            raise EventValidationError(f"Field '{field}' is missing or not a string")

    fields = {k: raw[k] for k in ("id", "imageUrl", "timestamp") if k in raw and raw[k] is not None}
    try:
        return ImageEvent.model_validate(fields)
    except ValidationError as exc:
        raise EventValidationError(f"Invalid event payload: {exc}") from exc
