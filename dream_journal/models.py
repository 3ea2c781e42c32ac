# models.py
import math
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationError

RATING_MIN = 1
RATING_MAX = 5

COMMON_EMOTIONS = (
    "Joy", "Fear", "Anxiety", "Peace",
    "Excitement", "Confusion", "Love",
    "Anger", "Sadness", "Wonder",
    "Frustration", "Loneliness",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """Naive timestamps from older data are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def clamp_rating(value) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError("rating must be a number between 1 and 5")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError("rating must be a number between 1 and 5")
    if math.isnan(number) or math.isinf(number):
        raise ValueError("rating must be a finite number")
    return max(RATING_MIN, min(RATING_MAX, int(round(number))))


def unique_labels(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError("labels must be a list of strings")
    labels = []
    for label in value:
        label = str(label).strip()
        if label and label not in labels:
            labels.append(label)
    return tuple(labels)


class _Record(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ChatMessage(_Record):
    text: str
    is_user: bool = Field(description="true when the human wrote the message, false for the AI")
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        return as_aware(value)


class DreamAnalysis(_Record):
    messages: Tuple[ChatMessage, ...] = ()
    last_updated: datetime = Field(default_factory=utcnow, validate_default=True)

    @field_validator("last_updated")
    @classmethod
    def _not_older_than_messages(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = as_aware(value)
        messages = info.data.get("messages") or ()
        if messages:
            newest = max(message.timestamp for message in messages)
            if newest > value:
                return newest
        return value


class DreamEntry(_Record):
    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    title: str
    content: str
    date: datetime = Field(default_factory=utcnow)
    lucidity_level: int = 1
    mood_level: int = 3
    clarity: int = 3
    emotions: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    show_in_journal: bool = True
    analysis: Optional[DreamAnalysis] = None

    @field_validator("lucidity_level", "mood_level", "clarity", mode="before")
    @classmethod
    def _clamp_rating(cls, value):
        return clamp_rating(value)

    @field_validator("emotions", "tags", mode="before")
    @classmethod
    def _unique_labels(cls, value):
        return unique_labels(value)

    @field_validator("date")
    @classmethod
    def _aware_date(cls, value: datetime) -> datetime:
        return as_aware(value)

    @property
    def archived(self) -> bool:
        return not self.show_in_journal

    def updated(self, **changes) -> "DreamEntry":
        """Return a re-validated copy with ``changes`` applied. ``id`` and ``date`` are fixed."""
        for fixed in ("id", "date"):
            if fixed in changes and changes[fixed] != getattr(self, fixed):
                raise ValidationError(f"{fixed} cannot be changed")
        data = self.model_dump()
        data.update(changes)
        return DreamEntry.model_validate(data)

    def __str__(self):
        return f'{self.title or "Untitled"} • {self.date:%Y-%m-%d}'
