"""
Codec for the persisted journal payload.

Layout written today::

    {"version": 1, "entries": [{"id": ..., "date": "2026-...", ...}, ...]}

Version 0 is the bare list of entries the first releases stored, without
tags, ratings or archive flags. ``migrate`` upgrades any known version to the
current one; it runs once per load so nothing else has to fill defaults.
"""
import json
import re
from typing import Any, Dict, Iterable, List

from pydantic import ValidationError as PydanticValidationError

from .errors import StorageError
from .models import DreamEntry

STORAGE_VERSION = 1

MARKUP_PATTERN = re.compile(r"<[^<>]*>")

# Keys the old entry type carried at top level that never meant anything there.
_LEGACY_STRAY_KEYS = ("messages", "text", "isUser", "timestamp", "lastUpdated")

_V0_DEFAULTS = {
    "title": "",
    "content": "",
    "emotions": [],
    "tags": [],
    "lucidityLevel": 1,
    "moodLevel": 3,
    "clarity": 3,
    "showInJournal": True,
}


def strip_markup(value: Any) -> Any:
    """Remove ``<...>`` fragments from every string inside ``value``."""
    if isinstance(value, str):
        return MARKUP_PATTERN.sub("", value)
    if isinstance(value, dict):
        return {key: strip_markup(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [strip_markup(item) for item in value]
    return value


def _migrate_v0_entry(record: Dict[str, Any]) -> Dict[str, Any]:
    entry = dict(record)
    # history drafts stored the creation time as "timestamp"
    if "date" not in entry and "timestamp" in entry:
        entry["date"] = entry["timestamp"]
    for key in _LEGACY_STRAY_KEYS:
        entry.pop(key, None)
    for key, default in _V0_DEFAULTS.items():
        if entry.get(key) is None:
            entry[key] = default
    return entry


def migrate(payload: Any) -> List[Dict[str, Any]]:
    """Bring a decoded payload of any known version to the current entry layout."""
    if isinstance(payload, list):
        version, records = 0, payload
    elif isinstance(payload, dict):
        version, records = payload.get("version"), payload.get("entries")
    else:
        raise StorageError(f"Unrecognised journal payload of type {type(payload).__name__}")

    if not isinstance(records, list):
        raise StorageError("Journal payload has no entry list")
    if not all(isinstance(record, dict) for record in records):
        raise StorageError("Journal payload contains a non-object entry")

    if version == 0:
        return [_migrate_v0_entry(record) for record in records]
    if version == STORAGE_VERSION:
        return list(records)
    raise StorageError(f"Unsupported journal payload version {version!r}")


def to_record(entry: DreamEntry) -> Dict[str, Any]:
    return entry.model_dump(mode="json", by_alias=True)


def sanitize_entry(entry: DreamEntry) -> DreamEntry:
    """The entry exactly as it will read back after being stored."""
    record = to_record(entry)
    clean = strip_markup(record)
    if clean == record:
        return entry
    try:
        return DreamEntry.model_validate(clean)
    except PydanticValidationError as e:
        raise StorageError(f"Entry {entry.id!r} is invalid once sanitized: {e}") from e


def serialize_entries(entries: Iterable[DreamEntry]) -> str:
    payload = {
        "version": STORAGE_VERSION,
        "entries": [to_record(entry) for entry in entries],
    }
    try:
        return json.dumps(strip_markup(payload), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Could not serialize journal entries: {e}") from e


def deserialize_entries(text: str) -> List[DreamEntry]:
    try:
        payload = json.loads(text)
    except ValueError as e:
        raise StorageError(f"Journal payload is not valid JSON: {e}") from e

    records = migrate(payload)
    try:
        return [DreamEntry.model_validate(record) for record in records]
    except (TypeError, ValueError) as e:
        # pydantic's ValidationError is a ValueError
        raise StorageError(f"Journal payload has an invalid entry: {e}") from e
