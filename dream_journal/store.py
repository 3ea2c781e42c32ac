import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from .errors import EntryNotFound, StorageError, ValidationError
from .models import DreamAnalysis, DreamEntry
from .serializers import deserialize_entries, sanitize_entry, serialize_entries

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "journalEntries"


class FileStorage:
    """Key/value storage with one JSON document per key inside ``directory``.

    ``set_item`` replaces the document atomically: the new text is written to
    a temporary file next to it and moved over the old one, so a reader sees
    either the old document or the new one, never a partial write.
    """

    def __init__(self, directory):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        if not key or os.sep in key or key.startswith("."):
            raise StorageError(f"Invalid storage key {key!r}")
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_name)

    def remove_item(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e


class EntryStore:
    """Owns the canonical collection of dream entries.

    Readers get immutable snapshots (``entries``). Every mutation builds a
    whole new collection and goes through ``save``; ``on_change`` is called
    with the new snapshot after it has been persisted.
    """

    def __init__(
        self,
        storage: FileStorage,
        key: str = DEFAULT_STORAGE_KEY,
        on_change: Optional[Callable[[Tuple[DreamEntry, ...]], None]] = None,
    ):
        self.storage = storage
        self.key = key
        self.on_change = on_change
        self._entries: Tuple[DreamEntry, ...] = ()

    @property
    def entries(self) -> Tuple[DreamEntry, ...]:
        return self._entries

    def __len__(self):
        return len(self._entries)

    def get(self, entry_id: str) -> DreamEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFound(entry_id)

    # -------- repository ---------

    def load(self) -> List[DreamEntry]:
        """Read the persisted collection. Never raises; falls back to an empty list."""
        try:
            text = self.storage.get_item(self.key)
            entries = deserialize_entries(text) if text else []
            _check_unique_ids(entries)
        except (StorageError, ValidationError):
            logger.exception("Could not load journal entries from %r", self.key)
            entries = []
        self._entries = tuple(entries)
        logger.info("Loaded %d journal entries", len(entries))
        return list(entries)

    def save(self, entries: Iterable[DreamEntry]) -> bool:
        """Persist ``entries`` as the whole collection.

        Returns False when the write failed; the previous document and the
        in-memory snapshot are left as they were. On success the snapshot
        holds the entries as they will read back, markup stripped.
        """
        entries = tuple(entries)
        _check_unique_ids(entries)
        try:
            stored = tuple(sanitize_entry(entry) for entry in entries)
            self.storage.set_item(self.key, serialize_entries(stored))
        except StorageError:
            logger.exception("Could not save %d journal entries", len(entries))
            return False

        self._entries = stored
        if self.on_change is not None:
            self.on_change(stored)
        return True

    replace = save

    def _commit(self, entries: Iterable[DreamEntry]) -> None:
        if not self.save(entries):
            raise StorageError(f"Could not write journal entries to {self.key!r}")

    def patch(self, entry_id: str, **changes) -> DreamEntry:
        current = self.get(entry_id)
        try:
            updated = current.updated(**changes)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e
        self._commit(updated if entry.id == entry_id else entry for entry in self._entries)
        return self.get(entry_id)

    # -------- lifecycle ---------

    def create(self, title: str, content: str, **fields) -> DreamEntry:
        try:
            entry = DreamEntry(title=title, content=content, **fields)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e
        if any(existing.id == entry.id for existing in self._entries):
            raise ValidationError(f"Duplicate entry id {entry.id!r}")
        self._commit((entry,) + self._entries)
        return self.get(entry.id)

    def archive(self, entry_id: str) -> DreamEntry:
        return self.patch(entry_id, show_in_journal=False)

    def restore(self, entry_id: str) -> DreamEntry:
        return self.patch(entry_id, show_in_journal=True)

    def attach_analysis(self, entry_id: str, analysis: DreamAnalysis) -> DreamEntry:
        return self.patch(entry_id, analysis=analysis)

    def delete(self, entry_id: str) -> None:
        """Remove the entry permanently."""
        self.get(entry_id)
        self._commit(entry for entry in self._entries if entry.id != entry_id)


def _check_unique_ids(entries) -> None:
    seen = set()
    for entry in entries:
        if entry.id in seen:
            raise ValidationError(f"Duplicate entry id {entry.id!r}")
        seen.add(entry.id)
