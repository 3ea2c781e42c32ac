"""Entry store: persistence round trips, migration, failure handling."""

import json
import logging
import os

import pytest

from dream_journal.errors import EntryNotFound, StorageError, ValidationError
from dream_journal.models import ChatMessage, DreamAnalysis, DreamEntry
from dream_journal.serializers import STORAGE_VERSION, strip_markup
from dream_journal.store import EntryStore, FileStorage


def reload(storage):
    return EntryStore(storage).load()


class TestRoundTrip:

    def test_empty_storage_loads_empty(self, store):
        assert store.load() == []

    @pytest.mark.parametrize("rating", [1, 2, 3, 4, 5])
    def test_ratings_survive_reload(self, storage, store, rating):
        store.create("Rating", "content", lucidity_level=rating, mood_level=rating, clarity=rating)
        [entry] = reload(storage)
        assert (entry.lucidity_level, entry.mood_level, entry.clarity) == (rating, rating, rating)

    def test_collection_equal_after_reload(self, storage, store):
        entries = [
            DreamEntry(title="Flying", content="Over a city", emotions=["Joy", "Wonder"], tags=["lucid"]),
            DreamEntry(title="Falling", content="Down a well", mood_level=1, show_in_journal=False),
        ]
        assert store.save(entries) is True
        assert reload(storage) == entries

    def test_payload_is_versioned_camel_case(self, storage, store):
        store.create("t", "c")
        payload = json.loads(storage.get_item(store.key))
        assert payload["version"] == STORAGE_VERSION
        record = payload["entries"][0]
        assert "lucidityLevel" in record
        assert "showInJournal" in record
        assert isinstance(record["date"], str)

    def test_analysis_survives_reload(self, storage, store):
        entry = store.create("Chase", "Something chased me")
        messages = (
            ChatMessage(text="Something chased me", is_user=True),
            ChatMessage(text="Being chased often points to avoidance.", is_user=False),
        )
        store.attach_analysis(entry.id, DreamAnalysis(messages=messages))

        [loaded] = reload(storage)
        assert len(loaded.analysis.messages) == 2
        assert all(loaded.analysis.last_updated >= m.timestamp for m in loaded.analysis.messages)
        assert loaded.analysis.messages[0].is_user is True
        assert loaded.analysis.messages[1].is_user is False


class TestLifecycle:

    def test_archive_keeps_entry(self, store):
        first = store.create("one", "1")
        store.create("two", "2")
        store.archive(first.id)
        assert len(store) == 2
        assert store.get(first.id).show_in_journal is False

    def test_restore(self, store):
        entry = store.create("one", "1")
        store.archive(entry.id)
        store.restore(entry.id)
        assert store.get(entry.id).show_in_journal is True

    def test_delete_removes_exactly_one(self, store):
        keep = store.create("keep", "k")
        gone = store.create("gone", "g")
        store.delete(gone.id)
        assert [e.id for e in store.entries] == [keep.id]

    def test_delete_unknown_raises(self, store):
        with pytest.raises(EntryNotFound):
            store.delete("missing")

    def test_new_entries_first(self, store):
        store.create("older", "o")
        newer = store.create("newer", "n")
        assert store.entries[0].id == newer.id

    def test_patch_clamps_and_keeps_identity(self, store):
        entry = store.create("t", "c")
        patched = store.patch(entry.id, mood_level=42)
        assert patched.mood_level == 5
        assert patched.date == entry.date

    def test_patch_rejects_bad_rating(self, store):
        entry = store.create("t", "c")
        with pytest.raises(ValidationError):
            store.patch(entry.id, clarity="very")

    def test_duplicate_ids_rejected(self, store):
        entry = DreamEntry(title="t", content="c")
        with pytest.raises(ValidationError):
            store.save([entry, entry])

    def test_on_change_receives_snapshot(self, storage):
        seen = []
        store = EntryStore(storage, on_change=seen.append)
        entry = store.create("t", "c")
        assert seen == [(entry,)]


class TestSanitizing:

    def test_markup_stripped_before_write(self, storage, store):
        store.create("<b>Bold</b> title", "<script>alert(1)</script>I was flying")
        [entry] = reload(storage)
        assert entry.title == "Bold title"
        assert entry.content == "alert(1)I was flying"

    def test_strip_markup_nested(self):
        assert strip_markup({"a": ["<i>x</i>", 3], "b": "1 < 2"}) == {"a": ["x", 3], "b": "1 < 2"}

    def test_snapshot_matches_what_reloads(self, storage, store):
        store.save([DreamEntry(id="m1", title="<b>Bold</b> title", content="<i>flying</i>", tags=["<u>x</u>"])])
        [entry] = store.entries
        assert (entry.title, entry.content, entry.tags) == ("Bold title", "flying", ("x",))
        assert reload(storage) == [entry]

    def test_create_returns_stored_entry(self, store):
        entry = store.create("<b>Flying</b>", "over a city")
        assert entry.title == "Flying"
        assert store.get(entry.id) is entry


class TestFailures:

    def test_corrupt_payload_loads_empty(self, storage, store, caplog):
        storage.set_item(store.key, "{not json")
        with caplog.at_level(logging.ERROR):
            assert store.load() == []
        assert "Could not load journal entries" in caplog.text

    def test_unknown_version_loads_empty(self, storage, store):
        storage.set_item(store.key, json.dumps({"version": 99, "entries": []}))
        assert store.load() == []

    def test_undecodable_bytes_load_empty(self, storage, store):
        storage.directory.mkdir(parents=True, exist_ok=True)
        storage.path_for(store.key).write_bytes(b"\xff\xfe[not utf8")
        assert store.load() == []

    @pytest.mark.parametrize("field, value", [
        ("tags", 5),
        ("emotions", 3.5),
        ("lucidityLevel", "abc"),
        ("analysis", {"messages": 3}),
        ("date", [2024]),
    ])
    def test_wrongly_typed_field_loads_empty(self, storage, store, field, value):
        record = {"id": "a1", "title": "t", "content": "c", field: value}
        storage.set_item(store.key, json.dumps({"version": STORAGE_VERSION, "entries": [record]}))
        assert store.load() == []

    @pytest.mark.parametrize("operation", ["archive", "restore", "delete"])
    def test_failed_write_raises_from_lifecycle(self, storage, store, monkeypatch, operation):
        original = store.create("original", "kept")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(StorageError):
            getattr(store, operation)(original.id)
        with pytest.raises(StorageError):
            store.create("new", "lost")
        monkeypatch.undo()

        assert store.entries == (original,)
        assert reload(storage) == [original]

    def test_failed_write_keeps_previous_document(self, storage, store, monkeypatch):
        original = store.create("original", "kept")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        assert store.save([DreamEntry(title="new", content="lost")]) is False
        monkeypatch.undo()

        assert store.entries == (original,)
        assert reload(storage) == [original]
        leftovers = [p.name for p in storage.directory.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []


class TestMigration:

    def test_legacy_list_gets_defaults(self, storage, store):
        legacy = [
            {"id": "a1", "title": "Old dream", "content": "A house", "date": "2024-03-01T08:00:00.000Z"},
            {
                "id": "b2",
                "title": "History draft",
                "content": "A forest",
                "timestamp": "2024-03-02T09:30:00.000Z",
                "messages": [],
                "text": "",
                "isUser": False,
            },
        ]
        storage.set_item(store.key, json.dumps(legacy))

        entries = {entry.id: entry for entry in store.load()}
        old = entries["a1"]
        assert old.tags == () and old.emotions == ()
        assert old.show_in_journal is True
        assert (old.lucidity_level, old.mood_level, old.clarity) == (1, 3, 3)
        assert entries["b2"].date.day == 2

    def test_migrated_data_saved_in_current_layout(self, storage, store):
        storage.set_item(store.key, json.dumps([{"id": "a1", "title": "t", "content": "c"}]))
        store.save(store.load())
        payload = json.loads(storage.get_item(store.key))
        assert payload["version"] == STORAGE_VERSION
        assert payload["entries"][0]["tags"] == []


class TestFileStorage:

    def test_missing_key_is_none(self, tmp_path):
        assert FileStorage(tmp_path).get_item("nothing") is None

    def test_set_then_get(self, tmp_path):
        storage = FileStorage(tmp_path / "nested")
        storage.set_item("k", "value")
        assert storage.get_item("k") == "value"
        storage.remove_item("k")
        assert storage.get_item("k") is None
