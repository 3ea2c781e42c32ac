"""
View containers: the state behind the Journal, History, Chat and Insights
views.

A container never edits the entry collection. It builds the new collection
and hands it to the ``update`` callback it was given (the store's ``save``),
then learns about the result through the ``entries_changed`` signal like
every other view.
"""
import asyncio
import logging
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .analysis_client import AnalysisClient
from .errors import EntryNotFound, ValidationError
from .models import ChatMessage, DreamAnalysis, DreamEntry, RATING_MAX, RATING_MIN
from .session import ConversationSession, SessionState
from .signals import EntriesChanged, EntrySelected, SignalBus, Subscription

logger = logging.getLogger(__name__)

Update = Callable[[Iterable[DreamEntry]], bool]

TOP_EMOTIONS = 10


def newest_first(entries: Iterable[DreamEntry]) -> List[DreamEntry]:
    return sorted(entries, key=lambda entry: entry.date, reverse=True)


def dream_statistics(entries: Sequence[DreamEntry]) -> Dict:
    """Numbers behind the insights dashboard."""
    emotion_counts = Counter()
    for entry in entries:
        emotion_counts.update(entry.emotions)

    levels = range(RATING_MIN, RATING_MAX + 1)
    lucidity = [
        {"name": f"Level {level}", "value": sum(1 for e in entries if e.lucidity_level == level)}
        for level in levels
    ]
    mood = [
        {"name": f"Level {level}", "value": sum(1 for e in entries if e.mood_level == level)}
        for level in levels
    ]

    def average(field):
        if not entries:
            return None
        return round(sum(getattr(e, field) for e in entries) / len(entries), 1)

    return {
        "total_entries": len(entries),
        "emotions": [
            {"name": name, "value": count}
            for name, count in emotion_counts.most_common(TOP_EMOTIONS)
        ],
        "lucidity": lucidity,
        "mood": mood,
        "average_lucidity": average("lucidity_level"),
        "average_mood": average("mood_level"),
        "average_clarity": average("clarity"),
        "unique_emotions": len(emotion_counts),
    }


class Container:
    """Base for views that listen on the signal bus while mounted."""

    def __init__(self, bus: SignalBus, entries: Iterable[DreamEntry] = ()):
        self.bus = bus
        self._entries: Tuple[DreamEntry, ...] = tuple(entries)
        self._subscriptions: List[Subscription] = []

    @property
    def mounted(self) -> bool:
        return bool(self._subscriptions)

    def mount(self) -> None:
        if self.mounted:
            return
        self._subscriptions = self.connect()

    def unmount(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def connect(self) -> List[Subscription]:
        return [self.bus.entries_changed.connect(self.on_entries_changed)]

    def on_entries_changed(self, changed: EntriesChanged) -> None:
        self._entries = changed.entries

    def find(self, entry_id: str) -> DreamEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFound(entry_id)

    def _replaced(self, updated: DreamEntry) -> List[DreamEntry]:
        return [updated if entry.id == updated.id else entry for entry in self._entries]


class JournalContainer(Container):
    def __init__(self, bus: SignalBus, update: Update, entries: Iterable[DreamEntry] = ()):
        super().__init__(bus, entries)
        self.update = update

    @property
    def entries(self) -> List[DreamEntry]:
        return newest_first(entry for entry in self._entries if entry.show_in_journal)

    def create_entry(
        self,
        title: str,
        content: str,
        emotions: Iterable[str] = (),
        lucidity_level: int = 1,
        mood_level: int = 3,
        clarity: int = 3,
        tags: Iterable[str] = (),
    ) -> DreamEntry:
        if not title.strip() or not content.strip():
            raise ValidationError("A dream entry needs a title and a description")
        entry = DreamEntry(
            title=title,
            content=content,
            emotions=tuple(emotions),
            lucidity_level=lucidity_level,
            mood_level=mood_level,
            clarity=clarity,
            tags=tuple(tags),
        )
        self.update((entry,) + self._entries)
        return entry

    def archive(self, entry_id: str) -> DreamEntry:
        entry = self.find(entry_id).updated(show_in_journal=False)
        self.update(self._replaced(entry))
        return entry

    def analyze(self, entry_id: str) -> None:
        self.bus.request_analysis(self.find(entry_id))


class HistoryContainer(Container):
    def __init__(self, bus: SignalBus, update: Update, entries: Iterable[DreamEntry] = ()):
        super().__init__(bus, entries)
        self.update = update

    @property
    def entries(self) -> List[DreamEntry]:
        return newest_first(self._entries)

    @property
    def archived(self) -> List[DreamEntry]:
        return [entry for entry in self.entries if not entry.show_in_journal]

    def restore(self, entry_id: str) -> DreamEntry:
        entry = self.find(entry_id).updated(show_in_journal=True)
        self.update(self._replaced(entry))
        return entry

    def delete(self, entry_id: str) -> None:
        self.find(entry_id)
        self.update(entry for entry in self._entries if entry.id != entry_id)

    def analyze(self, entry_id: str) -> None:
        self.bus.request_analysis(self.find(entry_id))


class ChatContainer(Container):
    """Chat view. Follows ``entry_selected`` and drives a ConversationSession."""

    def __init__(
        self,
        bus: SignalBus,
        client: AnalysisClient,
        update: Update,
        entries: Iterable[DreamEntry] = (),
    ):
        super().__init__(bus, entries)
        self.update = update
        self.session = ConversationSession(client, on_save=self._attach_analysis)
        self._pending = set()

    def connect(self) -> List[Subscription]:
        return super().connect() + [self.bus.entry_selected.connect(self.on_entry_selected)]

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return self.session.messages

    @property
    def loading(self) -> bool:
        return self.session.busy

    def on_entry_selected(self, selected: EntrySelected) -> None:
        self.session.select_entry(selected.entry_id, selected.content)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, entry %s waits for resume()", selected.entry_id)
            return
        task = loop.create_task(self.session.exchange())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def resume(self) -> Optional[ChatMessage]:
        if self.session.state == SessionState.SEEDED:
            return await self.session.exchange()
        return None

    async def wait_idle(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def send(self, text: str) -> Optional[ChatMessage]:
        return await self.session.send(text)

    def new_chat(self) -> None:
        self.session.new_chat()

    def save(self) -> DreamAnalysis:
        return self.session.save()

    def _attach_analysis(self, entry_id: str, analysis: DreamAnalysis) -> None:
        entry = self.find(entry_id).updated(analysis=analysis)
        self.update(self._replaced(entry))


class AnalysisContainer(Container):
    """Insights dashboard over every entry, archived ones included."""

    def __init__(self, bus: SignalBus, entries: Iterable[DreamEntry] = ()):
        super().__init__(bus, entries)
        self.statistics = dream_statistics(self._entries)

    def on_entries_changed(self, changed: EntriesChanged) -> None:
        super().on_entries_changed(changed)
        self.statistics = dream_statistics(self._entries)
