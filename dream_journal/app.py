import logging
from typing import Optional, Tuple

from dream_api.core.config import Settings

from .analysis_client import AnalysisClient
from .containers import AnalysisContainer, ChatContainer, Container, HistoryContainer, JournalContainer
from .signals import SignalBus, Subscription, View, ViewSwitch
from .store import DEFAULT_STORAGE_KEY, EntryStore, FileStorage

logger = logging.getLogger(__name__)


class DreamJournalApp:
    """Wires the store, the signal bus and the views together."""

    def __init__(self, storage: FileStorage, client: AnalysisClient, key: str = DEFAULT_STORAGE_KEY):
        self.bus = SignalBus()
        self.store = EntryStore(storage, key, on_change=self.bus.publish_entries)

        update = self.store.save
        self.chat = ChatContainer(self.bus, client, update)
        self.journal = JournalContainer(self.bus, update)
        self.history = HistoryContainer(self.bus, update)
        self.insights = AnalysisContainer(self.bus)

        self.active_view = View.JOURNAL
        self._navigation: Optional[Subscription] = None

    @classmethod
    def from_env(cls) -> "DreamJournalApp":
        settings = Settings.from_env()
        client = AnalysisClient(settings.api_url, settings.request_timeout)
        return cls(FileStorage(settings.storage_dir), client, settings.storage_key)

    @property
    def containers(self) -> Tuple[Container, ...]:
        return (self.chat, self.journal, self.history, self.insights)

    @property
    def started(self) -> bool:
        return self._navigation is not None

    def start(self) -> None:
        if self.started:
            return
        self.store.load()
        for container in self.containers:
            container.mount()
        self._navigation = self.bus.view_switch.connect(self._on_view_switch)
        self.bus.publish_entries(self.store.entries)

    def stop(self) -> None:
        if self._navigation is not None:
            self._navigation.cancel()
            self._navigation = None
        for container in self.containers:
            container.unmount()

    def navigate(self, view: View) -> None:
        self.active_view = View(view)

    def _on_view_switch(self, switch: ViewSwitch) -> None:
        logger.debug("Switching to %s view", switch.view.value)
        self.navigate(switch.view)
