"""
Signal bus for cross-view notifications.

Views never hold references to each other. They connect handlers to the
typed signals of a shared ``SignalBus`` and keep the returned
``Subscription`` so they can disconnect when they unmount:

    subscription = bus.entries_changed.connect(self._on_entries_changed)
    ...
    subscription.cancel()

Handlers run synchronously, in connection order, on the caller's thread.
A handler that raises is logged and skipped; the remaining handlers still
run.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from .models import DreamEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class View(str, Enum):
    CHAT = "analysis"
    JOURNAL = "journal"
    HISTORY = "history"
    INSIGHTS = "insights"


@dataclass(frozen=True)
class EntrySelected:
    entry_id: str
    content: str


@dataclass(frozen=True)
class ViewSwitch:
    view: View


@dataclass(frozen=True)
class EntriesChanged:
    entries: Tuple[DreamEntry, ...]


class Subscription:
    """Handle returned by ``Signal.connect``. ``cancel`` may be called any number of times."""

    def __init__(self, signal: "Signal", handler: Callable):
        self._signal = signal
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._signal is not None and self in self._signal._subscriptions

    def cancel(self) -> None:
        if self._signal is not None:
            self._signal._disconnect(self)
            self._signal = None


class Signal(Generic[T]):
    def __init__(self, name: str):
        self.name = name
        self._subscriptions: List[Subscription] = []

    def __repr__(self):
        return f"<Signal {self.name} handlers={len(self._subscriptions)}>"

    @property
    def handler_count(self) -> int:
        return len(self._subscriptions)

    def connect(self, handler: Callable[[T], None]) -> Subscription:
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        return subscription

    def _disconnect(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def emit(self, payload: T) -> int:
        """Call every connected handler with ``payload``. Returns how many were called."""
        called = 0
        # handlers may connect or cancel while we dispatch
        for subscription in list(self._subscriptions):
            if subscription not in self._subscriptions:
                continue
            called += 1
            try:
                subscription.handler(payload)
            except Exception:
                logger.exception("Handler %r for signal %s failed", subscription.handler, self.name)
        return called


class SignalBus:
    """The three signals the journal views share."""

    def __init__(self):
        self.entry_selected: Signal[EntrySelected] = Signal("entry_selected")
        self.view_switch: Signal[ViewSwitch] = Signal("view_switch")
        self.entries_changed: Signal[EntriesChanged] = Signal("entries_changed")

    @property
    def signals(self) -> Tuple[Signal, ...]:
        return (self.entry_selected, self.view_switch, self.entries_changed)

    def request_analysis(self, entry: DreamEntry, view: Optional[View] = View.CHAT) -> None:
        """Select ``entry`` for analysis, then navigate.

        The selection is emitted first so every handler has applied it
        before anyone reacts to the navigation.
        """
        self.entry_selected.emit(EntrySelected(entry_id=entry.id, content=entry.content))
        if view is not None:
            self.view_switch.emit(ViewSwitch(view=view))

    def publish_entries(self, entries) -> None:
        self.entries_changed.emit(EntriesChanged(entries=tuple(entries)))
