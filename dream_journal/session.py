"""
Conversation state for the analysis chat.

One session follows one dream entry at a time::

    IDLE --select_entry--> SEEDED --exchange--> AWAITING --reply--> READY
                                                   ^                  |
                                                   +------send--------+

``new_chat`` and ``select_entry`` are allowed in any state. Both bump the
generation counter, so a reply that arrives for an earlier generation is
dropped instead of landing in the wrong transcript.
"""
import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .errors import AnalysisFailed, InvalidTransition
from .models import ChatMessage, DreamAnalysis

logger = logging.getLogger(__name__)

# Only the most recent messages are sent back as context.
HISTORY_LIMIT = 10

ANALYSIS_ERROR_TEXT = "Sorry, I encountered an error while analyzing your dream. Please try again."
FOLLOW_UP_ERROR_TEXT = "Sorry, I encountered an error while processing your message. Please try again."


class SessionState(str, Enum):
    IDLE = "idle"
    SEEDED = "seeded"
    AWAITING = "awaiting"
    READY = "ready"


class ConversationSession:
    def __init__(self, client, on_save: Optional[Callable[[str, DreamAnalysis], None]] = None):
        self.client = client
        self.on_save = on_save
        self.state = SessionState.IDLE
        self.entry_id: Optional[str] = None
        self.generation = 0
        self._messages: List[ChatMessage] = []
        # error replies stay visible but are not sent back as context
        self._failed = set()

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def busy(self) -> bool:
        return self.state == SessionState.AWAITING

    def _reset(self) -> None:
        self.generation += 1
        self._messages = []
        self._failed = set()

    def new_chat(self) -> None:
        self._reset()
        self.entry_id = None
        self.state = SessionState.IDLE

    def select_entry(self, entry_id: str, content: str) -> None:
        self._reset()
        self.entry_id = entry_id
        self._messages.append(ChatMessage(text=content, is_user=True))
        self.state = SessionState.SEEDED

    async def open_entry(self, entry_id: str, content: str) -> Optional[ChatMessage]:
        self.select_entry(entry_id, content)
        return await self.exchange()

    async def send(self, text: str) -> Optional[ChatMessage]:
        if not text or not text.strip():
            return None
        if self.state not in (SessionState.IDLE, SessionState.READY):
            raise InvalidTransition(f"Cannot send a message while {self.state.value}")
        self._messages.append(ChatMessage(text=text, is_user=True))
        return await self.exchange(error_text=FOLLOW_UP_ERROR_TEXT)

    async def exchange(self, error_text: str = ANALYSIS_ERROR_TEXT) -> Optional[ChatMessage]:
        """Ask for a reply to the current transcript.

        Returns the appended AI message, or None when the reply went stale.
        """
        if self.state == SessionState.AWAITING:
            raise InvalidTransition("A reply is already pending")
        if not self._messages or not self._messages[-1].is_user:
            raise InvalidTransition("Nothing to analyze")

        generation = self.generation
        self.state = SessionState.AWAITING
        history = [message for message in self._messages if id(message) not in self._failed]
        failed = False
        try:
            text = await self.client.analyze(history[-HISTORY_LIMIT:])
        except AnalysisFailed as e:
            logger.warning("Dream analysis failed: %s", e)
            text, failed = error_text, True
        except Exception:
            logger.exception("Unexpected error from the analysis client")
            text, failed = error_text, True

        if generation != self.generation:
            logger.info("Discarding stale analysis reply for generation %d", generation)
            return None

        reply = ChatMessage(text=text, is_user=False)
        self._messages.append(reply)
        if failed:
            self._failed.add(id(reply))
        self.state = SessionState.READY
        return reply

    def to_analysis(self) -> DreamAnalysis:
        return DreamAnalysis(messages=tuple(self._messages))

    def save(self) -> DreamAnalysis:
        """Hand the transcript to ``on_save``. The transcript is kept."""
        if self.state != SessionState.READY or self.entry_id is None:
            raise InvalidTransition(f"Cannot save analysis while {self.state.value}")
        analysis = self.to_analysis()
        if self.on_save is not None:
            self.on_save(self.entry_id, analysis)
        return analysis
