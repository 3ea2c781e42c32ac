import logging
from typing import Dict, List, Optional, Sequence

import httpx

from dream_api.core.config import Settings

from .errors import AnalysisFailed, ValidationError
from .models import ChatMessage

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/chat"


def to_chat_messages(transcript: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    return [
        {"role": "user" if message.is_user else "assistant", "content": message.text}
        for message in transcript
    ]


class AnalysisClient:
    """
    Client for the dream analysis service.

    The service puts the analyst persona in front of the transcript before it
    reaches the completion provider, so the transcript sent here only ever
    holds what the user and the AI actually said.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if base_url is None or timeout is None:
            settings = Settings.from_env()
            base_url = base_url or settings.api_url
            timeout = timeout or settings.request_timeout
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self._transport = transport

    async def analyze(self, transcript: Sequence[ChatMessage]) -> str:
        """Send ``transcript`` and return the reply text. One request, no retry."""
        if not transcript:
            raise ValidationError("Cannot analyze an empty transcript")

        payload = {"messages": to_chat_messages(transcript)}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(CHAT_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Analysis request failed: %s", e)
            raise AnalysisFailed("Could not reach the analysis service") from e

        if not response.is_success:
            logger.warning("Analysis service answered %s: %s", response.status_code, response.text[:200])
            raise AnalysisFailed(f"Analysis service answered {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise AnalysisFailed("Analysis service sent a non-JSON reply") from e

        content = None
        if isinstance(data, dict) and isinstance(data.get("response"), dict):
            content = data["response"].get("content")
        if not isinstance(content, str):
            raise AnalysisFailed("Analysis reply has no response content")
        return content
