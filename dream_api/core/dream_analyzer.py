import logging
from typing import List, Literal, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from .config import Settings

logger = logging.getLogger(__name__)

# Persona sent ahead of every conversation. Never shown in the chat transcript.
SYSTEM_PROMPT = (
    "You are an expert dream analyst and interpreter. Your role is to help users understand "
    "the deeper meaning, symbolism, and psychological significance of their dreams. Draw from "
    "various schools of dream interpretation including Jungian psychology, symbolism, and modern "
    "dream research. When analyzing dreams: 1) First acknowledge the dream and its emotional "
    "impact, 2) Identify key symbols and themes, 3) Explore possible interpretations while "
    "considering the dreamer's personal context, 4) Provide insights about what the dream might "
    "be revealing about their subconscious mind or current life situation. Be empathetic and "
    "insightful while maintaining a professional tone."
)

FALLBACK_REPLY = "I apologize, but I could not analyze the dream at this moment."


class UpstreamError(Exception):
    """The completion provider failed or could not be reached."""


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"] = Field(description="who said it; the system persona is added by the server")
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatTurn] = Field(min_length=1)


def build_messages(turns: Sequence[ChatTurn]) -> List[BaseMessage]:
    """Persona first, then the conversation in order."""
    messages: List[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
    for turn in turns:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.content))
        else:
            messages.append(AIMessage(content=turn.content))
    return messages


class DreamAnalyzer:
    def __init__(self, settings: Settings, llm=None):
        """Use ``llm`` when given, otherwise a ChatOpenAI client for the configured provider."""
        if llm is None:
            llm = ChatOpenAI(
                model=settings.chat_model,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                top_p=1,
                streaming=False,
                api_key=settings.groq_api_key,
                base_url=settings.provider_base_url,
            )
        self.llm = llm

    async def chat(self, turns: Sequence[ChatTurn]) -> str:
        """Continue the conversation and return the assistant's reply text."""
        messages = build_messages(turns)
        logger.info("Sending %d messages to the completion provider", len(messages))
        try:
            result = await self.llm.ainvoke(messages)
        except Exception as error:
            logger.error("Completion provider failed: %s", type(error).__name__)
            raise UpstreamError("Failed to analyze dream") from error

        content = getattr(result, "content", None)
        if not isinstance(content, str) or not content:
            logger.warning("Completion provider returned no text")
            return FALLBACK_REPLY
        return content
