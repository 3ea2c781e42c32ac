"""Stand-ins for the analysis service and the completion provider."""

import asyncio

from langchain_core.messages import AIMessage

from dream_journal.errors import AnalysisFailed


class FakeAnalysisClient:
    """Answers immediately with scripted replies, or fails every call."""

    def __init__(self, replies=None, fail=False):
        self.replies = list(replies or [])
        self.fail = fail
        self.calls = []

    async def analyze(self, transcript):
        self.calls.append(list(transcript))
        if self.fail:
            raise AnalysisFailed("service unavailable")
        if self.replies:
            return self.replies.pop(0)
        return f"interpretation {len(self.calls)}"


class PendingAnalysisClient:
    """Each call waits on a future the test resolves by hand."""

    def __init__(self):
        self.calls = []
        self.pending = []

    async def analyze(self, transcript):
        self.calls.append(list(transcript))
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future


class FakeLLM:
    def __init__(self, reply="A vivid dream of freedom.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


async def settle():
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(5):
        await asyncio.sleep(0)
