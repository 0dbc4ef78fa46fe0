"""
Shared pytest fixtures for backend tests.
A fake Anthropic client stands in for the LLM; "now" is pinned to a Wednesday.
"""
import asyncio
import pytest
import sys
import os
from datetime import datetime
from types import SimpleNamespace

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from resolver import CommandResolver

# Wednesday, 10:00 local
FIXED_NOW = datetime(2025, 1, 15, 10, 0)


class FakeMessages:
    """
    Mimics AsyncAnthropic().messages. Replies are consumed in order and the
    last one repeats. A reply may be text, an exception to raise, an async
    callable receiving the request kwargs, or a ready-made response object.
    """

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = await reply(kwargs)
        if isinstance(reply, SimpleNamespace):
            return reply
        return SimpleNamespace(content=[SimpleNamespace(text=reply)])


class FakeAnthropic:
    def __init__(self, *replies):
        self.messages = FakeMessages(replies)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def offline_resolver():
    """Resolver that never consults the LLM."""
    return CommandResolver(client=None, use_llm=False, hour_policy="pm_bias")


@pytest.fixture
def make_resolver():
    """Build a resolver backed by a FakeAnthropic returning the given replies."""
    def _make(*replies, timeout=5.0):
        client = FakeAnthropic(*replies)
        return CommandResolver(client=client, model="test-model", timeout=timeout,
                               use_llm=True, hour_policy="pm_bias")
    return _make


@pytest.fixture
def run():
    """Run a coroutine to completion."""
    return asyncio.run


@pytest.fixture
def app_client(monkeypatch, offline_resolver):
    """
    Create a test client for the FastAPI app.
    Swaps in the offline resolver so no API key is needed.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "resolver", offline_resolver)

    with TestClient(main.app) as client:
        yield client
