"""
Shared fixtures: a fixed clock, an offline key-value store and a fake OpenAI
SDK client, so no test touches the network or Firebase.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

# Keep test output readable; the logger reads this at import time.
os.environ.setdefault("HABLA_QUIET", "1")

from habla.config import Settings
from habla.api import ChatProvider
from habla.memory import create_empty_memory
from habla.store import KeyValueStore

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeCompletions:
    """Stands in for ``client.chat.completions``; replies are queued per test."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def queue(self, reply) -> None:
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        self.replies.append(reply)

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_fake_client(completions: FakeCompletions, models=(), image_url="https://img.test/1.png"):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=completions),
        models=SimpleNamespace(list=lambda: list(models)),
        images=SimpleNamespace(generate=lambda **kw: SimpleNamespace(data=[SimpleNamespace(url=image_url)])),
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def memory():
    return create_empty_memory()


@pytest.fixture
def store() -> KeyValueStore:
    # No db handle -> local cache mode
    return KeyValueStore(collection="test_kv")


@pytest.fixture
def completions() -> FakeCompletions:
    return FakeCompletions()


@pytest.fixture
def provider(completions) -> ChatProvider:
    return ChatProvider(Settings(api_key="sk-test"), client=make_fake_client(completions))
