"""
Pytest fixtures for availability testing.

Provides:
- Settings pointing at a temporary availabilities directory
- Store, resolver and workflow instances wired to a fixed clock
- Fake reply handles and adapters that record what the core sent
"""

import pytest
from datetime import datetime, timezone
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock, MagicMock

from discord_availability.adapters.base import IncomingMessage, ReplyHandle
from discord_availability.classifier import IntentClassifier
from discord_availability.commands import AvailabilityCommands
from discord_availability.config import Settings
from discord_availability.router import AvailabilityRouter
from discord_availability.store import AvailabilityStore
from discord_availability.time_resolver import TimeResolver
from discord_availability.workflow import ConfirmationWorkflow


# Tuesday, 20 October 2026, 10:00 UTC
FIXED_NOW = datetime(2026, 10, 20, 10, 0, tzinfo=timezone.utc)
NEXT_MONDAY = datetime(2026, 10, 26, tzinfo=timezone.utc)
THIS_FRIDAY = datetime(2026, 10, 23, tzinfo=timezone.utc)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeReply(ReplyHandle):
    """Reply handle that records private replies and prompt removal."""

    def __init__(self, invoking_user_id: str = "1001", prompt_id: str = "prompt"):
        super().__init__(invoking_user_id, prompt_id)
        self.private: List[str] = []
        self.removed = False

    async def send_private(self, text: str):
        self.private.append(text)

    async def remove_prompt(self):
        self.removed = True


def make_message(text: str, user_id: str = "1001", user_name: str = "pudge") -> IncomingMessage:
    return IncomingMessage(
        platform="discord",
        user_id=user_id,
        user_name=user_name,
        chat_id="555",
        text=text,
        timestamp=FIXED_NOW.timestamp(),
        metadata={"message_id": "777"},
    )


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def availabilities_dir(tmp_path) -> Path:
    """Not created up front: the store creates it on first write."""
    return tmp_path / "availabilities"


@pytest.fixture
def settings(availabilities_dir) -> Settings:
    return Settings(token="test-token", directory_availabilities=availabilities_dir)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store(settings) -> AvailabilityStore:
    return AvailabilityStore(settings.directory_availabilities, settings.max_availabilities_per_user)


@pytest.fixture
def store_factory(availabilities_dir):
    """Factory for stores with a custom capacity."""
    def _create(max_per_user: int = 100) -> AvailabilityStore:
        return AvailabilityStore(availabilities_dir, max_per_user)
    return _create


@pytest.fixture
def resolver(settings) -> TimeResolver:
    return TimeResolver(settings)


@pytest.fixture
def workflow(store, settings, clock) -> ConfirmationWorkflow:
    return ConfirmationWorkflow(store, settings, clock=clock)


@pytest.fixture
def router(store, resolver, workflow, clock) -> AvailabilityRouter:
    return AvailabilityRouter(store, IntentClassifier(), resolver, workflow, clock=clock)


@pytest.fixture
def commands(store, resolver, workflow, clock) -> AvailabilityCommands:
    return AvailabilityCommands(store, resolver, workflow, clock=clock)


@pytest.fixture
def fake_adapter():
    """Adapter double; send_prompt returns a fixed prompt message ID."""
    adapter = MagicMock()
    adapter.platform_name = "discord"
    adapter.send_prompt = AsyncMock(return_value="prompt-message-1")
    return adapter


@pytest.fixture
def fake_reply():
    return FakeReply()
