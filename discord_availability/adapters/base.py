"""Base adapter class for messaging platforms."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from ..models import Intent


@dataclass
class IncomingMessage:
    """Normalized incoming message from any platform."""
    platform: str           # "discord"
    user_id: str            # Platform-specific author ID
    user_name: str          # Display name, informational only
    chat_id: str            # Channel the message was posted in
    text: str               # Raw message content
    timestamp: float        # Unix timestamp
    raw: Any = None         # Original message object
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PromptContext:
    """
    Everything a yes/no prompt needs once it is answered.

    Created by the confirmation workflow when proposing and handed back,
    unchanged, to its accept/reject handlers.
    """
    prompt_id: str
    user_id: str
    user_name: str
    intent: Intent
    when: datetime
    chat_id: str


class ReplyHandle(ABC):
    """Request-scoped reply capability for one button press on a prompt."""

    def __init__(self, invoking_user_id: str, prompt_id: str):
        self.invoking_user_id = str(invoking_user_id)
        self.prompt_id = prompt_id

    @abstractmethod
    async def send_private(self, text: str):
        """Send a reply only the invoking user can see."""
        pass

    @abstractmethod
    async def remove_prompt(self):
        """Delete the prompt message the button belongs to."""
        pass


MessageCallback = Callable[[IncomingMessage], Awaitable[Any]]
AnswerCallback = Callable[[PromptContext, bool, ReplyHandle], Awaitable[Any]]


class BaseAdapter(ABC):
    """
    Base class for messaging platform adapters.

    An adapter owns the platform connection, turns platform events into
    `IncomingMessage`s and prompt answers, and offers the few reply
    operations the core needs.
    """

    def __init__(self, config: dict, on_message: MessageCallback, on_prompt_answer: AnswerCallback):
        """
        Initialize the adapter.

        Args:
            config: Platform-specific configuration
            on_message: Callback for incoming messages
            on_prompt_answer: Callback for yes/no presses on a prompt
        """
        self.config = config
        self.on_message = on_message
        self.on_prompt_answer = on_prompt_answer
        self.logger = logging.getLogger(f"Availability.{self.__class__.__name__}")
        self._running = False

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return platform identifier."""
        pass

    @abstractmethod
    async def start(self) -> bool:
        """
        Start the adapter and begin listening for events.
        Returns True if started successfully.
        """
        pass

    @abstractmethod
    async def stop(self):
        """Stop the adapter gracefully."""
        pass

    @abstractmethod
    async def send_prompt(self, message: IncomingMessage, context: PromptContext, text: str) -> str:
        """
        Reply to `message` with `text` and Yes/No controls.

        Pressing a control must call `on_prompt_answer(context, accepted, handle)`.

        Returns:
            Platform ID of the prompt message
        """
        pass

    async def handle_message(self, message: IncomingMessage):
        """
        Pass an incoming message to the core.

        Errors are logged, never echoed to chat.
        """
        if not message.text:
            return

        self.logger.debug(f"[{self.platform_name}] Message from {message.user_id}: {message.text[:80]}")

        try:
            await self.on_message(message)
        except Exception:
            self.logger.exception(f"Error processing message from {message.user_id}")

    async def handle_prompt_answer(self, context: PromptContext, accepted: bool, handle: ReplyHandle):
        """Pass a prompt answer to the core."""
        self.logger.debug(
            f"[{self.platform_name}] Prompt {context.prompt_id} answered "
            f"{'yes' if accepted else 'no'} by {handle.invoking_user_id}"
        )

        try:
            await self.on_prompt_answer(context, accepted, handle)
        except Exception:
            self.logger.exception(f"Error handling answer to prompt {context.prompt_id}")

    @property
    def is_running(self) -> bool:
        """Check if adapter is currently running."""
        return self._running
