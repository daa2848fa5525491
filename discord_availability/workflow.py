"""
Confirmation workflow.

Nothing inferred from free text is stored until the author explicitly accepts
a Yes/No prompt. Each prompt carries its own `PromptContext`; prompts are
independent of each other and never expire.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from .adapters.base import BaseAdapter, IncomingMessage, PromptContext, ReplyHandle
from .config import Settings
from .errors import StorageWriteError
from .models import AvailabilityRecord, Intent
from .store import AvailabilityStore

logger = logging.getLogger("Availability.Workflow")

PROMPT_TEXT = "You will be **{intent}** for {event} on `{day}` at `{clock}`, did I get that right?"
ACCEPTED_TEXT = "Alrighty! You are now officially **{intent}** on `{day}` at `{clock}`."
REJECTED_TEXT = "Whoops, sorry!"
EXPIRED_TEXT = "That time has already passed, so I didn't save it."
WRITE_FAILED_TEXT = "Sorry, I couldn't save your availability. Please try again later."
NOT_YOURS_TEXT = "This question was meant for someone else."


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfirmationWorkflow:
    """Proposes inferred availabilities and commits the accepted ones."""

    def __init__(self, store: AvailabilityStore, settings: Settings,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.settings = settings
        self.clock = clock

    def describe(self, intent: Intent, when: datetime, template: str) -> str:
        local = when.astimezone(self.settings.tzinfo)
        return template.format(
            intent=intent.value,
            event=self.settings.event_name,
            day=local.strftime("%d.%m.%Y"),
            clock=local.strftime("%H:%M"),
        )

    async def propose(self, adapter: BaseAdapter, message: IncomingMessage,
                      intent: Intent, when: datetime) -> PromptContext:
        """
        Ask the message author to confirm an inferred availability.

        Args:
            adapter: Platform adapter the message came from
            message: The message the intent was read from
            intent: Available or unavailable
            when: Resolved, future point in time

        Returns:
            The context that the answer handlers will receive
        """
        context = PromptContext(
            prompt_id=uuid.uuid4().hex,
            user_id=message.user_id,
            user_name=message.user_name,
            intent=intent,
            when=when,
            chat_id=message.chat_id,
        )

        await adapter.send_prompt(message, context, self.describe(intent, when, PROMPT_TEXT))
        logger.info(f"Proposed {intent.value} at {when.isoformat()} to user {message.user_id} ({context.prompt_id})")
        return context

    async def handle_answer(self, context: PromptContext, accepted: bool,
                            reply: ReplyHandle) -> Optional[AvailabilityRecord]:
        """Route a Yes/No press. Only the prompted user may answer."""
        if reply.invoking_user_id != context.user_id:
            logger.info(f"User {reply.invoking_user_id} pressed prompt {context.prompt_id} of {context.user_id}")
            await reply.send_private(NOT_YOURS_TEXT)
            return None

        if accepted:
            return await self.on_accept(context, reply)

        await self.on_reject(context, reply)
        return None

    async def on_accept(self, context: PromptContext, reply: ReplyHandle) -> Optional[AvailabilityRecord]:
        """
        Commit the proposed availability.

        Returns:
            The stored record, or None when nothing was stored
        """
        if context.when <= self.clock():
            logger.info(f"Prompt {context.prompt_id} accepted after {context.when.isoformat()} passed")
            await reply.remove_prompt()
            await reply.send_private(EXPIRED_TEXT)
            return None

        try:
            record = await self.store.append(
                context.user_id,
                context.user_name,
                context.intent.is_available,
                context.when,
            )
        except StorageWriteError as e:
            logger.error(f"Could not commit prompt {context.prompt_id}: {e}")
            await reply.remove_prompt()
            await reply.send_private(WRITE_FAILED_TEXT)
            return None

        await reply.remove_prompt()
        await reply.send_private(self.describe(context.intent, context.when, ACCEPTED_TEXT))
        return record

    async def on_reject(self, context: PromptContext, reply: ReplyHandle):
        """Discard the proposal."""
        logger.info(f"Prompt {context.prompt_id} rejected by user {context.user_id}")
        await reply.remove_prompt()
        await reply.send_private(REJECTED_TEXT)
