"""
Message router connecting platform messages to the availability pipeline.

For every inbound message:
- ignore authors who never subscribed
- classify (unavailable first, then available)
- resolve the time clause to a future point in time
- propose it to the author for confirmation

Anything that falls through is ordinary chat and gets no reply.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from .adapters.base import BaseAdapter, IncomingMessage, PromptContext
from .classifier import IntentClassifier
from .errors import InvalidTimeError
from .store import AvailabilityStore
from .time_resolver import TimeResolver
from .workflow import ConfirmationWorkflow, utcnow


class AvailabilityRouter:
    """Routes inbound chat messages through classify → resolve → propose."""

    def __init__(
        self,
        store: AvailabilityStore,
        classifier: IntentClassifier,
        resolver: TimeResolver,
        workflow: ConfirmationWorkflow,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.classifier = classifier
        self.resolver = resolver
        self.workflow = workflow
        self.clock = clock
        self.logger = logging.getLogger("Availability.Router")

    async def process_message(self, message: IncomingMessage, adapter: BaseAdapter) -> Optional[PromptContext]:
        """
        Process one inbound message.

        Args:
            message: Normalized incoming message
            adapter: Adapter to reply through

        Returns:
            The proposed prompt's context, or None if the message was ignored
        """
        subscribed = await asyncio.to_thread(self.store.is_subscribed, message.user_id)
        if not subscribed:
            self.logger.debug(f"Ignoring message from unsubscribed user {message.user_id}")
            return None

        classification = self.classifier.classify(message.text)
        if classification is None:
            return None

        try:
            when = self.resolver.resolve_future(classification.clause, self.clock())
        except InvalidTimeError as e:
            self.logger.debug(f"Ignoring {classification.intent.value} message from {message.user_id}: {e}")
            return None

        return await self.workflow.propose(adapter, message, classification.intent, when)
