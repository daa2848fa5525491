"""
Logic behind the slash commands.

    /availability          - everybody's latest availability
    /available [when]      - mark yourself available (default: next default day)
    /unavailable [when]    - mark yourself unavailable

The commands are the onboarding path: using /available or /unavailable once
subscribes a user to free-text detection. An explicit command needs no
confirmation prompt.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from .errors import InvalidTimeError, StorageWriteError
from .models import Intent, SortOrder
from .store import AvailabilityStore
from .time_resolver import TimeResolver
from .workflow import ACCEPTED_TEXT, WRITE_FAILED_TEXT, ConfirmationWorkflow, utcnow

logger = logging.getLogger("Availability.Commands")

AVAILABILITY = "availability"
AVAILABLE = "available"
UNAVAILABLE = "unavailable"

COMMAND_DESCRIPTIONS = {
    AVAILABILITY: "Shows everybody's availability.",
    AVAILABLE: "Mark yourself as available.",
    UNAVAILABLE: "Mark yourself as unavailable.",
}


class AvailabilityCommands:
    """Builds the replies for the three slash commands."""

    def __init__(self, store: AvailabilityStore, resolver: TimeResolver,
                 workflow: ConfirmationWorkflow, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.resolver = resolver
        self.workflow = workflow
        self.clock = clock

    def availability_report(self) -> str:
        """Upcoming availability of every subscribed user, soonest first."""
        now = self.clock()
        upcoming = [r for r in self.store.list_all(SortOrder.ASC) if r.availability_time > now]
        event = self.workflow.settings.event_name

        if not upcoming:
            return f"Nobody has shared their availability for {event} yet."

        tz = self.workflow.settings.tzinfo
        lines = [f"Availability for {event}:"]
        for record in upcoming:
            local = record.availability_time.astimezone(tz)
            lines.append(
                f"- **{record.user_name or record.user_id}** is {record.intent.value} "
                f"on `{local:%d.%m.%Y}` at `{local:%H:%M}`"
            )
        return "\n".join(lines)

    async def mark(self, user_id: str, user_name: str, intent: Intent, when_text: Optional[str] = None) -> str:
        """
        Store an explicit (un)availability.

        Args:
            user_id: Invoking user
            user_name: Display name
            intent: Available or unavailable
            when_text: Optional time clause; the configured default otherwise
        """
        clause = (when_text or "").strip() or self.workflow.settings.default_date_time

        try:
            when = self.resolver.resolve_future(clause, self.clock())
        except InvalidTimeError as e:
            logger.debug(f"/{intent.value} from {user_id}: {e}")
            return f"Sorry, I couldn't read `{clause}` as a time in the future."

        try:
            await self.store.append(user_id, user_name, intent.is_available, when)
        except StorageWriteError as e:
            logger.error(f"/{intent.value} from {user_id} not stored: {e}")
            return WRITE_FAILED_TEXT

        return self.workflow.describe(intent, when, ACCEPTED_TEXT)
