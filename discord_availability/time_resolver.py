"""
Natural-language time resolution.

Turns a clause such as "next monday at 20:00 for the raid" into an absolute,
timezone-aware datetime using `dateparser`, then applies the configured
default day/time fallbacks.
"""
import logging
import re
from datetime import datetime
from typing import Optional, Tuple

from dateparser.date import DateDataParser

from .config import Settings
from .errors import InvalidTimeError

logger = logging.getLogger("Availability.TimeResolver")

_VAGUE = re.compile(r"\bnext\s+(week|time)\b", re.IGNORECASE)
# "at 9" means nine o'clock, not September
_BARE_HOUR = re.compile(r"\bat\s+(\d{1,2})\b(?!\s*(?:[:.]\d|[ap]\.?m\b))", re.IGNORECASE)
_FILLER = re.compile(r"\b(next|on|at)\s+", re.IGNORECASE)
_EXPLICIT_TIME = re.compile(r"\d{1,2}:\d{2}|\b\d{1,2}\s*(am|pm)\b|\bnoon\b|\bmidnight\b", re.IGNORECASE)
_RELATIVE_TIME = re.compile(r"\b(hours?|hrs?|minutes?|mins?)\b", re.IGNORECASE)

_MONTHS = (
    r"jan(uary)?|feb(ruary)?|mar(ch)?|apr(il)?|may|june?|july?|aug(ust)?"
    r"|sep(t|tember)?|oct(ober)?|nov(ember)?|dec(ember)?"
)
_DAY_NUMBER = r"\d{1,2}(st|nd|rd|th)?"

# A prefix is only accepted if it names a day, a date or a clock time.
# Month names count only next to a day number: "may" alone is just a word.
_ANCHOR = re.compile(
    r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|today|tonight|tomorrow|yesterday)\b"
    rf"|\b{_DAY_NUMBER}\s+(of\s+)?({_MONTHS})\b"
    rf"|\b({_MONTHS})\s+{_DAY_NUMBER}\b"
    r"|\b(\d+|an?|one)\s+(minutes?|mins?|hours?|hrs?|days?|weeks?)\b"
    r"|\b\d{1,2}[./]\d{1,2}\b|\b\d{4}-\d{2}-\d{2}\b"
    r"|\d{1,2}:\d{2}|\b\d{1,2}\s*(am|pm)\b|\bnoon\b|\bmidnight\b",
    re.IGNORECASE,
)


class TimeResolver:
    """Resolves time clauses relative to "now" in the configured timezone."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.tz = settings.tzinfo

    def preprocess(self, clause: str) -> str:
        """
        Normalise a clause before parsing.

        "next week" / "next time" become the default day and time, and the
        filler words "next", "on" and "at" are dropped. A bare hour after
        "at" gets minutes, so "at 9" reads as 9:00.
        """
        text = _VAGUE.sub(self.settings.default_date_time, clause.strip())
        text = _BARE_HOUR.sub(r"\1:00", text)
        text = _FILLER.sub("", text)
        return " ".join(text.split())

    def resolve(self, clause: str, now: Optional[datetime] = None) -> datetime:
        """
        Resolve a clause to an aware datetime.

        The result is not guaranteed to be in the future; see `resolve_future`.

        Args:
            clause: Free-text time clause
            now: Reference instant (defaults to the current time)

        Raises:
            InvalidTimeError: if no leading part of the clause names a day,
                date or time that parses
        """
        now = self._localise(now)
        text = self.preprocess(clause)
        if not text:
            raise InvalidTimeError(clause, "empty")

        parsed = self._parse_longest_prefix(text, now)
        if parsed is None:
            raise InvalidTimeError(clause)

        when, has_time = parsed
        if has_time:
            when = when.replace(second=0, microsecond=0)
        else:
            when = when.replace(hour=0, minute=0, second=0, microsecond=0)

        # Midnight means "a day without a time": move it to the default time
        if when.hour == 0 and when.minute == 0:
            when += self.settings.default_hour_offset

        return when.replace(tzinfo=self.tz)

    def resolve_future(self, clause: str, now: Optional[datetime] = None) -> datetime:
        """Like `resolve`, but a result at or before `now` is an error too."""
        now = self._localise(now)
        when = self.resolve(clause, now)
        if when <= now:
            raise InvalidTimeError(clause, f"{when.isoformat()} is not in the future")
        return when

    def default_time(self, now: Optional[datetime] = None) -> datetime:
        """The configured default day and time, e.g. next monday 19:00."""
        return self.resolve_future(self.settings.default_date_time, now)

    def _localise(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return datetime.now(self.tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def _parse_longest_prefix(self, text: str, now: datetime) -> Optional[Tuple[datetime, bool]]:
        """
        Parse the longest run of leading words that dateparser understands.

        Runs without a day, date or clock time are skipped even if they parse:
        dateparser reads a lone "8" or "a" as a day or month.

        Returns:
            (naive datetime, whether a time of day was given) or None
        """
        parser = DateDataParser(
            languages=["en"],
            settings={
                "PREFER_DATES_FROM": "future",
                "RELATIVE_BASE": now.replace(tzinfo=None),
                "RETURN_AS_TIMEZONE_AWARE": False,
                "RETURN_TIME_AS_PERIOD": True,
            },
        )

        words = text.split()
        for size in range(len(words), 0, -1):
            candidate = " ".join(words[:size])
            if not _ANCHOR.search(candidate):
                continue

            data = parser.get_date_data(candidate)
            if data.date_obj is None:
                continue

            if size < len(words):
                logger.debug(f"Parsed '{candidate}', ignored '{' '.join(words[size:])}'")
            has_time = (
                data.period == "time"
                or bool(_EXPLICIT_TIME.search(candidate))
                or bool(_RELATIVE_TIME.search(candidate))
            )
            return data.date_obj.replace(tzinfo=None), has_time

        return None
