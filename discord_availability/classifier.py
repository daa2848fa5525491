"""
Trigger-phrase intent classification.

Each intent has two phrase banks:

- singles: standalone trigger words ("available", "unavailable", ...)
- pairs: two word sets; a phrase is only produced when the message holds at
  least one word from each set, anywhere in the text

The matched words are joined (in bank order) into a phrase and the text after
`<phrase> ` is taken as the time clause.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import Intent

logger = logging.getLogger("Availability.Classifier")


@dataclass(frozen=True)
class PhraseBank:
    singles: Tuple[str, ...]
    pairs: Tuple[Tuple[str, ...], Tuple[str, ...]]


_ARRIVAL = ("be there", "come", "make it")

AVAILABLE_BANK = PhraseBank(
    singles=("available", "coming"),
    pairs=(("can", "going to", "able to", "will"), _ARRIVAL),
)

UNAVAILABLE_BANK = PhraseBank(
    singles=("not available", "not coming", "unavailable"),
    pairs=(
        ("can not", "can't", "cannot", "cant", "not going to",
         "unable to", "will not", "won't", "wont"),
        _ARRIVAL,
    ),
)

# Unavailable first: "not available" also contains "available"
EVALUATION_ORDER = (
    (Intent.UNAVAILABLE, UNAVAILABLE_BANK),
    (Intent.AVAILABLE, AVAILABLE_BANK),
)


@dataclass(frozen=True)
class Classification:
    """Outcome of a successful classification."""
    intent: Intent
    phrase: str
    clause: str


class IntentClassifier:
    """
    Detects (un)availability statements in free text.

    By default triggers match as plain substrings, so "come" also fires
    inside "welcome". Pass `strict=True` to require whole words.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def classify(self, text: str) -> Optional[Classification]:
        """
        Classify a message, trying the unavailable intent first.

        The first intent that yields a clause wins; later ones are not tried.
        """
        for intent, bank in EVALUATION_ORDER:
            result = self.classify_as(intent, bank, text)
            if result:
                logger.debug(f"Classified as {intent.value}: phrase='{result.phrase}' clause='{result.clause}'")
                return result
        return None

    def classify_as(self, intent: Intent, bank: PhraseBank, text: str) -> Optional[Classification]:
        """Try a single intent's banks against the message."""
        if not text:
            return None

        phrase = self.trigger_phrase(bank, text)
        if not phrase:
            return None

        match = self._phrase_pattern(phrase).search(text)
        if not match or not match.group(1).strip():
            return None

        return Classification(intent=intent, phrase=phrase, clause=match.group(1).strip())

    def trigger_phrase(self, bank: PhraseBank, text: str) -> str:
        """
        Build the trigger phrase for a bank, or "" when nothing matches.

        Singles are tried first; pairs only when no single matched.
        """
        singles = [word for word in bank.singles if self._contains(text, word)]
        if singles:
            return " ".join(singles)

        first, second = bank.pairs
        first_hits = [word for word in first if self._contains(text, word)]
        second_hits = [word for word in second if self._contains(text, word)]
        if first_hits and second_hits:
            return " ".join(first_hits + second_hits)

        return ""

    def _contains(self, text: str, word: str) -> bool:
        if self.strict:
            return re.search(rf"(?<!\w){re.escape(word)}(?!\w)", text, re.IGNORECASE) is not None
        return word in text.lower()

    def _phrase_pattern(self, phrase: str):
        prefix = r"(?<!\w)" if self.strict else ""
        return re.compile(rf"{prefix}{re.escape(phrase)} (.+)", re.IGNORECASE)
