"""
Merchant Extraction Module

Pulls a short merchant label out of notification text:
    "Plaćanje na OMV PUMPA, 40.00 BAM"   -> "OMV PUMPA"
    "Purchase at MAXI 1.234,56 RSD"      -> "MAXI"
    "Trgovac: IDEA Beograd"              -> "IDEA Beograd"
    "Odliv: 1.200 RSD, MAXI"             -> "MAXI"
"""

import logging
import re

from ..currency import CurrencyTable
from ..rules import MerchantSettings

logger = logging.getLogger(__name__)

PREPOSITIONS = ("at", "near", "kod", "na", "u")
MERCHANT_LABELS = ("merchant", "vendor", "prodavac", "trgovac", "prodajno mesto")
# Words that follow a preposition in amount phrases ("u iznosu od").
MERCHANT_STOP_WORDS = ("iznosu", "iznos", "vrednosti", "visini")

# A merchant starts with a letter and continues with letters, digits,
# spaces and a few joining characters.
NAME_START = r"[^\W\d_]"
NAME_CHARS = r"[\w \-.&']"
# Preposition spans end at punctuation, a digit, a line break or the end.
# A dot only ends the span when no word character follows (keeps "D.O.O").
NAME_STOP = r"(?=[,;:!?\n]|\.(?!\w)|\d|$)"


def build_merchant_patterns(currencies: CurrencyTable) -> tuple[tuple[str, re.Pattern], ...]:
    """Build the ordered merchant cascade."""
    prepositions = "|".join(re.escape(p) for p in PREPOSITIONS)
    labels = "|".join(re.escape(label) for label in MERCHANT_LABELS)
    tokens = "|".join(
        re.escape(t) for t in currencies.word_tokens + currencies.symbol_tokens
    )

    specs = [
        ("preposition",
         rf"(?:\b(?:{prepositions})\s+|@\s*)(?P<merchant>{NAME_START}{NAME_CHARS}*?)\s*{NAME_STOP}"),
        ("label",
         rf"\b(?:{labels})\s*:\s*(?P<merchant>{NAME_START}{NAME_CHARS}*)"),
        ("after_currency",
         rf"\d\s*(?:{tokens}),\s*(?P<merchant>{NAME_START}{NAME_CHARS}*)"),
    ]
    return tuple((name, re.compile(pattern, re.IGNORECASE)) for name, pattern in specs)


class MerchantExtractor:
    """Extracts an optional merchant name from raw notification text."""

    def __init__(self, currencies: CurrencyTable, settings: MerchantSettings | None = None):
        self.settings = settings or MerchantSettings()
        self.patterns = build_merchant_patterns(currencies)

    def extract(self, text: str) -> str | None:
        """Return the first acceptable merchant, or None.

        Matches shorter than the configured minimum are skipped and the
        cascade continues; accepted matches are truncated to the maximum.
        Spans opening with an amount phrase are skipped in favour of the
        rule's next match.
        """
        for name, pattern in self.patterns:
            merchant = self._first_span(name, pattern, text)
            if merchant is None:
                continue

            if len(merchant) < self.settings.min_length:
                logger.debug(f"Merchant rule {name} match too short: {merchant!r}")
                continue

            merchant = merchant[:self.settings.max_length].rstrip()
            logger.debug(f"Merchant rule {name} extracted {merchant!r}")
            return merchant

        return None

    def _first_span(self, name: str, pattern: re.Pattern, text: str) -> str | None:
        for match in pattern.finditer(text):
            merchant = match.group("merchant").strip()
            if is_stop_phrase(merchant):
                logger.debug(f"Merchant rule {name} skipped amount phrase: {merchant!r}")
                continue
            return merchant
        return None


def is_stop_phrase(span: str) -> bool:
    words = span.split()
    return bool(words) and words[0].lower() in MERCHANT_STOP_WORDS
