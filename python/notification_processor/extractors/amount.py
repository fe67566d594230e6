"""
Amount Extraction Module

Finds the monetary amount and currency in free notification text using an
ordered cascade of patterns, covering Serbian (1.234,56) and international
(1,234.56) numeral conventions.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ..currency import Currency, CurrencyTable

logger = logging.getLogger(__name__)

# Numerals must not start inside a longer numeral ("12345" or "1.234").
NUM_START = r"(?<!\d)(?<!\d[.,])"
NUM_END = r"(?!\d)(?![.,]\d)"
# Currency words must not run into a following letter ("din" vs "dinner").
TOKEN_END = r"(?![^\W\d_])"

AMOUNT_LABELS = ("iznos", "amount")

DOT_GROUPED = re.compile(r"\d{1,3}(?:\.\d{3})+")


@dataclass(frozen=True)
class ExtractedAmount:
    """A positive amount with its resolved currency."""

    value: Decimal
    currency: Currency


@dataclass(frozen=True)
class AmountRule:
    """One step of the extraction cascade.

    Patterns expose an ``amount`` group and, optionally, a ``currency`` group.
    """

    name: str
    pattern: re.Pattern


def parse_amount_string(amount_str: str) -> Decimal:
    """Parse a numeral written in either decimal convention.

    - comma and dot present, comma rightmost: ``1.234,56`` -> 1234.56
    - comma and dot present, dot rightmost: ``1,234.56`` -> 1234.56
    - only a comma: decimal comma, ``1234,56`` -> 1234.56
    - only dot-grouped digits: thousands, ``1.200`` -> 1200
    - anything else is parsed as a plain number

    Returns:
        Parsed amount, or 0 when the string is not a number
    """
    clean = amount_str.strip()
    has_comma = "," in clean
    has_dot = "." in clean

    if has_comma and has_dot:
        if clean.rfind(",") > clean.rfind("."):
            clean = clean.replace(".", "").replace(",", ".")
        else:
            clean = clean.replace(",", "")
    elif has_comma:
        clean = clean.replace(",", ".")
    elif DOT_GROUPED.fullmatch(clean):
        clean = clean.replace(".", "")

    try:
        return Decimal(clean)
    except InvalidOperation:
        return Decimal("0")


def _alternation(tokens: list[str]) -> str:
    return "|".join(re.escape(token) for token in tokens)


def build_amount_rules(currencies: CurrencyTable) -> tuple[AmountRule, ...]:
    """Build the ordered extraction cascade for a currency table.

    Order:
        a. 1.234,56 RSD   dot-grouped, decimal comma, any currency token
        b. 1234,56 RSD    decimal comma without grouping
        c. 1,234.56 EUR   comma-grouped, decimal dot, currency word
        d. 1234.56 EUR    plain decimal dot, currency word
        e. 1.200 RSD      grouped or plain integer, any currency token
        f. €100           symbol prefix
        g. 100€           symbol suffix
        h. Iznos: 1.234,56 / Amount: 1,234.56   label prefix
    """
    words = _alternation(currencies.word_tokens)
    symbols = _alternation(currencies.symbol_tokens)
    any_token = f"{words}|{symbols}" if symbols else words
    labels = _alternation(list(AMOUNT_LABELS))

    def token(alternation: str) -> str:
        return rf"\s*(?P<currency>{alternation}){TOKEN_END}"

    specs = [
        ("grouped_decimal_comma",
         rf"{NUM_START}(?P<amount>\d{{1,3}}(?:\.\d{{3}})*,\d{{2}}){token(any_token)}"),
        ("decimal_comma",
         rf"{NUM_START}(?P<amount>\d+,\d{{2}}){token(any_token)}"),
        ("grouped_decimal_dot",
         rf"{NUM_START}(?P<amount>\d{{1,3}}(?:,\d{{3}})*\.\d{{2}}){token(words)}"),
        ("decimal_dot",
         rf"{NUM_START}(?P<amount>\d+\.\d{{2}}){token(words)}"),
        ("grouped_integer",
         rf"{NUM_START}(?P<amount>\d{{1,3}}(?:[.,]\d{{3}})+|\d+){token(any_token)}"),
    ]

    if symbols:
        specs += [
            ("symbol_prefix",
             rf"(?P<currency>{symbols})\s*(?P<amount>\d+(?:[.,]\d+)*)"),
            ("symbol_suffix",
             rf"{NUM_START}(?P<amount>\d+(?:[.,]\d+)*)\s*(?P<currency>{symbols})"),
        ]

    specs += [
        ("label_decimal_comma",
         rf"\b(?:{labels})[:\s]+(?P<amount>\d{{1,3}}(?:\.\d{{3}})*,\d{{2}}|\d+,\d{{2}}){NUM_END}"
         rf"(?:{token(any_token)})?"),
        ("label_decimal_dot",
         rf"\b(?:{labels})[:\s]+(?P<amount>\d{{1,3}}(?:,\d{{3}})*\.\d{{2}}|\d+\.\d{{2}}){NUM_END}"
         rf"(?:{token(any_token)})?"),
    ]

    return tuple(
        AmountRule(name=name, pattern=re.compile(pattern, re.IGNORECASE))
        for name, pattern in specs
    )


class AmountExtractor:
    """Extracts (amount, currency) from raw notification text."""

    def __init__(self, currencies: CurrencyTable):
        """Initialize the extractor.

        Args:
            currencies: Table used to build token patterns and resolve tokens
        """
        self.currencies = currencies
        self.rules = build_amount_rules(currencies)

    def extract(self, text: str) -> ExtractedAmount | None:
        """Run the cascade over raw (not lower-cased) text.

        The first rule whose first match parses to a positive value wins.

        Returns:
            ExtractedAmount, or None when no rule yields a positive amount
        """
        for rule in self.rules:
            match = rule.pattern.search(text)
            if not match:
                continue

            amount = parse_amount_string(match.group("amount"))
            if amount <= 0:
                logger.debug(f"Rule {rule.name} matched non-positive amount {match.group(0)!r}")
                continue

            currency = self.currencies.resolve_alias(match.group("currency"))
            logger.debug(f"Rule {rule.name} extracted {amount} {currency.code}")
            return ExtractedAmount(value=amount, currency=currency)

        return None
