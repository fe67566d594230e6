"""
Currency Table Module

Canonical currencies, their textual aliases and static rates to the base
currency. All amounts stored by the pipeline are normalized to the base.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Currency:
    """A currency identity with the spellings that refer to it."""

    code: str
    symbol: str
    rate: Decimal  # 1 unit of this currency = rate base units
    aliases: frozenset[str]

    def __str__(self) -> str:
        return self.code


def format_number(amount: Decimal) -> str:
    """Format with dot thousands and comma decimals, e.g. ``1.234,56``."""
    quantized = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{quantized:,.2f}".translate(str.maketrans(",.", ".,"))


class CurrencyTable:
    """Immutable alias and rate lookup for a fixed set of currencies."""

    def __init__(self, currencies: Iterable[Currency], base_code: str):
        """Initialize the table.

        Args:
            currencies: Currencies to register
            base_code: Code of the base currency

        Raises:
            ValueError: If the base is missing, its rate is not 1, or an
                alias is claimed by two currencies
        """
        by_code: dict[str, Currency] = {}
        by_alias: dict[str, Currency] = {}

        for currency in currencies:
            if currency.code in by_code:
                raise ValueError(f"Duplicate currency code: {currency.code}")
            if currency.code.upper() not in currency.aliases:
                raise ValueError(f"Currency {currency.code} must list its code as an alias")
            by_code[currency.code] = currency

            for alias in currency.aliases:
                owner = by_alias.get(alias)
                if owner is not None and owner.code != currency.code:
                    raise ValueError(
                        f"Alias {alias!r} claimed by both {owner.code} and {currency.code}"
                    )
                by_alias[alias] = currency

        if base_code not in by_code:
            raise ValueError(f"Base currency {base_code} is not defined")
        if by_code[base_code].rate != Decimal("1"):
            raise ValueError(
                f"Base currency {base_code} must have rate 1, got {by_code[base_code].rate}"
            )

        self._by_code = MappingProxyType(by_code)
        self._by_alias = MappingProxyType(by_alias)
        self._base = by_code[base_code]

    @property
    def base(self) -> Currency:
        return self._base

    @property
    def currencies(self) -> tuple[Currency, ...]:
        return tuple(self._by_code.values())

    def get(self, code: str) -> Currency | None:
        return self._by_code.get(code.upper())

    def resolve_alias(self, token: str | None) -> Currency:
        """Resolve a code, symbol or spelling to a currency.

        Unrecognized or empty tokens resolve to the base currency.
        """
        if not token:
            return self._base

        currency = self._by_alias.get(token.strip().upper())
        if currency is None:
            logger.debug(f"Unrecognized currency token {token!r}, using {self._base.code}")
            return self._base
        return currency

    def get_rate(self, currency: Currency) -> Decimal:
        return currency.rate

    def to_base(self, amount: Decimal, currency: Currency) -> Decimal:
        """Convert an amount in ``currency`` to the base currency."""
        return Decimal(amount) * currency.rate

    def from_base(self, amount: Decimal, currency: Currency) -> Decimal:
        """Convert a base-currency amount to ``currency``."""
        return Decimal(amount) / currency.rate

    def convert(self, amount: Decimal, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Convert between any two currencies through the base."""
        if from_currency.code == to_currency.code:
            return Decimal(amount)
        return self.from_base(self.to_base(amount, from_currency), to_currency)

    def with_rates(self, rates: Mapping[str, Decimal | str]) -> "CurrencyTable":
        """Return a copy of the table with refreshed rates.

        Args:
            rates: Currency code -> new rate; unlisted currencies keep theirs

        Returns:
            New CurrencyTable
        """
        unknown = set(rates) - set(self._by_code)
        if unknown:
            raise ValueError(f"Unknown currencies in rate update: {sorted(unknown)}")

        refreshed = [
            Currency(
                code=c.code,
                symbol=c.symbol,
                rate=Decimal(str(rates[c.code])) if c.code in rates else c.rate,
                aliases=c.aliases,
            )
            for c in self._by_code.values()
        ]
        return CurrencyTable(refreshed, self._base.code)

    def format_amount(
        self,
        amount: Decimal,
        currency: Currency | None = None,
        original_amount: Decimal | None = None,
        original_currency: Currency | None = None,
    ) -> str:
        """Format an amount with its symbol.

        Returns:
            ``"11.750,00 дин."`` or, when an original foreign amount is
            given, ``"100,00 € (11.750,00 дин.)"``
        """
        currency = currency or self._base
        formatted = f"{format_number(amount)} {currency.symbol}"

        if (
            original_amount is not None
            and original_currency is not None
            and original_currency.code != self._base.code
        ):
            return f"{format_number(original_amount)} {original_currency.symbol} ({formatted})"
        return formatted

    # Token groups used to build extraction patterns

    @property
    def code_tokens(self) -> list[str]:
        return _longest_first(c.code for c in self._by_code.values())

    @property
    def word_tokens(self) -> list[str]:
        """Every alias containing a letter (codes and spellings)."""
        return _longest_first(a for a in self._by_alias if any(ch.isalpha() for ch in a))

    @property
    def symbol_tokens(self) -> list[str]:
        """Aliases that are pure glyphs such as ``€`` or ``$``."""
        return _longest_first(a for a in self._by_alias if not any(ch.isalnum() for ch in a))


def _longest_first(tokens: Iterable[str]) -> list[str]:
    return sorted(set(tokens), key=lambda t: (-len(t), t))
