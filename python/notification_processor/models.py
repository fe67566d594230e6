"""
Notification Processor Models

Domain types shared by the classification and extraction pipeline.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class TransactionType(Enum):
    """Direction of money for a captured transaction."""
    EXPENSE = "expense"
    INCOME = "income"


class TransactionSource(Enum):
    """Channel a candidate was derived from."""
    NOTIFICATION = "notification"
    SMS = "sms"


class OutcomeKind(Enum):
    """Classification outcome tag."""
    EXPENSE = "expense"
    INCOME = "income"
    INFO = "info"
    UNKNOWN = "unknown"


class TransactionCategory(Enum):
    """Spending categories with display name and emoji."""

    FOOD_GROCERIES = ("food_groceries", "Groceries", "🛒")
    FOOD_RESTAURANTS = ("food_restaurants", "Restaurants", "🍽️")
    FOOD_COFFEE = ("food_coffee", "Coffee & Drinks", "☕")
    TRANSPORT_FUEL = ("transport_fuel", "Fuel", "⛽")
    TRANSPORT_PUBLIC = ("transport_public", "Public Transport", "🚌")
    TRANSPORT_TAXI = ("transport_taxi", "Taxi/Ride", "🚕")
    UTILITIES_ELECTRICITY = ("utilities_electricity", "Electricity", "⚡")
    UTILITIES_WATER = ("utilities_water", "Water", "💧")
    UTILITIES_GAS = ("utilities_gas", "Gas/Heating", "🔥")
    UTILITIES_INTERNET = ("utilities_internet", "Internet", "📡")
    SHOPPING_CLOTHES = ("shopping_clothes", "Clothing", "👕")
    SHOPPING_ELECTRONICS = ("shopping_electronics", "Electronics", "📱")
    ENTERTAINMENT_STREAMING = ("entertainment_streaming", "Streaming", "📺")
    ENTERTAINMENT_GAMES = ("entertainment_games", "Games", "🎮")
    ENTERTAINMENT_EVENTS = ("entertainment_events", "Events", "🎉")
    HEALTH_PHARMACY = ("health_pharmacy", "Pharmacy", "💊")
    HEALTH_DOCTOR = ("health_doctor", "Medical", "🏥")
    HEALTH_GYM = ("health_gym", "Fitness", "💪")
    CASH_WITHDRAWAL = ("cash_withdrawal", "Cash Withdrawal", "🏧")
    OTHER_EXPENSE = ("other_expense", "Other", "📝")
    SALARY = ("salary", "Salary", "💰")

    def __init__(self, code: str, display_name: str, emoji: str):
        self.code = code
        self.display_name = display_name
        self.emoji = emoji

    @classmethod
    def from_code(cls, code: str) -> "TransactionCategory":
        """Look up a category by its configuration code.

        Raises:
            ValueError: If the code is not a known category
        """
        for category in cls:
            if category.code == code:
                return category
        raise ValueError(f"Unknown category: {code}")


@dataclass(frozen=True)
class RawNotification:
    """A notification event as delivered by the observation layer."""

    title: str
    body: str
    source: str
    timestamp: datetime

    @property
    def full_text(self) -> str:
        return f"{self.title} {self.body}"


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class TransactionCandidate:
    """A fully extracted, not yet persisted transaction.

    ``original_amount`` and ``original_currency`` are set only when the
    notification was in a currency other than the base one; ``None`` on both
    means no conversion happened.
    """

    amount: Decimal
    currency: str
    category: TransactionCategory
    description: str
    type: TransactionType
    timestamp: datetime
    source: TransactionSource = TransactionSource.NOTIFICATION
    source_app: str | None = None
    merchant: str | None = None
    original_amount: Decimal | None = None
    original_currency: str | None = None
    credits_earned: int = 0
    id: str = field(default_factory=_new_id, compare=False)

    @property
    def was_converted(self) -> bool:
        return self.original_currency is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": float(self.amount),
            "currency": self.currency,
            "category": self.category.code,
            "description": self.description,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
            "source_app": self.source_app,
            "merchant": self.merchant,
            "original_amount": (
                float(self.original_amount) if self.original_amount is not None else None
            ),
            "original_currency": self.original_currency,
            "credits_earned": self.credits_earned,
        }


@dataclass(frozen=True)
class ClassificationOutcome:
    """Tagged result of classifying one notification.

    EXPENSE and INCOME carry a candidate; INFO and UNKNOWN carry nothing.
    Use the ``Expense``/``Income``/``Info``/``Unknown`` constructors below.
    """

    kind: OutcomeKind
    candidate: TransactionCandidate | None = None

    def __post_init__(self):
        carries_candidate = self.kind in (OutcomeKind.EXPENSE, OutcomeKind.INCOME)
        if carries_candidate and self.candidate is None:
            raise ValueError(f"{self.kind.value} outcome requires a candidate")
        if not carries_candidate and self.candidate is not None:
            raise ValueError(f"{self.kind.value} outcome cannot carry a candidate")

    @property
    def is_transaction(self) -> bool:
        return self.candidate is not None


def Expense(candidate: TransactionCandidate) -> ClassificationOutcome:
    return ClassificationOutcome(OutcomeKind.EXPENSE, candidate)


def Income(candidate: TransactionCandidate) -> ClassificationOutcome:
    return ClassificationOutcome(OutcomeKind.INCOME, candidate)


def Info() -> ClassificationOutcome:
    return ClassificationOutcome(OutcomeKind.INFO)


def Unknown() -> ClassificationOutcome:
    return ClassificationOutcome(OutcomeKind.UNKNOWN)
