"""
Rule Tables Module

Loads the keyword tiers, category groups, currency table, source whitelist
and pipeline settings from YAML and freezes them into immutable objects.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .currency import Currency, CurrencyTable
from .models import TransactionCategory

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "NOTIFICATION_PROCESSOR_CONFIG_DIR"
DEFAULT_CONFIG_DIR = Path(__file__).parent / "config"

KEYWORDS_FILE = "notification_keywords.yaml"
CATEGORIES_FILE = "category_rules.yaml"
CURRENCIES_FILE = "currencies.yaml"
SOURCES_FILE = "bank_sources.yaml"
SETTINGS_FILE = "pipeline_settings.yaml"


def _normalize_keywords(values: list[str]) -> list[str]:
    keywords = [v.lower() for v in values if v and v.strip()]
    if not keywords:
        raise ValueError("keyword list must not be empty")
    return keywords


# ---------------------------------------------------------------------------
# File schemas
# ---------------------------------------------------------------------------


class IncomeDescriptionSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str
    keywords: list[str]

    @field_validator("keywords")
    @classmethod
    def lower_keywords(cls, value: list[str]) -> list[str]:
        return _normalize_keywords(value)


class KeywordFileSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expense: list[str]
    income: list[str]
    info: list[str]
    income_descriptions: list[IncomeDescriptionSchema] = Field(default_factory=list)
    default_income_description: str = "Priliv"

    @field_validator("expense", "income", "info")
    @classmethod
    def lower_keywords(cls, value: list[str]) -> list[str]:
        return _normalize_keywords(value)


class CategoryGroupSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    category: str
    keywords: list[str]

    @field_validator("keywords")
    @classmethod
    def lower_keywords(cls, value: list[str]) -> list[str]:
        return _normalize_keywords(value)

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str) -> str:
        TransactionCategory.from_code(value)
        return value


class CategoryFileSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    groups: list[CategoryGroupSchema]
    default_category: str = "other_expense"
    income_category: str = "salary"

    @field_validator("default_category", "income_category")
    @classmethod
    def known_category(cls, value: str) -> str:
        TransactionCategory.from_code(value)
        return value


class CurrencySchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    symbol: str
    rate: Decimal = Field(gt=0)
    aliases: list[str] = Field(default_factory=list)


class CurrencyFileSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_currency: str
    currencies: dict[str, CurrencySchema]

    @model_validator(mode="after")
    def base_rate_is_one(self) -> "CurrencyFileSchema":
        base = self.currencies.get(self.base_currency)
        if base is None:
            raise ValueError(f"base currency {self.base_currency} is not listed")
        if base.rate != Decimal("1"):
            raise ValueError(f"base currency rate must be 1, got {base.rate}")
        return self


class SourcesFileSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    supported_packages: list[str]
    sms_packages: list[str] = Field(default_factory=list)
    sms_senders: list[str] = Field(default_factory=list)


class DedupSettingsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    window_minutes: float = Field(default=5, gt=0)
    max_recent: int = Field(default=20, gt=0)
    strategy: str = "source_window"
    amount_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    merchant_similarity: float = Field(default=0.7, ge=0, le=1)


class MerchantSettingsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min_length: int = Field(default=2, ge=1)
    max_length: int = Field(default=50, ge=1)


class CreditSettingsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expense: int = 5
    income: int = 0


class SettingsFileSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dedup: DedupSettingsSchema = Field(default_factory=DedupSettingsSchema)
    merchant: MerchantSettingsSchema = Field(default_factory=MerchantSettingsSchema)
    credits: CreditSettingsSchema = Field(default_factory=CreditSettingsSchema)


# ---------------------------------------------------------------------------
# Frozen rule objects
# ---------------------------------------------------------------------------


class DedupStrategy(Enum):
    """How a new capture is compared against recent ones from its source."""
    SOURCE_WINDOW = "source_window"
    AMOUNT_AND_MERCHANT = "amount_and_merchant"


@dataclass(frozen=True)
class KeywordTiers:
    """Ordered classification keyword tiers."""

    expense: tuple[str, ...]
    income: tuple[str, ...]
    info: tuple[str, ...]
    income_descriptions: tuple[tuple[str, tuple[str, ...]], ...] = ()
    default_income_description: str = "Priliv"


@dataclass(frozen=True)
class CategoryGroup:
    name: str
    category: TransactionCategory
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class CategoryTable:
    """Ordered keyword groups; the first group with a hit wins."""

    groups: tuple[CategoryGroup, ...]
    default_category: TransactionCategory = TransactionCategory.OTHER_EXPENSE
    income_category: TransactionCategory = TransactionCategory.SALARY


@dataclass(frozen=True)
class SourceWhitelist:
    """Applications allowed to feed the processor."""

    supported_packages: frozenset[str]
    sms_packages: frozenset[str] = frozenset()
    sms_senders: tuple[str, ...] = ()

    def is_supported(self, source: str) -> bool:
        return source in self.supported_packages or source in self.sms_packages

    def is_sms_app(self, source: str) -> bool:
        return source in self.sms_packages

    def is_bank_sms(self, title: str) -> bool:
        """Check whether an SMS title names a known bank sender."""
        title_upper = title.upper()
        return any(sender.upper() in title_upper for sender in self.sms_senders)


@dataclass(frozen=True)
class DedupSettings:
    window: timedelta = timedelta(minutes=5)
    max_recent: int = 20
    strategy: DedupStrategy = DedupStrategy.SOURCE_WINDOW
    amount_tolerance: Decimal = Decimal("0.01")
    merchant_similarity: float = 0.7


@dataclass(frozen=True)
class MerchantSettings:
    min_length: int = 2
    max_length: int = 50


@dataclass(frozen=True)
class PipelineSettings:
    dedup: DedupSettings = field(default_factory=DedupSettings)
    merchant: MerchantSettings = field(default_factory=MerchantSettings)
    expense_credits: int = 5
    income_credits: int = 0


@dataclass(frozen=True)
class PipelineRules:
    """Everything the processor needs, loaded once and never mutated."""

    keywords: KeywordTiers
    categories: CategoryTable
    currencies: CurrencyTable
    sources: SourceWhitelist
    settings: PipelineSettings = field(default_factory=PipelineSettings)

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> "PipelineRules":
        """Load all rule tables from a configuration directory.

        Args:
            config_dir: Directory holding the YAML files. Defaults to the
                ``NOTIFICATION_PROCESSOR_CONFIG_DIR`` environment variable,
                then to the packaged configuration.

        Raises:
            ValueError: If a required file is missing or a table is invalid
        """
        config_dir = resolve_config_dir(config_dir)

        rules = cls(
            keywords=load_keyword_tiers(config_dir),
            categories=load_category_table(config_dir),
            currencies=load_currency_table(config_dir),
            sources=load_source_whitelist(config_dir),
            settings=load_pipeline_settings(config_dir),
        )

        logger.info(
            f"Loaded rules from {config_dir}: "
            f"{len(rules.keywords.expense)} expense, {len(rules.keywords.income)} income, "
            f"{len(rules.keywords.info)} info keywords, "
            f"{len(rules.categories.groups)} category groups, "
            f"{len(rules.currencies.currencies)} currencies"
        )
        return rules


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    if config_dir:
        return Path(config_dir)
    env_dir = os.getenv(CONFIG_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return DEFAULT_CONFIG_DIR


def _read_yaml(path: Path, required: bool = True) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ValueError(f"Required configuration file not found: {path}")
        logger.debug(f"Optional configuration file not found, using defaults: {path}")
        return {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def load_keyword_tiers(config_dir: Path) -> KeywordTiers:
    schema = KeywordFileSchema.model_validate(_read_yaml(config_dir / KEYWORDS_FILE))
    return KeywordTiers(
        expense=tuple(schema.expense),
        income=tuple(schema.income),
        info=tuple(schema.info),
        income_descriptions=tuple(
            (entry.description, tuple(entry.keywords))
            for entry in schema.income_descriptions
        ),
        default_income_description=schema.default_income_description,
    )


def load_category_table(config_dir: Path) -> CategoryTable:
    schema = CategoryFileSchema.model_validate(_read_yaml(config_dir / CATEGORIES_FILE))
    return CategoryTable(
        groups=tuple(
            CategoryGroup(
                name=group.name,
                category=TransactionCategory.from_code(group.category),
                keywords=tuple(group.keywords),
            )
            for group in schema.groups
        ),
        default_category=TransactionCategory.from_code(schema.default_category),
        income_category=TransactionCategory.from_code(schema.income_category),
    )


def load_currency_table(config_dir: Path) -> CurrencyTable:
    schema = CurrencyFileSchema.model_validate(_read_yaml(config_dir / CURRENCIES_FILE))

    currencies = []
    for code, spec in schema.currencies.items():
        code = code.upper()
        aliases = {alias.strip().upper() for alias in spec.aliases if alias.strip()}
        aliases.add(code)
        currencies.append(Currency(
            code=code,
            symbol=spec.symbol,
            rate=spec.rate,
            aliases=frozenset(aliases),
        ))

    return CurrencyTable(currencies, schema.base_currency.upper())


def load_source_whitelist(config_dir: Path) -> SourceWhitelist:
    schema = SourcesFileSchema.model_validate(_read_yaml(config_dir / SOURCES_FILE))
    return SourceWhitelist(
        supported_packages=frozenset(schema.supported_packages),
        sms_packages=frozenset(schema.sms_packages),
        sms_senders=tuple(schema.sms_senders),
    )


def load_pipeline_settings(config_dir: Path) -> PipelineSettings:
    schema = SettingsFileSchema.model_validate(
        _read_yaml(config_dir / SETTINGS_FILE, required=False)
    )

    if schema.merchant.min_length > schema.merchant.max_length:
        raise ValueError("merchant.min_length cannot exceed merchant.max_length")

    return PipelineSettings(
        dedup=DedupSettings(
            window=timedelta(minutes=schema.dedup.window_minutes),
            max_recent=schema.dedup.max_recent,
            strategy=DedupStrategy(schema.dedup.strategy),
            amount_tolerance=schema.dedup.amount_tolerance,
            merchant_similarity=schema.dedup.merchant_similarity,
        ),
        merchant=MerchantSettings(
            min_length=schema.merchant.min_length,
            max_length=schema.merchant.max_length,
        ),
        expense_credits=schema.credits.expense,
        income_credits=schema.credits.income,
    )
