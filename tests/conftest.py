"""
Pytest configuration and fixtures for notification processor tests.
"""

import shutil
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable

import pytest
import yaml

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "python"))

from notification_processor.models import (  # noqa: E402
    TransactionCandidate,
    TransactionCategory,
    TransactionSource,
    TransactionType,
)
from notification_processor.processor import NotificationProcessor  # noqa: E402
from notification_processor.rules import DEFAULT_CONFIG_DIR, PipelineRules  # noqa: E402

BANK_PACKAGE = "rs.raiffeisenbank.mobilebanking"
OTHER_BANK_PACKAGE = "rs.intesasanpaolo.mbanking"
SMS_PACKAGE = "com.google.android.apps.messaging"


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the packaged config directory path."""
    return DEFAULT_CONFIG_DIR


@pytest.fixture
def tmp_config_dir(tmp_path: Path, config_dir: Path) -> Path:
    """Return a writable copy of the packaged configuration."""
    target = tmp_path / "config"
    shutil.copytree(config_dir, target)
    return target


@pytest.fixture
def write_yaml() -> Callable[[Path, dict], Path]:
    """Return a helper writing a mapping to a YAML file."""
    def _write(path: Path, data: dict) -> Path:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, allow_unicode=True)
        return path
    return _write


@pytest.fixture
def rules(config_dir: Path) -> PipelineRules:
    """Load the packaged rule tables."""
    return PipelineRules.load(config_dir)


@pytest.fixture
def currencies(rules: PipelineRules):
    """Return the packaged currency table."""
    return rules.currencies


@pytest.fixture
def processor(rules: PipelineRules) -> NotificationProcessor:
    """Create a processor over the packaged rules."""
    return NotificationProcessor(rules)


@pytest.fixture
def base_time() -> datetime:
    """Return a fixed notification arrival time."""
    return datetime(2025, 1, 15, 12, 0, 0)


@pytest.fixture
def make_candidate(base_time: datetime) -> Callable[..., TransactionCandidate]:
    """Return a factory for expense candidates."""
    def _make(
        amount: str = "1234.56",
        merchant: str | None = "MAXI",
        timestamp: datetime | None = None,
        source_app: str = BANK_PACKAGE,
        **overrides
    ) -> TransactionCandidate:
        fields = {
            "amount": Decimal(amount),
            "currency": "RSD",
            "category": TransactionCategory.FOOD_GROCERIES,
            "description": merchant or "Bank notification",
            "type": TransactionType.EXPENSE,
            "timestamp": timestamp or base_time,
            "source": TransactionSource.NOTIFICATION,
            "source_app": source_app,
            "merchant": merchant,
            "credits_earned": 5,
        }
        fields.update(overrides)
        return TransactionCandidate(**fields)
    return _make
