"""
Pytest configuration: project root on sys.path and shared rule fixtures.
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.rules.models import Rule  # noqa: E402

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def risk_rule() -> Rule:
    """Single-condition rule from the trigger manager's default form."""
    return Rule(
        id="risk-high",
        name="Risk score above 70",
        trigger_type="risk_threshold",
        conditions=[{"metric": "risk_score", "operator": ">", "threshold": 70}],
        logic_operator="AND",
        is_active=True,
        cooldown_minutes=60,
        priority=50,
    )
