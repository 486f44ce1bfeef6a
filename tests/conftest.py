"""
Shared fixtures for the engine tests.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date, datetime

import pytest

from lotwise.modules.costbasis import PurchaseLot
from lotwise.modules.dca import Frequency, create_schedule


@pytest.fixture
def three_lots():
    """AAPL purchases: 10 @ 100 (FX 1.30), 5 @ 120 (FX 1.25), 3 @ 150 (FX 1.20)."""
    return [
        PurchaseLot.from_purchase(date(2024, 1, 1), 10, "100", "1.30", symbol="AAPL"),
        PurchaseLot.from_purchase(date(2024, 6, 1), 5, "120", "1.25", symbol="AAPL"),
        PurchaseLot.from_purchase(date(2025, 2, 1), 3, "150", "1.20", symbol="AAPL"),
    ]


@pytest.fixture
def monthly_schedule():
    """$500/month VTI schedule starting 2024-01-15, created on 2024-01-01."""
    return create_schedule(
        account_id="acct-1",
        symbol="vti",
        amount="500",
        start_date=datetime(2024, 1, 15),
        now=datetime(2024, 1, 1),
        frequency=Frequency.MONTHLY,
    )
