"""
Engine Configuration

Policy constants used across the cost basis and DCA modules. Each value can
be overridden through an environment variable read once at import time.
Functions accept these as keyword defaults so a caller can override per call.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import os
from decimal import Decimal


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return Decimal(default)
    return Decimal(raw.strip())


# Holding period (days) above which a lot is long-term (US-style)
LONG_TERM_THRESHOLD_DAYS = _env_int('LOTWISE_LONG_TERM_DAYS', 365)

# Fractional-share precision for executions and simulations
SHARE_DECIMAL_PLACES = _env_int('LOTWISE_SHARE_PLACES', 4)

# Flat uncertainty band applied to projected values (0.10 = +/-10%)
PROJECTION_BAND_FRACTION = _env_decimal('LOTWISE_PROJECTION_BAND', '0.10')

# Calendar used when a naive datetime reaches the recurrence calculator
DEFAULT_TIMEZONE = os.getenv('LOTWISE_DEFAULT_TIMEZONE', 'UTC')

# Monthly schedules never land after this day (sidesteps short months)
MAX_PREFERRED_DAY_OF_MONTH = _env_int('LOTWISE_MAX_PREFERRED_DAY_OF_MONTH', 28)

# Seconds a fetched market price stays valid in the price cache
PRICE_CACHE_TTL_SECONDS = _env_int('LOTWISE_PRICE_CACHE_TTL', 3600)

# Allocation percentages must sum to 100 within this tolerance
ALLOCATION_TOLERANCE = Decimal("0.01")
