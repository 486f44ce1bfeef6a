"""
Price Models

A price model is a plain callable `(moment) -> Decimal` that the DCA
simulator asks for the price on each execution date. Three are provided:
- constant_price_model: one price for every date
- series_price_model: last observation on or before the date in a pandas Series
- synthetic_price_model: seeded geometric random walk (demo data only)

YFinancePriceSource.price_model wraps fetched closes with series_price_model.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import math
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, Union

import numpy as np
import pandas as pd

from lotwise.core.money import to_decimal

Moment = Union[date, datetime]
PriceModel = Callable[[Moment], Optional[Decimal]]


class MissingPriceError(LookupError):
    """Raised when a price model has no price for the requested date."""
    pass


def constant_price_model(price) -> PriceModel:
    price = to_decimal(price)

    def model(moment: Moment) -> Decimal:
        return price

    return model


def series_price_model(prices: pd.Series) -> PriceModel:
    """
    Price model over a pandas Series indexed by date.

    Returns the last observation on or before the requested moment, so
    weekends and holidays resolve to the previous close.

    Raises (from the model):
        MissingPriceError: If the moment is before the first observation
    """
    series = prices.dropna().sort_index()
    series.index = pd.DatetimeIndex(series.index)
    index_tz = series.index.tz

    def model(moment: Moment) -> Decimal:
        ts = pd.Timestamp(moment)
        if index_tz is not None and ts.tz is None:
            ts = ts.tz_localize(index_tz)
        elif index_tz is None and ts.tz is not None:
            ts = ts.tz_localize(None)

        if series.empty or ts < series.index[0]:
            raise MissingPriceError(f"No price on or before {moment}")
        return to_decimal(float(series.asof(ts)))

    return model


def synthetic_price_model(
    start_price,
    start_date: Moment,
    days: int,
    annual_drift: float = 0.07,
    annual_volatility: float = 0.20,
    seed: int = 42
) -> PriceModel:
    """
    Seeded geometric random walk with one close per calendar day.

    The whole path is drawn up front from numpy's default_rng(seed), so
    lookups never consume randomness and repeated runs are identical.
    """
    start_price = float(to_decimal(start_price))
    origin = start_date.date() if isinstance(start_date, datetime) else start_date

    rng = np.random.default_rng(seed)
    dt = 1.0 / 365.0
    log_returns = rng.normal(
        (annual_drift - 0.5 * annual_volatility ** 2) * dt,
        annual_volatility * math.sqrt(dt),
        size=days,
    )
    path = start_price * np.exp(np.concatenate([[0.0], np.cumsum(log_returns)]))
    closes = [Decimal(f"{p:.2f}") for p in path]

    def model(moment: Moment) -> Decimal:
        day = moment.date() if isinstance(moment, datetime) else moment
        offset = (day - origin).days
        if offset < 0 or offset >= len(closes):
            raise MissingPriceError(f"Synthetic path has no price for {day}")
        return closes[offset]

    return model
