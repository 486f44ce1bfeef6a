"""
Market data source backed by yfinance.

Supplies the already-resolved values the engine consumes: a current price
for cost basis summaries, a base-per-secondary FX rate, and historical close
series wrapped as simulator price models. Results go through an injected
TTLCache; failures raise MarketDataError rather than falling back to
made-up numbers.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Union

import pandas as pd
import yfinance as yf

from lotwise.core.money import to_decimal
from lotwise.lib.cache import TTLCache
from lotwise.lib.price_models import PriceModel, series_price_model
from lotwise.utils.logging_config import setup_logger, get_perf_logger

logger = setup_logger(__name__)

# Suppress yfinance error spam for delisted tickers
logging.getLogger('yfinance').setLevel(logging.CRITICAL)


class MarketDataError(RuntimeError):
    """Raised when a price or FX rate cannot be fetched."""
    pass


def normalize_ticker(ticker: str) -> str:
    """
    Normalize ticker format for Yahoo Finance compatibility.

    'BRK/B' and 'BRK.B' become 'BRK-B' (class shares use a hyphen).
    """
    if not ticker:
        return ticker

    ticker = ticker.strip().upper()
    ticker = re.sub(r'[/\.]([A-Z])$', r'-\1', ticker)
    ticker = re.sub(r'/([A-Z]+)$', r'-\1', ticker)
    return ticker


def _as_date(moment: Union[date, datetime]) -> date:
    return moment.date() if isinstance(moment, datetime) else moment


class YFinancePriceSource:
    """
    Price and FX lookups against Yahoo Finance.

    Args:
        cache: Shared TTLCache (a private one is created if omitted)
    """

    def __init__(self, cache: Optional[TTLCache] = None):
        self.cache = cache if cache is not None else TTLCache()

    def current_price(self, symbol: str) -> Decimal:
        """
        Latest price for symbol.

        Raises:
            MarketDataError: If Yahoo returns no usable price
        """
        ticker = normalize_ticker(symbol)
        return self.cache.get_or_set(("price", ticker), lambda: self._fetch_current(ticker))

    def fx_rate(self, base_currency: str, secondary_currency: str) -> Decimal:
        """
        Units of base currency per unit of secondary currency (e.g. USD per GBP).

        Raises:
            MarketDataError: If Yahoo returns no usable rate
        """
        base = base_currency.strip().upper()
        secondary = secondary_currency.strip().upper()
        if base == secondary:
            return Decimal(1)
        # GBPUSD=X quotes USD per GBP
        fx_ticker = f"{secondary}{base}=X"
        return self.cache.get_or_set(("fx", fx_ticker), lambda: self._fetch_current(fx_ticker))

    def history(
        self,
        symbol: str,
        start: Union[date, datetime],
        end: Union[date, datetime]
    ) -> pd.Series:
        """
        Daily closes from start to end inclusive, indexed by date.

        Raises:
            MarketDataError: If the range has no data
        """
        ticker = normalize_ticker(symbol)
        start_day, end_day = _as_date(start), _as_date(end)
        key = ("history", ticker, start_day.isoformat(), end_day.isoformat())
        return self.cache.get_or_set(key, lambda: self._fetch_history(ticker, start_day, end_day))

    def price_model(
        self,
        symbol: str,
        start: Union[date, datetime],
        end: Union[date, datetime]
    ) -> PriceModel:
        """Simulator price model over the historical closes of symbol."""
        return series_price_model(self.history(symbol, start, end))

    def invalidate(self, symbol: Optional[str] = None) -> int:
        """Drop cached entries for one symbol, or everything."""
        if symbol is None:
            count = len(self.cache)
            self.cache.clear()
            return count
        ticker = normalize_ticker(symbol)
        return self.cache.invalidate_where(lambda key: len(key) > 1 and key[1] == ticker)

    # ---- fetchers -------------------------------------------------------

    def _fetch_current(self, ticker: str) -> Decimal:
        try:
            stock = yf.Ticker(ticker)

            price = None
            try:
                price = stock.fast_info.last_price
            except (AttributeError, KeyError):
                price = None

            if price is None or price <= 0:
                hist = stock.history(period='5d')
                if not hist.empty and 'Close' in hist.columns:
                    price = float(hist['Close'].dropna().iloc[-1])
        except Exception as e:
            raise MarketDataError(f"{ticker}: price fetch failed: {e}") from e

        if price is None or price <= 0:
            raise MarketDataError(f"{ticker}: no price data available")

        logger.info(f"{ticker}: {float(price):.4f}")
        return to_decimal(float(price))

    def _fetch_history(self, ticker: str, start: date, end: date) -> pd.Series:
        with get_perf_logger(logger, f"history {ticker} {start}..{end}", threshold_ms=3000):
            try:
                # yfinance treats end as exclusive
                hist = yf.Ticker(ticker).history(start=start, end=end + timedelta(days=1), interval='1d')
            except Exception as e:
                raise MarketDataError(f"{ticker}: history fetch failed: {e}") from e

        if hist is None or hist.empty or 'Close' not in hist.columns:
            raise MarketDataError(f"{ticker}: no history between {start} and {end}")

        closes = hist['Close'].dropna()
        index = pd.DatetimeIndex(closes.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        closes.index = index.normalize()
        closes.name = ticker
        logger.info(f"{ticker}: {len(closes)} closes between {start} and {end}")
        return closes
