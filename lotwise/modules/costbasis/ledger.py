"""
Lot Ledger - Append-Only Purchase History

Ordered collection of PurchaseLots keyed by symbol. Each purchase event is
kept as a distinct lot (no merging of same-day lots) so tax-lot accounting
stays exact.

Classification into short/long-term is evaluated against the as_of moment
passed by the caller; the same lot can move from short- to long-term between
two queries.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from lotwise.config import LONG_TERM_THRESHOLD_DAYS
from lotwise.modules.costbasis.engine import CostBasisSummary, summarize
from lotwise.modules.costbasis.lots import PurchaseLot, HoldingPeriodCategory, InvalidLotError
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)


class LotOrder(str, Enum):
    """Ordering of a lot view."""
    INSERTION = "insertion"
    DATE_ASCENDING = "date_ascending"
    DATE_DESCENDING = "date_descending"


class LotLedger:
    """
    Append-only lot ledger.
    
    The ledger is the source of truth for cost basis; summaries are
    recomputed from it on every query.
    """
    
    def __init__(self, lots: Optional[Iterable[PurchaseLot]] = None):
        self._lots: Dict[str, List[PurchaseLot]] = defaultdict(list)
        for lot in lots or []:
            self.add_lot(lot)
    
    def add_lot(self, lot: PurchaseLot, symbol: Optional[str] = None) -> None:
        """
        Append a lot.
        
        Args:
            lot: Validated purchase lot
            symbol: Symbol to file it under (defaults to lot.symbol)
        
        Raises:
            InvalidLotError: If no symbol is known or it conflicts with lot.symbol
        """
        key = (symbol or lot.symbol or '').strip().upper()
        if not key:
            raise InvalidLotError(f"Lot {lot.lot_id} has no symbol")
        if lot.symbol and lot.symbol != key:
            raise InvalidLotError(
                f"Lot {lot.lot_id} belongs to {lot.symbol}, not {key}"
            )
        
        self._lots[key].append(lot)
        logger.debug(f"Added lot {lot.lot_id} to {key} ({len(self._lots[key])} lots)")
    
    def symbols(self) -> List[str]:
        """Symbols with at least one lot, sorted."""
        return sorted(k for k, v in self._lots.items() if v)
    
    def lots_for(self, symbol: str, order: LotOrder = LotOrder.INSERTION) -> List[PurchaseLot]:
        """All lots for a symbol in the requested order (a copy)."""
        lots = list(self._lots.get(symbol.strip().upper(), []))
        
        if order == LotOrder.DATE_ASCENDING:
            lots.sort(key=lambda lot: lot.purchased_at)
        elif order == LotOrder.DATE_DESCENDING:
            lots.sort(key=lambda lot: lot.purchased_at, reverse=True)
        
        return lots
    
    def _select(self, symbol: Optional[str]) -> List[PurchaseLot]:
        if symbol:
            return self.lots_for(symbol)
        all_lots = []
        for key in self.symbols():
            all_lots.extend(self._lots[key])
        return all_lots
    
    def total_shares(self, symbol: Optional[str] = None) -> Decimal:
        return sum((lot.shares for lot in self._select(symbol)), start=Decimal(0))
    
    def total_cost_base(self, symbol: Optional[str] = None) -> Decimal:
        return sum((lot.total_base for lot in self._select(symbol)), start=Decimal(0))
    
    def total_cost_secondary(self, symbol: Optional[str] = None) -> Decimal:
        return sum((lot.total_secondary for lot in self._select(symbol)), start=Decimal(0))
    
    def short_term_lots(
        self,
        as_of: Union[date, datetime],
        symbol: Optional[str] = None,
        threshold_days: int = LONG_TERM_THRESHOLD_DAYS
    ) -> List[PurchaseLot]:
        """Lots held threshold_days or less as of the given moment."""
        return [
            lot for lot in self._select(symbol)
            if not lot.is_long_term(as_of, threshold_days)
        ]
    
    def long_term_lots(
        self,
        as_of: Union[date, datetime],
        symbol: Optional[str] = None,
        threshold_days: int = LONG_TERM_THRESHOLD_DAYS
    ) -> List[PurchaseLot]:
        """Lots held more than threshold_days as of the given moment."""
        return [
            lot for lot in self._select(symbol)
            if lot.is_long_term(as_of, threshold_days)
        ]
    
    def grouped_by_holding_period(
        self,
        as_of: Union[date, datetime],
        symbol: Optional[str] = None,
        threshold_days: int = LONG_TERM_THRESHOLD_DAYS
    ) -> Dict[HoldingPeriodCategory, List[PurchaseLot]]:
        groups: Dict[HoldingPeriodCategory, List[PurchaseLot]] = defaultdict(list)
        for lot in self._select(symbol):
            groups[lot.holding_period_category(as_of, threshold_days)].append(lot)
        return dict(groups)
    
    def summarize(
        self,
        symbol: str,
        as_of: Union[date, datetime],
        current_price: Optional[Decimal] = None,
        current_fx_rate: Optional[Decimal] = None
    ) -> CostBasisSummary:
        """Cost basis summary for one symbol (see engine.summarize)."""
        return summarize(
            self.lots_for(symbol),
            as_of=as_of,
            current_price=current_price,
            current_fx_rate=current_fx_rate,
            symbol=symbol,
        )
    
    def to_dataframe(self) -> pd.DataFrame:
        """Flatten the ledger into a DataFrame, one row per lot."""
        rows = []
        for key in self.symbols():
            for lot in self._lots[key]:
                rows.append({
                    "symbol": key,
                    "purchased_at": lot.purchased_at,
                    "shares": lot.shares,
                    "price_base": lot.price_base,
                    "total_base": lot.total_base,
                    "total_secondary": lot.total_secondary,
                    "fx_rate": lot.fx_rate,
                })
        
        if not rows:
            return pd.DataFrame(columns=[
                "symbol", "purchased_at", "shares", "price_base",
                "total_base", "total_secondary", "fx_rate"
            ])
        
        return pd.DataFrame(rows)
    
    def __len__(self) -> int:
        return sum(len(v) for v in self._lots.values())
