"""
Cost Basis Module

Lot-level cost tracking in a base and a secondary currency, aggregated into
per-symbol summaries with short/long-term tax splits. payload decodes the
cost basis API response into lots.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from .lots import PurchaseLot, HoldingPeriodCategory, InvalidLotError
from .ledger import LotLedger, LotOrder
from .engine import CostBasisSummary, TaxSummary, summarize
from .payload import CostBasisPayload, PayloadError, parse_cost_basis_payload, parse_lot

__all__ = [
    "PurchaseLot",
    "HoldingPeriodCategory",
    "InvalidLotError",
    "LotLedger",
    "LotOrder",
    "CostBasisSummary",
    "TaxSummary",
    "summarize",
    "CostBasisPayload",
    "PayloadError",
    "parse_cost_basis_payload",
    "parse_lot",
]
