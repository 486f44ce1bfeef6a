"""
Unit Tests for Lots, Ledger and the Cost Basis Engine

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from hypothesis import given, settings, strategies as st
from pydantic import ValidationError

from lotwise.modules.costbasis import (
    HoldingPeriodCategory,
    InvalidLotError,
    LotLedger,
    LotOrder,
    PurchaseLot,
    summarize,
)

SCENARIO_AS_OF = date(2025, 3, 1)


class TestPurchaseLot:

    def test_from_purchase_derives_totals(self):
        lot = PurchaseLot.from_purchase(date(2024, 1, 1), 10, "100", "1.30", symbol="aapl")
        assert lot.total_base == Decimal("1000")
        assert lot.total_secondary == Decimal("769.23")
        assert lot.symbol == "AAPL"
        assert lot.purchased_at == datetime(2024, 1, 1)

    def test_price_secondary(self):
        lot = PurchaseLot.from_purchase(date(2024, 1, 1), 1, "125", "1.25")
        assert lot.price_secondary == Decimal("100")

    @pytest.mark.parametrize("shares", [0, -1, "-0.5"])
    def test_non_positive_shares_rejected(self, shares):
        with pytest.raises(ValidationError):
            PurchaseLot.from_purchase(date(2024, 1, 1), shares, "100", "1.30")

    @pytest.mark.parametrize("fx", [0, "-1.2"])
    def test_non_positive_fx_rejected(self, fx):
        with pytest.raises(ValidationError):
            PurchaseLot(
                purchased_at=date(2024, 1, 1), shares=1, price_base=100,
                total_base=100, total_secondary=80, fx_rate=fx,
            )

    def test_lot_is_immutable(self):
        lot = PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.30")
        with pytest.raises(ValidationError):
            lot.shares = Decimal(2)

    def test_long_term_is_strictly_more_than_threshold(self):
        lot = PurchaseLot.from_purchase(date(2024, 6, 1), 5, "120", "1.25")
        assert lot.holding_period_days(date(2025, 6, 1)) == 365
        assert not lot.is_long_term(date(2025, 6, 1))
        assert lot.is_long_term(date(2025, 6, 2))
        assert lot.holding_period_category(date(2025, 6, 2)) == HoldingPeriodCategory.LONG_TERM

    def test_holding_period_uses_purchase_timezone(self):
        tz = ZoneInfo("America/New_York")
        lot = PurchaseLot.from_purchase(datetime(2024, 1, 1, 23, 0, tzinfo=tz), 1, "100", "1.30")
        # 2024-01-02 04:30 UTC is still 2024-01-01 in New York
        as_of = datetime(2024, 1, 2, 4, 30, tzinfo=ZoneInfo("UTC"))
        assert lot.holding_period_days(as_of) == 0

    def test_category_metadata(self):
        assert HoldingPeriodCategory.LONG_TERM.display_name
        assert HoldingPeriodCategory.SHORT_TERM.tax_implication


class TestLotLedger:

    @pytest.fixture
    def ledger(self, three_lots):
        return LotLedger(three_lots)

    def test_conservation(self, ledger, three_lots):
        assert len(ledger) == 3
        assert ledger.total_shares("AAPL") == Decimal(18)
        assert ledger.total_cost_base("AAPL") == Decimal(2050)
        assert ledger.total_cost_secondary("AAPL") == sum(l.total_secondary for l in three_lots)

    def test_same_day_lots_are_not_merged(self):
        ledger = LotLedger()
        ledger.add_lot(PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.3", symbol="X"))
        ledger.add_lot(PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.3", symbol="X"))
        assert len(ledger.lots_for("X")) == 2

    def test_symbol_required_and_consistent(self):
        ledger = LotLedger()
        anonymous = PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.3")
        with pytest.raises(InvalidLotError):
            ledger.add_lot(anonymous)
        ledger.add_lot(anonymous, symbol="msft")
        assert ledger.symbols() == ["MSFT"]

        aapl = PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.3", symbol="AAPL")
        with pytest.raises(InvalidLotError):
            ledger.add_lot(aapl, symbol="MSFT")

    def test_partition_depends_on_as_of(self, ledger):
        assert len(ledger.long_term_lots(SCENARIO_AS_OF, "AAPL")) == 1
        assert len(ledger.short_term_lots(SCENARIO_AS_OF, "AAPL")) == 2

        later = date(2025, 6, 2)
        assert len(ledger.long_term_lots(later, "AAPL")) == 2
        assert len(ledger.short_term_lots(later, "AAPL")) == 1

    def test_grouped_by_holding_period(self, ledger):
        groups = ledger.grouped_by_holding_period(SCENARIO_AS_OF)
        assert len(groups[HoldingPeriodCategory.LONG_TERM]) == 1
        assert len(groups[HoldingPeriodCategory.SHORT_TERM]) == 2

    def test_lot_ordering(self):
        late = PurchaseLot.from_purchase(date(2024, 5, 1), 1, "100", "1.3", symbol="X")
        early = PurchaseLot.from_purchase(date(2024, 1, 1), 2, "100", "1.3", symbol="X")
        ledger = LotLedger([late, early])
        assert ledger.lots_for("x") == [late, early]
        assert ledger.lots_for("X", LotOrder.DATE_ASCENDING) == [early, late]
        assert ledger.lots_for("X", LotOrder.DATE_DESCENDING) == [late, early]

    def test_to_dataframe(self, ledger):
        df = ledger.to_dataframe()
        assert len(df) == 3
        assert set(df["symbol"]) == {"AAPL"}
        assert LotLedger().to_dataframe().empty


class TestCostBasisEngine:

    def test_scenario_three_lots(self, three_lots):
        summary = summarize(three_lots, as_of=SCENARIO_AS_OF)

        assert summary.symbol == "AAPL"
        assert summary.total_shares == Decimal(18)
        assert summary.total_cost_base == Decimal(2050)
        assert summary.average_cost_base == Decimal(2050) / Decimal(18)
        # 2024-01-01 is 425 days old, 2024-06-01 only 273
        assert [l.purchased_at.date() for l in summary.long_term_lots] == [date(2024, 1, 1)]
        assert len(summary.short_term_lots) == 2

    def test_scenario_after_second_lot_matures(self, three_lots):
        summary = summarize(three_lots, as_of=date(2025, 6, 2))
        assert [l.purchased_at.date() for l in summary.long_term_lots] == [
            date(2024, 1, 1), date(2024, 6, 1)
        ]
        assert [l.purchased_at.date() for l in summary.short_term_lots] == [date(2025, 2, 1)]

    def test_unrealized_pnl_and_tax_split(self, three_lots):
        summary = summarize(three_lots, as_of=SCENARIO_AS_OF, current_price="200", current_fx_rate="1.25")

        assert summary.current_value_base == Decimal(3600)
        assert summary.unrealized_pnl_base == Decimal(1550)
        assert summary.current_value_secondary == Decimal(2880)
        assert summary.total_cost_secondary == Decimal("1624.23")
        assert summary.unrealized_pnl_secondary == Decimal("1255.77")
        assert summary.is_profitable

        tax = summary.tax_summary()
        assert tax.long_term_shares == Decimal(10)
        assert tax.long_term_cost_base == Decimal(1000)
        assert tax.long_term_unrealized_gain == Decimal(1000)
        assert tax.short_term_shares == Decimal(8)
        assert tax.short_term_unrealized_gain == Decimal(550)
        assert tax.total_unrealized_gain == summary.unrealized_pnl_base

    def test_pnl_unknown_without_price(self, three_lots):
        summary = summarize(three_lots, as_of=SCENARIO_AS_OF)
        assert summary.current_value_base is None
        assert summary.unrealized_pnl_base is None
        assert summary.unrealized_pnl_percent is None
        assert summary.tax_summary().total_unrealized_gain is None
        assert not summary.is_profitable

    def test_with_market_data(self, three_lots):
        summary = summarize(three_lots, as_of=SCENARIO_AS_OF)
        priced = summary.with_market_data("100")
        assert priced.unrealized_pnl_base == Decimal(1800) - Decimal(2050)
        assert summary.current_price is None

    def test_weighted_fx_rate(self):
        lots = [
            PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.30"),
            PurchaseLot.from_purchase(date(2024, 2, 1), 3, "100", "1.20"),
        ]
        summary = summarize(lots, as_of=date(2024, 3, 1))
        assert summary.weighted_average_fx_rate == Decimal("1.225")
        assert summary.average_fx_rate == Decimal("1.25")

    def test_empty_lots_are_all_zero(self):
        summary = summarize([], as_of=date(2024, 1, 1), current_price="10")
        assert summary.total_shares == 0
        assert summary.total_cost_base == 0
        assert summary.average_cost_base == 0
        assert summary.average_cost_secondary == 0
        assert summary.weighted_average_fx_rate == 0
        assert summary.average_fx_rate == 0
        assert summary.long_term_percentage == 0
        assert summary.unrealized_pnl_base == 0
        assert summary.unrealized_pnl_percent == 0
        assert summary.first_purchase_date is None
        assert summary.holding_period_days is None

    def test_mixed_symbols_rejected(self):
        lots = [
            PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.3", symbol="AAPL"),
            PurchaseLot.from_purchase(date(2024, 1, 1), 1, "100", "1.3", symbol="MSFT"),
        ]
        with pytest.raises(InvalidLotError):
            summarize(lots, as_of=date(2024, 2, 1))

    @pytest.mark.parametrize("price, fx", [("-1", None), ("10", "0"), ("10", "-1.2")])
    def test_invalid_market_data_rejected(self, three_lots, price, fx):
        with pytest.raises(ValueError):
            summarize(three_lots, as_of=SCENARIO_AS_OF, current_price=price, current_fx_rate=fx)

    def test_ledger_summarize_matches_engine(self, three_lots):
        ledger = LotLedger(three_lots)
        assert ledger.summarize("aapl", SCENARIO_AS_OF) == summarize(three_lots, as_of=SCENARIO_AS_OF)


lot_strategy = st.builds(
    lambda offset, shares, price, fx: PurchaseLot.from_purchase(
        date(2020, 1, 1) + timedelta(days=offset), shares, price, fx, symbol="TEST"
    ),
    offset=st.integers(min_value=0, max_value=2000),
    shares=st.decimals(min_value=Decimal("0.0001"), max_value=Decimal("10000"), places=4),
    price=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("5000"), places=2),
    fx=st.decimals(min_value=Decimal("0.5"), max_value=Decimal("2"), places=4),
)


@given(lots=st.lists(lot_strategy, max_size=20), as_of_offset=st.integers(min_value=0, max_value=2500))
@settings(max_examples=100, deadline=None)
def test_invariant_conservation_and_tax_split(lots, as_of_offset):
    """Totals equal the lot sums, and the tax buckets partition them exactly."""
    as_of = date(2020, 1, 1) + timedelta(days=as_of_offset)
    summary = summarize(lots, as_of=as_of)

    assert summary.total_shares == sum((l.shares for l in lots), Decimal(0))
    assert summary.total_cost_base == sum((l.total_base for l in lots), Decimal(0))
    assert summary.short_term_shares + summary.long_term_shares == summary.total_shares
    assert summary.short_term_cost_base + summary.long_term_cost_base == summary.total_cost_base
