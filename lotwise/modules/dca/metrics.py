"""Return metrics for DCA simulations: absolute return, simple annualized return and XIRR."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import newton

from lotwise.core.money import ZERO, HUNDRED, safe_divide
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)


def _day_number(moment: Union[date, datetime]) -> int:
    if isinstance(moment, datetime):
        moment = moment.date()
    return moment.toordinal()


def xirr(
    dates: Sequence[Union[date, datetime]],
    amounts: Sequence[Union[Decimal, float]],
    guess: float = 0.1
) -> Optional[float]:
    """
    Money-weighted annual return of a DCA plan.

    Each execution is an outflow (negative amount) on its date and the
    holding's final value is one inflow on the valuation date; the result is
    the rate r solving sum(amount_i / (1 + r) ** (days_i / 365)) == 0, with
    days_i counted from the first cash flow. dca_cash_flows builds the
    inputs from a simulation.

    Returns None (and logs a warning) when the flows have no sign change,
    when Newton's method does not converge, or when it settles outside
    -99 % .. +1000 % a year.

    Raises:
        ValueError: If dates and amounts differ in length
    """
    if len(dates) != len(amounts):
        raise ValueError(f"Got {len(dates)} dates for {len(amounts)} cash flows")

    if len(dates) < 2:
        logger.warning("XIRR needs at least one execution and a final value")
        return None

    if not (any(a < 0 for a in amounts) and any(a > 0 for a in amounts)):
        logger.warning("XIRR needs both executions (outflows) and a final value (inflow)")
        return None

    flows = np.array([float(a) for a in amounts], dtype=float)
    first_day = _day_number(dates[0])
    years = np.array([(_day_number(d) - first_day) / 365.0 for d in dates])

    def npv(rate: float) -> float:
        return np.sum(flows / (1.0 + rate) ** years)

    def npv_slope(rate: float) -> float:
        return np.sum(-years * flows / (1.0 + rate) ** (years + 1))

    try:
        rate = newton(func=npv, x0=guess, fprime=npv_slope, maxiter=100, tol=1e-6)
    except (RuntimeError, ValueError) as e:
        logger.warning(f"XIRR did not converge over {len(flows)} cash flows: {e}")
        return None

    if not -0.99 <= rate <= 10.0:
        logger.warning(f"XIRR of {rate * 100:.2f}% discarded as implausible")
        return None

    logger.debug(f"XIRR over {len(flows)} cash flows: {rate * 100:.2f}%")
    return float(rate)


def calculate_absolute_return(
    total_invested: Decimal,
    current_value: Decimal,
    total_withdrawn: Decimal = ZERO
) -> Tuple[Decimal, Decimal]:
    """
    Absolute return and return percentage.

    Formula:
        Absolute Return = (Current Value + Total Withdrawn) - Total Invested
        Return % = (Absolute Return / Total Invested) x 100, 0 with nothing invested
    """
    absolute_return = current_value + total_withdrawn - total_invested
    return_pct = safe_divide(absolute_return, total_invested) * HUNDRED
    return absolute_return, return_pct


def simple_annualized_return(
    return_percent: Decimal,
    start: Union[date, datetime],
    end: Union[date, datetime]
) -> Decimal:
    """Total return percent divided by elapsed years (not compounded); 0 for an empty period."""
    days = _day_number(end) - _day_number(start)
    if days <= 0:
        return ZERO
    years = Decimal(days) / Decimal(365)
    return return_percent / years


def dca_cash_flows(
    execution_dates: Sequence[Union[date, datetime]],
    amount: Decimal,
    final_date: Union[date, datetime],
    final_value: Decimal
) -> Tuple[List[Union[date, datetime]], List[Decimal]]:
    """Cash flows for XIRR: one outflow per execution and the final value as an inflow."""
    dates = list(execution_dates) + [final_date]
    amounts = [-amount for _ in execution_dates] + [final_value]
    return dates, amounts
