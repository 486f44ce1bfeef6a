"""
DCA Schedule Lifecycle

State machine and execution bookkeeping for recurring investment schedules.

Transitions:
    active  -> paused | cancelled | completed
    paused  -> active | cancelled
    cancelled, completed: terminal

Every transition takes an explicit `now`. Resume recomputes the next
execution date from `now` instead of reviving the date frozen at pause time.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from lotwise.config import SHARE_DECIMAL_PLACES
from lotwise.core.money import ZERO, HUNDRED, to_decimal, round_currency, round_shares
from lotwise.modules.dca.models import (
    Allocation,
    DCAExecution,
    DCASchedule,
    ExecutionStatus,
    Frequency,
    ScheduleStatus,
    match_awareness,
)
from lotwise.modules.dca.recurrence import earliest_on_or_after, next_date
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)


class ScheduleStateError(ValueError):
    """Raised for a transition the schedule's current status does not allow."""
    pass


class ExecutionRetryError(ValueError):
    """Raised when retrying an execution that did not fail."""
    pass


ALLOWED_TRANSITIONS: Dict[ScheduleStatus, Set[ScheduleStatus]] = {
    ScheduleStatus.ACTIVE: {ScheduleStatus.PAUSED, ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED},
    ScheduleStatus.PAUSED: {ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED},
    ScheduleStatus.CANCELLED: set(),
    ScheduleStatus.COMPLETED: set(),
}


def _transition(schedule: DCASchedule, next_status: ScheduleStatus, now: datetime) -> DCASchedule:
    if next_status not in ALLOWED_TRANSITIONS[schedule.status]:
        raise ScheduleStateError(
            f"Schedule {schedule.id}: invalid transition "
            f"{schedule.status.value} -> {next_status.value}"
        )
    logger.info(
        f"Schedule {schedule.status.value} -> {next_status.value}",
        extra={"context": {"schedule_id": schedule.id, "symbol": schedule.symbol}},
    )
    schedule.status = next_status
    schedule.updated_at = now
    return schedule


_MOMENT_FIELDS = (
    'start_date', 'end_date', 'next_execution_date', 'last_execution_date', 'created_at', 'updated_at'
)


def _align(schedule: DCASchedule, now) -> datetime:
    """
    Put now and every stored schedule datetime on one timezone awareness.

    The zone comes from now when it is aware, otherwise from the first aware
    value on the schedule. Naive values are read as wall-clock times in that
    zone. Returns now, aligned.
    """
    now = match_awareness(now, None)
    reference = now if now.tzinfo is not None else next(
        (value for value in (getattr(schedule, name) for name in _MOMENT_FIELDS)
         if value is not None and value.tzinfo is not None),
        None,
    )
    if reference is None:
        return now

    for name in _MOMENT_FIELDS:
        value = getattr(schedule, name)
        if value is not None and value.tzinfo is None:
            setattr(schedule, name, match_awareness(value, reference))
    return match_awareness(now, reference)


def _first_due(schedule: DCASchedule, now: datetime) -> datetime:
    """Earliest execution date on the schedule's cadence that is >= max(start, now)."""
    return earliest_on_or_after(
        schedule.start_date,
        max(schedule.start_date, now),
        schedule.frequency,
        schedule.preferred_day_of_week,
        schedule.preferred_day_of_month,
    )


def _step(schedule: DCASchedule, moment: datetime) -> datetime:
    return next_date(
        moment,
        schedule.frequency,
        schedule.preferred_day_of_week,
        schedule.preferred_day_of_month,
    )


def _completion_reason(schedule: DCASchedule, now: datetime) -> Optional[str]:
    if schedule.max_executions is not None and schedule.execution_count >= schedule.max_executions:
        return f"max executions ({schedule.max_executions}) reached"
    if schedule.end_date is not None:
        if schedule.has_ended(now):
            return "end date passed"
        if schedule.next_execution_date is not None and schedule.next_execution_date > schedule.end_date:
            return "no execution left before end date"
    return None


def _complete_if_done(schedule: DCASchedule, now: datetime) -> DCASchedule:
    reason = _completion_reason(schedule, now)
    if reason is not None:
        _transition(schedule, ScheduleStatus.COMPLETED, now)
        logger.info(f"Schedule {schedule.id} completed: {reason}")
    return schedule


def _require_open(schedule: DCASchedule, action: str) -> None:
    if schedule.status.is_terminal:
        raise ScheduleStateError(
            f"Cannot {action} schedule {schedule.id}: it is {schedule.status.value}"
        )


# ---- creation and transitions -----------------------------------------------

def create_schedule(
    account_id: str,
    symbol: str,
    amount,
    start_date,
    now: datetime,
    frequency: Frequency = Frequency.MONTHLY,
    end_date=None,
    max_executions: Optional[int] = None,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None,
    allocations: Optional[Iterable[Allocation]] = None,
    currency: str = "USD",
    symbol_name: Optional[str] = None
) -> DCASchedule:
    """
    Create an active schedule with its first execution date.

    The first execution is the earliest date >= max(start_date, now) that
    matches the frequency and day preferences. A schedule whose end date
    leaves no room for an execution is created already completed.

    Dates and naive datetimes are taken as wall-clock times in the zone of
    an aware now, so date-only start and end dates work with zoned clocks.

    Raises:
        pydantic.ValidationError: On invalid amount, days, dates or allocations
    """
    schedule = DCASchedule(
        account_id=account_id,
        symbol=symbol,
        symbol_name=symbol_name,
        allocations=list(allocations or []),
        amount=amount,
        currency=currency,
        frequency=frequency,
        preferred_day_of_week=preferred_day_of_week,
        preferred_day_of_month=preferred_day_of_month,
        start_date=start_date,
        end_date=end_date,
        max_executions=max_executions,
        created_at=now,
        updated_at=now,
    )
    now = _align(schedule, now)
    schedule.next_execution_date = _first_due(schedule, now)

    logger.info(
        f"Created {schedule.frequency.value} schedule {schedule.id} for {schedule.symbol}: "
        f"{schedule.amount} {schedule.currency}, first execution {schedule.next_execution_date}"
    )
    return _complete_if_done(schedule, now)


def pause(schedule: DCASchedule, now: datetime) -> DCASchedule:
    """Pause an active schedule. The next execution date stays frozen."""
    return _transition(schedule, ScheduleStatus.PAUSED, _align(schedule, now))


def resume(schedule: DCASchedule, now: datetime) -> DCASchedule:
    """
    Resume a paused schedule.

    The next execution date is recomputed as the first date on the
    schedule's cadence that is >= now. Missed dates are not replayed.
    """
    now = _align(schedule, now)
    _transition(schedule, ScheduleStatus.ACTIVE, now)
    schedule.next_execution_date = _first_due(schedule, now)
    return _complete_if_done(schedule, now)


def cancel(schedule: DCASchedule, now: datetime) -> DCASchedule:
    return _transition(schedule, ScheduleStatus.CANCELLED, _align(schedule, now))


def _check_recordable(schedule: DCASchedule, execution: DCAExecution) -> None:
    if execution.schedule_id != schedule.id:
        raise ScheduleStateError(
            f"Execution {execution.id} belongs to schedule {execution.schedule_id}, not {schedule.id}"
        )
    if execution.status not in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED):
        raise ScheduleStateError(
            f"Only completed or failed executions can be recorded, got {execution.status.value}"
        )

    if execution.retry_of is None:
        if schedule.status != ScheduleStatus.ACTIVE:
            raise ScheduleStateError(
                f"Cannot record execution on schedule {schedule.id}: it is {schedule.status.value}"
            )
        return

    # A retry settles a date that was already due, so it is accepted after
    # pause or completion; never once cancelled or past max executions
    if schedule.status == ScheduleStatus.CANCELLED:
        raise ScheduleStateError(f"Cannot record retry on schedule {schedule.id}: it is cancelled")
    if (
        execution.status == ExecutionStatus.COMPLETED
        and schedule.max_executions is not None
        and schedule.execution_count >= schedule.max_executions
    ):
        raise ScheduleStateError(
            f"Cannot record retry on schedule {schedule.id}: "
            f"max executions ({schedule.max_executions}) already reached"
        )


def record_execution(
    schedule: DCASchedule,
    execution: DCAExecution,
    now: Optional[datetime] = None
) -> DCASchedule:
    """
    Apply a completed or failed execution to its schedule.

    Completed executions add to total_invested, execution_count and
    last_execution_date. Both completed and failed executions advance
    next_execution_date by one recurrence step from the scheduled date,
    except a retry (retry_of set), whose failed original already did. A
    recording made late keeps stepping until the next date is >= now, so
    dates already behind now are not replayed.

    The schedule completes once max_executions is reached or no execution
    remains before end_date. A retry of a failed execution is still accepted
    after that completion (or while paused) and only updates the totals.

    Raises:
        ScheduleStateError: If the schedule cannot take the execution (not
            active, or cancelled for a retry), the execution belongs to
            another schedule, or it is still pending/cancelled
    """
    _check_recordable(schedule, execution)
    now = _align(schedule, now or execution.executed_at)
    executed_at = match_awareness(execution.executed_at, now)

    if execution.status == ExecutionStatus.COMPLETED:
        schedule.total_invested = schedule.total_invested + execution.amount
        schedule.execution_count = schedule.execution_count + 1
        if schedule.last_execution_date is None or executed_at > schedule.last_execution_date:
            schedule.last_execution_date = executed_at
    else:
        logger.warning(
            f"Execution failed: {execution.error_message}",
            extra={"context": {"execution_id": execution.id, "schedule_id": schedule.id}},
        )
    schedule.updated_at = now

    if schedule.status != ScheduleStatus.ACTIVE:
        logger.info(
            f"Recorded retry on {schedule.status.value} schedule",
            extra={"context": {"execution_id": execution.id, "schedule_id": schedule.id}},
        )
        return schedule

    if execution.retry_of is None:
        anchor = schedule.next_execution_date or executed_at
        schedule.next_execution_date = _step(schedule, anchor)
    while schedule.next_execution_date < now:
        schedule.next_execution_date = _step(schedule, schedule.next_execution_date)

    logger.debug(
        f"Schedule {schedule.id}: {schedule.execution_count} executions, "
        f"{schedule.total_invested} invested, next {schedule.next_execution_date}"
    )
    return _complete_if_done(schedule, now)


def update_amount(schedule: DCASchedule, amount, now: datetime) -> DCASchedule:
    _require_open(schedule, "update amount of")
    schedule.amount = amount
    schedule.updated_at = _align(schedule, now)
    return schedule


def update_frequency(
    schedule: DCASchedule,
    frequency: Frequency,
    now: datetime,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None
) -> DCASchedule:
    """
    Change frequency and day preferences.

    An active schedule gets a new next execution date on the new cadence;
    a paused one keeps its frozen date until resumed.
    """
    _require_open(schedule, "update frequency of")
    now = _align(schedule, now)
    schedule.frequency = frequency
    schedule.preferred_day_of_week = preferred_day_of_week
    schedule.preferred_day_of_month = preferred_day_of_month
    schedule.updated_at = now

    if schedule.status == ScheduleStatus.ACTIVE:
        schedule.next_execution_date = _first_due(schedule, now)
        _complete_if_done(schedule, now)

    return schedule


# ---- executions -------------------------------------------------------------

def build_execution(
    schedule: DCASchedule,
    price,
    executed_at: datetime,
    symbol: Optional[str] = None,
    amount=None,
    share_places: int = SHARE_DECIMAL_PLACES
) -> DCAExecution:
    """
    Completed execution buying amount / price shares.

    Shares are rounded to share_places. amount defaults to the schedule amount
    and symbol to the schedule symbol.

    Raises:
        ValueError: If price is not positive
    """
    price = to_decimal(price)
    if price <= 0:
        raise ValueError(f"Execution price must be positive: {price}")
    amount = schedule.amount if amount is None else to_decimal(amount)

    return DCAExecution(
        schedule_id=schedule.id,
        symbol=symbol or schedule.symbol,
        amount=amount,
        shares_acquired=round_shares(amount / price, share_places),
        price_per_share=price,
        executed_at=executed_at,
        status=ExecutionStatus.COMPLETED,
    )


def fail_execution(
    schedule: DCASchedule,
    error_message: str,
    executed_at: datetime,
    symbol: Optional[str] = None,
    amount=None
) -> DCAExecution:
    return DCAExecution(
        schedule_id=schedule.id,
        symbol=symbol or schedule.symbol,
        amount=schedule.amount if amount is None else amount,
        executed_at=executed_at,
        status=ExecutionStatus.FAILED,
        error_message=error_message,
    )


def retry_execution(
    failed: DCAExecution,
    price,
    executed_at: datetime,
    share_places: int = SHARE_DECIMAL_PLACES
) -> DCAExecution:
    """
    New completed execution replacing a failed one (linked through retry_of).

    Raises:
        ExecutionRetryError: If the execution did not fail
    """
    if failed.status != ExecutionStatus.FAILED:
        raise ExecutionRetryError(
            f"Only failed executions can be retried; {failed.id} is {failed.status.value}"
        )
    price = to_decimal(price)
    if price <= 0:
        raise ValueError(f"Execution price must be positive: {price}")

    return DCAExecution(
        schedule_id=failed.schedule_id,
        symbol=failed.symbol,
        amount=failed.amount,
        shares_acquired=round_shares(failed.amount / price, share_places),
        price_per_share=price,
        executed_at=executed_at,
        status=ExecutionStatus.COMPLETED,
        retry_of=failed.id,
    )


def split_allocations(schedule: DCASchedule, amount=None) -> Dict[str, Decimal]:
    """
    Per-symbol amounts for one execution.

    Each allocation gets its percentage rounded to the currency's minor
    units; the last allocation takes the remainder so the parts add up to
    the amount exactly.
    """
    amount = schedule.amount if amount is None else to_decimal(amount)
    if not schedule.allocations:
        return {schedule.symbol: amount}

    parts: Dict[str, Decimal] = {}
    allocated = ZERO
    for allocation in schedule.allocations[:-1]:
        part = round_currency(amount * allocation.percentage / HUNDRED, schedule.currency)
        parts[allocation.symbol] = part
        allocated += part
    parts[schedule.allocations[-1].symbol] = amount - allocated
    return parts


# ---- portfolio views --------------------------------------------------------

@dataclass(frozen=True)
class DCASummary:
    """Totals across a set of schedules."""

    total_schedules: int
    active_schedules: int
    paused_schedules: int
    total_monthly_investment: Decimal
    total_invested: Decimal
    total_executions: int

    @property
    def total_annual_investment(self) -> Decimal:
        return self.total_monthly_investment * 12

    @classmethod
    def from_schedules(cls, schedules: Iterable[DCASchedule]) -> 'DCASummary':
        schedules = list(schedules)
        active = [s for s in schedules if s.status == ScheduleStatus.ACTIVE]
        return cls(
            total_schedules=len(schedules),
            active_schedules=len(active),
            paused_schedules=sum(1 for s in schedules if s.status == ScheduleStatus.PAUSED),
            total_monthly_investment=sum((s.monthly_equivalent_amount for s in active), start=ZERO),
            total_invested=sum((s.total_invested for s in schedules), start=ZERO),
            total_executions=sum(s.execution_count for s in schedules),
        )


@dataclass(frozen=True)
class UpcomingExecution:
    schedule_id: str
    symbol: str
    amount: Decimal
    currency: str
    scheduled_for: datetime


def upcoming_executions(
    schedules: Iterable[DCASchedule],
    now: datetime,
    days: int = 30,
    limit: Optional[int] = None
) -> List[UpcomingExecution]:
    """
    Executions of active schedules due between now and now + days, by date.

    Overdue next dates are included (they are still pending). Each
    schedule's own end date and remaining execution count bound its entries.
    Naive and aware schedules can be mixed; naive values are wall-clock
    times in the zone of the aware side.
    """
    now = match_awareness(now, None)
    horizon = now + timedelta(days=days)
    upcoming: List[UpcomingExecution] = []

    for schedule in schedules:
        if schedule.status != ScheduleStatus.ACTIVE or schedule.next_execution_date is None:
            continue

        remaining = None
        if schedule.max_executions is not None:
            remaining = schedule.max_executions - schedule.execution_count

        current = schedule.next_execution_date
        until = match_awareness(horizon, current)
        end = None if schedule.end_date is None else match_awareness(schedule.end_date, current)
        count = 0
        while current <= until:
            if remaining is not None and count >= remaining:
                break
            if end is not None and current > end:
                break
            upcoming.append(UpcomingExecution(
                schedule_id=schedule.id,
                symbol=schedule.symbol,
                amount=schedule.amount,
                currency=schedule.currency,
                scheduled_for=current,
            ))
            count += 1
            current = _step(schedule, current)

    upcoming.sort(key=lambda u: match_awareness(u.scheduled_for, now))
    if limit is not None:
        upcoming = upcoming[:limit]
    return upcoming
