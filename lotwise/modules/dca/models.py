"""
DCA Domain Models

Schedules, executions and their status enums. Schedules and executions are
validated once, when they are constructed (the creation boundary); reads
never re-validate.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator, root_validator

from lotwise.config import ALLOCATION_TOLERANCE, SHARE_DECIMAL_PLACES
from lotwise.core.money import to_decimal, safe_divide


class Frequency(str, Enum):
    """Investment frequency options."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def executions_per_year(self) -> int:
        return {
            Frequency.DAILY: 365,
            Frequency.WEEKLY: 52,
            Frequency.BIWEEKLY: 26,
            Frequency.MONTHLY: 12,
            Frequency.QUARTERLY: 4,
        }[self]

    @property
    def average_days_between(self) -> int:
        return {
            Frequency.DAILY: 1,
            Frequency.WEEKLY: 7,
            Frequency.BIWEEKLY: 14,
            Frequency.MONTHLY: 30,
            Frequency.QUARTERLY: 91,
        }[self]

    @property
    def display_name(self) -> str:
        if self is Frequency.BIWEEKLY:
            return "Every 2 Weeks"
        return self.value.capitalize()

    @classmethod
    def normalize(cls, value: str) -> 'Frequency':
        """Map loose spellings ('Bi-Weekly', 'every 2 weeks') to a Frequency."""
        clean = value.strip().lower().replace("-", "").replace("_", "").replace(" ", "")
        aliases = {
            "daily": cls.DAILY,
            "weekly": cls.WEEKLY,
            "biweekly": cls.BIWEEKLY,
            "fortnightly": cls.BIWEEKLY,
            "every2weeks": cls.BIWEEKLY,
            "monthly": cls.MONTHLY,
            "quarterly": cls.QUARTERLY,
        }
        result = aliases.get(clean)
        if result is None:
            raise ValueError(f"Unknown frequency: '{value}'")
        return result


class ScheduleStatus(str, Enum):
    """Stored lifecycle state of a schedule."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED)


class EffectiveStatus(str, Enum):
    """Status as seen at a given moment (adds 'pending execution')."""

    ACTIVE = "active"
    PAUSED = "paused"
    PENDING_EXECUTION = "pending_execution"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _to_datetime(v):
    if isinstance(v, date) and not isinstance(v, datetime):
        return datetime.combine(v, time.min)
    return v


def match_awareness(moment, reference: Optional[datetime]) -> datetime:
    """
    Bring moment to the timezone awareness of reference.

    Naive values are wall-clock times in the zone of the aware side: a naive
    moment takes reference's zone, and an aware moment compared with a naive
    reference keeps only its own wall clock. Dates become midnight.
    """
    moment = _to_datetime(moment)
    if reference is None or (moment.tzinfo is None) == (reference.tzinfo is None):
        return moment
    if moment.tzinfo is None:
        zone = reference.tzinfo
        # Round trip through UTC moves a wall time inside a DST gap onto a real instant
        return moment.replace(tzinfo=zone).astimezone(timezone.utc).astimezone(zone)
    return moment.replace(tzinfo=None)


def _months_between(start: datetime, end: datetime) -> int:
    """Whole calendar months from start to end."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


class Allocation(BaseModel):
    """One symbol's share of a multi-symbol schedule."""

    symbol: str
    percentage: Decimal
    name: Optional[str] = None

    class Config:
        frozen = True

    @validator('symbol')
    def normalize_symbol(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError('Allocation symbol is required')
        return v

    @validator('percentage', pre=True)
    def parse_percentage(cls, v):
        v = to_decimal(v)
        if v <= 0 or v > 100:
            raise ValueError(f'Allocation percentage must be in (0, 100]: {v}')
        return v


class DCASchedule(BaseModel):
    """
    A recurring investment schedule.

    Mutated only through the transitions in modules.dca.schedule
    (pause/resume/cancel/record_execution). Paused and terminal schedules keep
    a frozen next_execution_date.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    account_id: str
    symbol: str
    symbol_name: Optional[str] = None
    allocations: List[Allocation] = Field(default_factory=list)

    amount: Decimal
    currency: str = "USD"
    frequency: Frequency = Frequency.MONTHLY

    # 1 = Sunday ... 7 = Saturday
    preferred_day_of_week: Optional[int] = None
    preferred_day_of_month: Optional[int] = None

    start_date: datetime
    end_date: Optional[datetime] = None
    max_executions: Optional[int] = None

    next_execution_date: Optional[datetime] = None
    last_execution_date: Optional[datetime] = None

    status: ScheduleStatus = ScheduleStatus.ACTIVE
    total_invested: Decimal = Decimal(0)
    execution_count: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        validate_assignment = True

    @validator('symbol')
    def normalize_symbol(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError('Schedule symbol is required')
        return v

    @validator('allocations')
    def allocations_sum_to_100(cls, v):
        if not v:
            return v
        symbols = [a.symbol for a in v]
        if len(set(symbols)) != len(symbols):
            raise ValueError(f'Duplicate symbols in allocations: {symbols}')
        total = sum((a.percentage for a in v), start=Decimal(0))
        if abs(total - 100) > ALLOCATION_TOLERANCE:
            raise ValueError(f'Allocation percentages must sum to 100, got {total}')
        return v

    @validator('amount', 'total_invested', pre=True)
    def parse_decimal(cls, v):
        return to_decimal(v)

    @validator('amount')
    def amount_positive(cls, v):
        if v <= 0:
            raise ValueError(f'Amount per execution must be positive: {v}')
        return v

    @validator('total_invested')
    def total_non_negative(cls, v):
        if v < 0:
            raise ValueError(f'Total invested cannot be negative: {v}')
        return v

    @validator('currency')
    def normalize_currency(cls, v):
        v = v.strip().upper()
        if len(v) != 3:
            raise ValueError(f'Currency must be a 3-letter code: {v}')
        return v

    @validator('frequency', pre=True)
    def parse_frequency(cls, v):
        if isinstance(v, str) and not isinstance(v, Frequency):
            return Frequency.normalize(v)
        return v

    @validator('preferred_day_of_week')
    def valid_day_of_week(cls, v):
        if v is not None and not 1 <= v <= 7:
            raise ValueError(f'Preferred day of week must be 1 (Sunday) to 7 (Saturday): {v}')
        return v

    @validator('preferred_day_of_month')
    def valid_day_of_month(cls, v):
        if v is not None and not 1 <= v <= 31:
            raise ValueError(f'Preferred day of month must be 1 to 31: {v}')
        return v

    @validator('start_date', 'end_date', 'next_execution_date', 'last_execution_date',
               'created_at', 'updated_at', pre=True)
    def parse_dates(cls, v):
        return _to_datetime(v)

    @validator('end_date')
    def end_after_start(cls, v, values):
        start = values.get('start_date')
        if v is not None and start is not None and match_awareness(v, start) < start:
            raise ValueError(f'End date {v} is before start date {start}')
        return v

    @validator('max_executions')
    def max_executions_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError(f'Max executions must be positive: {v}')
        return v

    @validator('execution_count')
    def execution_count_non_negative(cls, v):
        if v < 0:
            raise ValueError(f'Execution count cannot be negative: {v}')
        return v

    # ---- derived --------------------------------------------------------

    @property
    def is_active(self) -> bool:
        """Not cancelled or completed (may be paused)."""
        return not self.status.is_terminal

    @property
    def is_paused(self) -> bool:
        return self.status == ScheduleStatus.PAUSED

    @property
    def display_name(self) -> str:
        if self.symbol_name:
            return f"{self.symbol_name} ({self.symbol})"
        return self.symbol

    @property
    def average_per_execution(self) -> Decimal:
        if self.execution_count == 0:
            return self.amount
        return self.total_invested / Decimal(self.execution_count)

    @property
    def estimated_annual_investment(self) -> Decimal:
        return self.amount * Decimal(self.frequency.executions_per_year)

    @property
    def monthly_equivalent_amount(self) -> Decimal:
        """Amount per execution converted to a per-month contribution."""
        return self.amount * Decimal(self.frequency.executions_per_year) / Decimal(12)

    def has_ended(self, now: datetime) -> bool:
        return self.end_date is not None and self.end_date < match_awareness(now, self.end_date)

    def effective_status(self, now: datetime) -> EffectiveStatus:
        if self.status == ScheduleStatus.CANCELLED:
            return EffectiveStatus.CANCELLED
        if self.status == ScheduleStatus.COMPLETED or self.has_ended(now):
            return EffectiveStatus.COMPLETED
        if self.status == ScheduleStatus.PAUSED:
            return EffectiveStatus.PAUSED
        due = self.next_execution_date
        if due is not None and due <= match_awareness(now, due):
            return EffectiveStatus.PENDING_EXECUTION
        return EffectiveStatus.ACTIVE

    def days_until_next_execution(self, now: datetime) -> Optional[int]:
        if self.next_execution_date is None:
            return None
        return (self.next_execution_date.date() - now.date()).days

    def estimated_remaining_executions(self, now: datetime) -> Optional[int]:
        """
        Rough count of executions left, None for open-ended schedules.

        Bounded by both end_date and max_executions when both are set.
        """
        estimates = []

        if self.max_executions is not None:
            estimates.append(max(self.max_executions - self.execution_count, 0))

        if self.end_date is not None:
            remaining_days = (self.end_date.date() - now.date()).days
            if remaining_days <= 0:
                estimates.append(0)
            elif self.frequency == Frequency.DAILY:
                estimates.append(remaining_days)
            elif self.frequency == Frequency.WEEKLY:
                estimates.append(remaining_days // 7)
            elif self.frequency == Frequency.BIWEEKLY:
                estimates.append(remaining_days // 14)
            elif self.frequency == Frequency.MONTHLY:
                estimates.append(_months_between(now, self.end_date))
            else:
                estimates.append(_months_between(now, self.end_date) // 3)

        return min(estimates) if estimates else None


class DCAExecution(BaseModel):
    """
    One firing of a schedule.

    Immutable once recorded. A retry of a failed execution is a new record
    pointing back through retry_of.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    schedule_id: str
    symbol: str
    amount: Decimal
    shares_acquired: Decimal = Decimal(0)
    price_per_share: Decimal = Decimal(0)
    executed_at: datetime
    status: ExecutionStatus = ExecutionStatus.COMPLETED
    error_message: Optional[str] = None
    retry_of: Optional[str] = None

    class Config:
        frozen = True

    @validator('amount', 'shares_acquired', 'price_per_share', pre=True)
    def parse_decimal(cls, v):
        return to_decimal(v)

    @validator('amount', 'shares_acquired', 'price_per_share')
    def non_negative(cls, v):
        if v < 0:
            raise ValueError(f'Value cannot be negative: {v}')
        return v

    @validator('executed_at', pre=True)
    def parse_executed_at(cls, v):
        return _to_datetime(v)

    @root_validator(skip_on_failure=True)
    def check_status_consistency(cls, values):
        status = values.get('status')
        shares = values.get('shares_acquired')
        price = values.get('price_per_share')
        amount = values.get('amount')

        if status == ExecutionStatus.COMPLETED:
            if shares <= 0 or price <= 0:
                raise ValueError('Completed execution needs positive shares and price')
            # Shares are rounded, so allow half a share-increment of price plus a cent
            tolerance = price * Decimal(1).scaleb(-SHARE_DECIMAL_PLACES) + Decimal("0.01")
            if abs(shares * price - amount) > tolerance:
                raise ValueError(
                    f'shares * price ({shares * price}) does not match amount {amount}'
                )
        elif status == ExecutionStatus.FAILED:
            if shares != 0:
                raise ValueError('Failed execution cannot carry shares')
            if not values.get('error_message'):
                raise ValueError('Failed execution requires an error message')

        return values

    @property
    def total_cost(self) -> Decimal:
        return self.shares_acquired * self.price_per_share

    @property
    def effective_price(self) -> Decimal:
        return safe_divide(self.amount, self.shares_acquired)
