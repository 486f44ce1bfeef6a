"""
DCA Module

Recurring investment schedules: recurrence dates, lifecycle, historical
simulation and forward projection.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from .models import (
    Allocation,
    DCAExecution,
    DCASchedule,
    EffectiveStatus,
    ExecutionStatus,
    Frequency,
    ScheduleStatus,
)
from .recurrence import next_date, align_to_schedule, earliest_on_or_after
from .schedule import (
    DCASummary,
    ExecutionRetryError,
    ScheduleStateError,
    UpcomingExecution,
    build_execution,
    cancel,
    create_schedule,
    fail_execution,
    pause,
    record_execution,
    resume,
    retry_execution,
    split_allocations,
    upcoming_executions,
    update_amount,
    update_frequency,
)
from .simulator import (
    DCASimulation,
    MissingPriceError,
    constant_price_model,
    series_price_model,
    simulate,
    synthetic_price_model,
)
from .projector import BandModel, DCAProjection, project

__all__ = [
    'Allocation',
    'DCAExecution',
    'DCASchedule',
    'EffectiveStatus',
    'ExecutionStatus',
    'Frequency',
    'ScheduleStatus',
    'next_date',
    'align_to_schedule',
    'earliest_on_or_after',
    'DCASummary',
    'ExecutionRetryError',
    'ScheduleStateError',
    'UpcomingExecution',
    'build_execution',
    'cancel',
    'create_schedule',
    'fail_execution',
    'pause',
    'record_execution',
    'resume',
    'retry_execution',
    'split_allocations',
    'upcoming_executions',
    'update_amount',
    'update_frequency',
    'DCASimulation',
    'MissingPriceError',
    'constant_price_model',
    'series_price_model',
    'simulate',
    'synthetic_price_model',
    'BandModel',
    'DCAProjection',
    'project',
]
