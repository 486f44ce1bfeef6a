"""
Modules Package

Modular Monolith Architecture - Business Logic Layer

Modules:
- costbasis: lot ledger, cost basis / tax split engine and payload decoder
- dca: recurring schedules, recurrence, simulation and projection

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['costbasis', 'dca']
