"""
Core Kernel Module

Foundational utilities shared by every business module.

Components:
- money: exact Decimal arithmetic and currency-aware rounding
- hashing: SHA256 fingerprints for reproducible engine outputs

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['money', 'hashing']
