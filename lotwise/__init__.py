"""
lotwise - Cost Basis and DCA Projection Engine

Pure-compute library for tax-lot accounting and Dollar-Cost-Averaging
schedules.

Packages:
- core: Decimal money helpers and audit hashing
- utils: logging configuration
- lib: collaborator adapters (cache, price models, market data)
- modules: business logic (costbasis, dca)

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__version__ = "0.1.0"

__all__ = ['core', 'utils', 'lib', 'modules']
