"""
Collaborator adapters: TTL cache, price models and the market data source.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""
