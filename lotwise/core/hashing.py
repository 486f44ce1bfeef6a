"""
Hashing Module - SHA256 Fingerprints

Canonical JSON serialization and SHA256 hashing. Used to prove that two
engine runs over identical inputs produced bit-for-bit identical output.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import dataclasses
import enum
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any


def canonical_json_dumps(obj: Any) -> str:
    """
    Serialize object to canonical JSON string.
    
    Ensures deterministic serialization for hashing:
    - Keys sorted alphabetically
    - No whitespace
    - Decimals kept as exact strings (no float rounding)
    - Dates as ISO-8601
    
    Example:
        >>> canonical_json_dumps({"amount": Decimal("123.45"), "date": date(2024, 1, 15)})
        '{"amount":"123.45","date":"2024-01-15"}'
    """
    def default_handler(o):
        if isinstance(o, Decimal):
            return str(o)
        elif isinstance(o, (date, datetime)):
            return o.isoformat()
        elif isinstance(o, enum.Enum):
            return o.value
        elif dataclasses.is_dataclass(o) and not isinstance(o, type):
            return dataclasses.asdict(o)
        elif hasattr(o, 'model_dump'):
            return o.model_dump()
        else:
            raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")
    
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':'),
        default=default_handler,
        ensure_ascii=True
    )


def calculate_sha256(data: Any) -> str:
    """
    Calculate SHA256 hash of data.
    
    Returns:
        SHA256 hex digest prefixed with 'sha256:'
    """
    json_str = canonical_json_dumps(data)
    hash_obj = hashlib.sha256(json_str.encode('utf-8'))
    return f"sha256:{hash_obj.hexdigest()}"


def verify_hash(data: Any, expected_hash: str) -> bool:
    """Verify that data matches expected hash."""
    return calculate_sha256(data) == expected_hash
