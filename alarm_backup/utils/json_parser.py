# alarm_backup/utils/json_parser.py
"""
Helpers for parsing webhook and queue JSON payloads.
None of these raise on malformed input.
"""

import json
from typing import Any, Optional, Union


def safe_parse_json(raw: Union[str, bytes, bytearray, None]) -> Optional[Any]:
    """Parse JSON text or bytes safely. Returns None on error."""
    if raw is None:
        return None
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None


def get_nested(data: dict, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dict keys. Returns default if any key is missing."""
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key, default)
        if current is default:
            return default
    return current
