"""Small value-shaping helpers shared by the normalizer and repositories."""

import json
from typing import Any, Optional

BULLET = "•"


def join_with_bullets(value: Any) -> Optional[str]:
    """Render list-valued text as one bullet per line.

    Strings pass through unchanged and ``None`` stays ``None``. Any other
    scalar is stringified.

    Args:
        value: A string, a list of items, or None

    Returns:
        The rendered string or None
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        lines = [str(item).strip() for item in value if item is not None and str(item).strip()]
        return "\n".join(f"{BULLET} {line}" for line in lines)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def coerce_number(value: Any) -> Optional[float]:
    """Return ``value`` as a float when it is numeric or a numeric string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.strip().rstrip("%").strip()
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def clamp_score(value: Any, low: float = 0, high: float = 100) -> Optional[float]:
    """Coerce a score and clamp it into ``[low, high]``."""
    number = coerce_number(value)
    if number is None:
        return None
    return max(low, min(high, number))
