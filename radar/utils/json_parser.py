import json
import re
from typing import Any, Dict, List, Optional, Union

from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and trailing ``` fence."""
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def parse_json_safely(
    text: Optional[str], prefer_object: bool = False
) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, tolerating common formatting noise.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Prose before or after the JSON body
    - Trailing extra data after the first complete value

    Args:
        text: The text containing JSON
        prefer_object: Skip arrays embedded in prose (citation markers such
            as ``[1]``) and keep scanning for an object. An array is only
            returned when no object decodes.

    Returns:
        Parsed JSON value or None if nothing parseable was found
    """
    if not text:
        return None

    cleaned_text = strip_code_fences(text)

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Initial JSON parse failed: {e}, attempting repairs...")

    # Decode the first complete object or array, ignoring what surrounds it
    decoder = json.JSONDecoder()
    first_array = None
    for match in re.finditer(r"[\{\[]", cleaned_text):
        try:
            value, _ = decoder.raw_decode(cleaned_text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict) or not prefer_object:
            return value
        if first_array is None:
            first_array = value

    if first_array is not None:
        return first_array

    LOGGER.warning("Failed to parse JSON from model output", extra={"length": len(cleaned_text)})
    return None
