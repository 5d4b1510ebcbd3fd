"""Decode assistant and completion output into a flat JSON mapping.

Two response layouts are accepted. The flat layout already uses one key per
field. The nested layout groups the moves and explanations under
sub-objects and names the scores ``power``/``gravity``/``risk``; this
module lifts those onto the flat snake_case keys the normalizer reads.
"""

from typing import Any, Dict, Iterable, Optional

from radar.utils.formatting import clamp_score
from radar.utils.json_parser import parse_json_safely
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

NESTED_MOVES = {
    "immediate_action": "immediate_move",
    "immediate_move": "immediate_move",
    "strategic_tool": "strategic_tool",
    "analytical_check": "analytical_check",
    "long_term_fix": "long_term_fix",
}

NESTED_SCORES = {
    "power": "power_score",
    "gravity": "gravity_score",
    "risk": "risk_score",
}

SCORE_KEYS = (
    "power_score", "powerScore",
    "gravity_score", "gravityScore",
    "risk_score", "riskScore",
    "confidence", "confidenceLevel", "issue_confidence_pct",
)

PROFILE_KEYS = {
    "primary_motivation": "primaryMotivation",
    "motivation_evidence": "motivationEvidence",
    "hidden_driver": "hiddenDriver",
    "hidden_driver_signal": "hiddenDriverSignal",
    "emotional_state": "emotionalState",
    "emotional_evidence": "emotionalEvidence",
    "power_dynamic": "powerDynamic",
    "power_dynamic_evidence": "powerDynamicEvidence",
}


def content_to_text(raw: Any) -> str:
    """Flatten provider output into one string.

    Assistant messages arrive as a list of content parts, each carrying its
    text under ``text.value``. Parts without that shape are stringified.
    """
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        raw = [raw]
    if isinstance(raw, Iterable):
        return "\n".join(_fragment_text(fragment) for fragment in raw)
    return str(raw)


def _fragment_text(fragment: Any) -> str:
    if isinstance(fragment, dict):
        text = fragment.get("text")
        if isinstance(text, dict) and text.get("value") is not None:
            return str(text["value"])
        if isinstance(text, str):
            return text
    return str(fragment)


def _camel_profile(profile: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(profile, dict):
        return None
    camel = {}
    for key, value in profile.items():
        camel[PROFILE_KEYS.get(key, key)] = value
    return camel


def _clamped_or_kept(value: Any) -> Any:
    clamped = clamp_score(value)
    return clamped if clamped is not None else value


def lift_nested_layout(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``parsed`` with nested groups lifted to flat keys.

    Keys already present at the top level win over lifted values.
    """
    flat = dict(parsed)

    def lift(key: str, value: Any) -> None:
        if value is not None and flat.get(key) is None:
            flat[key] = value

    moves = parsed.get("moves")
    if isinstance(moves, dict):
        for source, target in NESTED_MOVES.items():
            lift(target, moves.get(source))

    explanations = parsed.get("explanations")
    if isinstance(explanations, dict):
        for axis in ("power", "gravity", "risk"):
            lift(f"{axis}_explanation", explanations.get(axis))

    for source, target in NESTED_SCORES.items():
        value = parsed.get(source)
        if not isinstance(value, (dict, list)):
            lift(target, value)

    profile = _camel_profile(parsed.get("psychological_profile"))
    if profile is not None and flat.get("psychologicalProfile") is None:
        flat["psychologicalProfile"] = profile

    for key in SCORE_KEYS:
        if flat.get(key) is not None:
            flat[key] = _clamped_or_kept(flat[key])

    radar = flat.get("radar")
    if isinstance(radar, dict):
        flat["radar"] = {axis: _clamped_or_kept(value) for axis, value in radar.items()}

    return flat


def parse_openai_response(raw: Any) -> Dict[str, Any]:
    """Parse raw provider output into a flat mapping.

    Args:
        raw: A JSON string, a list of message content parts, or a mapping

    Returns:
        Flat mapping ready for normalization

    Raises:
        ValueError: If no JSON object can be recovered from ``raw``
    """
    if isinstance(raw, dict) and "text" not in raw:
        parsed: Any = raw
    else:
        parsed = parse_json_safely(content_to_text(raw), prefer_object=True)

    if not isinstance(parsed, dict):
        raise ValueError("Response did not contain a JSON object")

    LOGGER.debug("Parsed provider response", extra={"keys": sorted(parsed.keys())[:40]})
    return lift_nested_layout(parsed)
