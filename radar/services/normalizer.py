"""Normalize heterogeneous analysis payloads into a RadarResult.

Upstream producers spell the same field several ways (camelCase,
snake_case, legacy names). ``CANONICAL_ALIASES`` lists, per canonical
field, the source keys in priority order; the first key present with a
non-None value wins. The table is the single place where spellings are
added.
"""

import json
from dataclasses import asdict
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from radar.schemas.radar import RadarAxes, RadarResult
from radar.services.capabilities import call_capability
from radar.services.response_parser import content_to_text
from radar.utils.formatting import clamp_score, coerce_number, join_with_bullets
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

CANONICAL_ALIASES: Dict[str, Tuple[str, ...]] = {
    "power_score": ("powerScore", "power_score"),
    "gravity_score": ("gravityScore", "gravity_score"),
    "risk_score": ("riskScore", "risk_score"),
    "confidence": ("confidence", "confidenceLevel", "issue_confidence_pct"),
    "tldr": ("tldr", "tl_dr", "summary"),
    "whats_happening": ("whatsHappening", "whats_happening"),
    "why_it_matters": ("whyItMatters", "why_it_matters"),
    "narrative_summary": ("narrativeSummary", "narrative_summary"),
    "immediate_move": ("immediateMove", "immediate_move"),
    "strategic_tool": ("strategicTool", "strategic_tool"),
    "analytical_check": ("analyticalCheck", "analytical_check"),
    "long_term_fix": ("longTermFix", "long_term_fix"),
    "power_explanation": ("powerExplanation", "power_expl", "power_explanation"),
    "gravity_explanation": ("gravityExplanation", "gravity_expl", "gravity_explanation"),
    "risk_explanation": ("riskExplanation", "risk_expl", "risk_explanation"),
    "issue_type": ("issueType", "issue_type"),
    "issue_category": ("issueCategory", "issue_category"),
    "issue_layer": ("issueLayer", "issue_layer"),
    "diagnostic_state": ("diagnosticState", "diagnostic_state"),
    "diagnostic_so_what": ("diagnosticSoWhat", "diagnostic_so_what"),
    "diagnosis_primary": ("diagnosis_primary", "diagnosisPrimary"),
    "diagnosis_secondary": ("diagnosis_secondary", "diagnosisSecondary"),
    "diagnosis_tertiary": ("diagnosis_tertiary", "diagnosisTertiary"),
    "radar_red_1": ("radar_red_1", "radarRed1"),
    "radar_red_2": ("radar_red_2", "radarRed2"),
    "radar_red_3": ("radar_red_3", "radarRed3"),
    "radar_url": ("radarUrl", "radar_url"),
    "chart_html": ("chartHtml", "chart_html"),
    "tug_of_war_html": ("tugOfWarHtml", "tug_of_war_html"),
    "radar_html": ("radarHtml", "radar_html"),
    "risk_html": ("riskHtml", "risk_html"),
    "psychological_profile": ("psychologicalProfile", "psychological_profile"),
    "sources_confirmed": ("sources_confirmed", "sourcesConfirmed"),
    "references": ("references",),
    "latency_ms": ("latency_ms", "latencyMs"),
}

RADAR_AXES: Tuple[str, ...] = ("control", "gravity", "confidence", "stability", "strategy")

# Canonical field -> key in the flattened HTTP payload
RESPONSE_KEYS: Dict[str, str] = {
    "power_score": "powerScore",
    "gravity_score": "gravityScore",
    "risk_score": "riskScore",
    "confidence": "confidence",
    "tldr": "tldr",
    "whats_happening": "whatsHappening",
    "why_it_matters": "whyItMatters",
    "narrative_summary": "narrativeSummary",
    "immediate_move": "immediateMove",
    "strategic_tool": "strategicTool",
    "analytical_check": "analyticalCheck",
    "long_term_fix": "longTermFix",
    "power_explanation": "powerExplanation",
    "gravity_explanation": "gravityExplanation",
    "risk_explanation": "riskExplanation",
    "issue_type": "issueType",
    "issue_category": "issueCategory",
    "issue_layer": "issueLayer",
    "diagnostic_state": "diagnosticState",
    "diagnostic_so_what": "diagnosticSoWhat",
    "diagnosis_primary": "diagnosisPrimary",
    "diagnosis_secondary": "diagnosisSecondary",
    "diagnosis_tertiary": "diagnosisTertiary",
    "radar": "radar",
    "radar_red_1": "radarRed1",
    "radar_red_2": "radarRed2",
    "radar_red_3": "radarRed3",
    "radar_url": "radarUrl",
    "chart_html": "chartHtml",
    "tug_of_war_html": "tugOfWarHtml",
    "radar_html": "radarHtml",
    "risk_html": "riskHtml",
    "psychological_profile": "psychologicalProfile",
    "action_items": "actionItems",
    "sources_confirmed": "sourcesConfirmed",
    "references": "references",
    "latency_ms": "latencyMs",
}

_SCORE_FIELDS = {"power_score", "gravity_score", "risk_score", "confidence"}


def _first_present(source: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for key in aliases:
        value = source.get(key)
        if value is not None:
            return value
    return None


def normalize(raw: Mapping[str, Any]) -> RadarResult:
    """Map a parsed payload onto the canonical result.

    Pure: absent fields become None, ``radar`` is always populated, and
    ``action_items`` survives only when the source value is a list.

    Args:
        raw: Parsed payload mapping

    Returns:
        RadarResult: Canonical result
    """
    values = {field: _first_present(raw, aliases) for field, aliases in CANONICAL_ALIASES.items()}

    radar_source = raw.get("radar")
    if not isinstance(radar_source, Mapping):
        radar_source = {}
    values["radar"] = RadarAxes(**{axis: radar_source.get(axis) for axis in RADAR_AXES})

    action_items = _first_present(raw, ("actionItems", "action_items"))
    values["action_items"] = action_items if isinstance(action_items, list) else None

    return RadarResult(**values)


def text_fallback(raw: Any, tldr_chars: int = 1200, narrative_chars: int = 2000) -> RadarResult:
    """Build a minimal result from unparseable output.

    Args:
        raw: Provider output of any shape
        tldr_chars: Maximum length of ``tldr``
        narrative_chars: Maximum length of ``narrative_summary``

    Returns:
        RadarResult carrying only the text
    """
    if isinstance(raw, (str, list, tuple)) or raw is None:
        text = content_to_text(raw)
    else:
        text = json.dumps(raw, ensure_ascii=False, default=str)

    return RadarResult(
        tldr=text[:tldr_chars],
        narrative_summary=text[:narrative_chars],
        sources_confirmed=True,
    )


async def normalize_response(
    raw: Any,
    parser: Optional[Callable[[Any], Any]],
    *,
    builtin: bool = False,
    latency_ms: Optional[int] = None,
    tldr_chars: int = 1200,
    narrative_chars: int = 2000,
) -> RadarResult:
    """Turn raw provider output into a RadarResult; never raises.

    A bound parser is tried first. When it fails, or when nothing can be
    parsed, the output degrades to the plain-text result.

    Args:
        raw: Raw invocation output
        parser: Bound parse capability, sync or async
        builtin: Whether the built-in provider path produced ``raw``
        latency_ms: Measured invocation latency
        tldr_chars: Fallback ``tldr`` length
        narrative_chars: Fallback ``narrative_summary`` length

    Returns:
        RadarResult: Canonical result
    """
    result: Optional[RadarResult] = None

    if parser is not None:
        try:
            parsed = await call_capability(parser, raw)
            if isinstance(parsed, RadarResult):
                result = parsed
            elif isinstance(parsed, Mapping):
                result = normalize(parsed)
            else:
                raise ValueError(f"Parser returned {type(parsed).__name__}")
        except Exception as e:
            LOGGER.warning(
                "Response parser failed, using plain-text fallback",
                extra={"error": str(e)},
            )
    elif isinstance(raw, Mapping):
        result = normalize(raw)

    if result is None:
        result = text_fallback(raw, tldr_chars, narrative_chars)

    if builtin:
        if result.sources_confirmed is None:
            result.sources_confirmed = True
    if result.latency_ms is None and latency_ms is not None:
        result.latency_ms = latency_ms

    return result


def _text(value: Any) -> str:
    rendered = join_with_bullets(value)
    return rendered if rendered is not None else ""


def _score(value: Any) -> float:
    score = clamp_score(value)
    return score if score is not None else 0


def _latency(value: Any) -> int:
    number = coerce_number(value)
    return int(number) if number is not None else 0


def flatten_for_response(result: RadarResult) -> Dict[str, Any]:
    """Flatten a result into the HTTP payload with display-safe defaults.

    Scores and radar axes are clamped to 0-100 and, like latency, become 0
    when absent or non-numeric, matching the stored row. Text defaults to
    "". Every canonical field maps to exactly one key of the returned dict.
    """
    payload: Dict[str, Any] = {}

    for field in RadarResult.field_names():
        key = RESPONSE_KEYS[field]
        value = getattr(result, field)

        if field == "radar":
            payload[key] = {axis: _score(v) for axis, v in asdict(value).items()}
        elif field == "latency_ms":
            payload[key] = _latency(value)
        elif field in _SCORE_FIELDS:
            payload[key] = _score(value)
        elif field == "psychological_profile":
            payload[key] = value if isinstance(value, Mapping) else None
        elif field == "action_items":
            payload[key] = list(value) if value is not None else []
        elif field == "sources_confirmed":
            payload[key] = bool(value)
        elif field == "references":
            payload[key] = value if isinstance(value, (list, dict)) else _text(value)
        else:
            payload[key] = _text(value)

    return payload
