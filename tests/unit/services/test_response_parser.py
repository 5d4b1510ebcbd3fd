"""Tests for the provider response parser."""

import json

import pytest

from radar.services.normalizer import normalize, normalize_response
from radar.services.response_parser import content_to_text, lift_nested_layout, parse_openai_response


def _assistant_content(text: str):
    return [{"type": "text", "text": {"value": text, "annotations": []}}]


def test_parses_fenced_json_string():
    raw = '```json\n{"tldr": "short", "powerScore": 70}\n```'
    parsed = parse_openai_response(raw)

    assert parsed["tldr"] == "short"
    assert parsed["powerScore"] == 70


def test_parses_assistant_content_parts():
    raw = _assistant_content(json.dumps({"tl_dr": "from assistant"}))
    assert parse_openai_response(raw)["tl_dr"] == "from assistant"


def test_recovers_json_surrounded_by_prose():
    raw = 'Here is the analysis:\n{"risk_score": 40}\nLet me know if you need more.'
    assert parse_openai_response(raw)["risk_score"] == 40


def test_mapping_passes_through():
    assert parse_openai_response({"gravityScore": 12})["gravityScore"] == 12


def test_non_object_raises():
    with pytest.raises(ValueError):
        parse_openai_response("I could not produce a structured answer.")

    with pytest.raises(ValueError):
        parse_openai_response("[1, 2, 3]")


def test_lifts_nested_layout():
    nested = {
        "power": 72,
        "gravity": "55",
        "risk": 140,
        "tl_dr": "Summary",
        "moves": {
            "immediate_action": ["Ask for criteria", "Set a date"],
            "strategic_tool": "Keep a log",
            "analytical_check": "Compare timelines",
            "long_term_fix": "Build options",
        },
        "explanations": {"power": "They set the pace", "gravity": "Career impact", "risk": "Low"},
        "psychological_profile": {"primary_motivation": "Control", "hidden_driver": "Fear of loss"},
    }
    flat = lift_nested_layout(nested)

    assert flat["power_score"] == 72
    assert flat["gravity_score"] == 55
    assert flat["risk_score"] == 100
    assert flat["immediate_move"] == ["Ask for criteria", "Set a date"]
    assert flat["strategic_tool"] == "Keep a log"
    assert flat["power_explanation"] == "They set the pace"
    assert flat["psychologicalProfile"] == {"primaryMotivation": "Control", "hiddenDriver": "Fear of loss"}


def test_top_level_keys_win_over_nested():
    flat = lift_nested_layout({"immediate_move": "Top", "moves": {"immediate_action": "Nested"}})
    assert flat["immediate_move"] == "Top"


def test_lifting_does_not_invent_values():
    flat = lift_nested_layout({"tldr": "only"})
    assert "power_score" not in flat
    assert "immediate_move" not in flat


def test_parsed_nested_layout_normalizes():
    raw = json.dumps({"power": 60, "tl_dr": "s", "moves": {"immediate_action": "Act"}})
    result = normalize(parse_openai_response(_assistant_content(raw)))

    assert result.power_score == 60
    assert result.tldr == "s"
    assert result.immediate_move == "Act"


def test_content_to_text_stringifies_unknown_parts():
    text = content_to_text([{"type": "text", "text": {"value": "a"}}, 42])
    assert text == "a\n42"


def test_citation_marker_does_not_hide_the_object():
    raw = _assistant_content(
        'Based on the sources [1], here is the analysis:\n{"tldr": "real summary", "power_score": 70}'
    )
    parsed = parse_openai_response(raw)

    assert parsed["tldr"] == "real summary"
    assert parsed["power_score"] == 70


@pytest.mark.asyncio
async def test_citation_marker_survives_normalization():
    raw = 'Based on the sources [1], here is the analysis:\n{"tldr": "real summary", "power_score": 70}'
    result = await normalize_response(raw, parse_openai_response)

    assert result.tldr == "real summary"
    assert result.power_score == 70


def test_definitions_group_is_not_lifted():
    flat = lift_nested_layout({"definitions": {"power": "Who controls outcomes"}})
    assert "power_definition" not in flat


def test_radar_axes_are_clamped():
    flat = lift_nested_layout({"radar": {"control": 125000, "gravity": "-5", "strategy": "n/a"}})

    assert flat["radar"] == {"control": 100, "gravity": 0, "strategy": "n/a"}
