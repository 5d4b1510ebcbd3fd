"""Tests for action item derivation and completion tracking."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from radar.core.exceptions import NotFoundError, ValidationError
from radar.schemas.radar import RadarResult
from radar.services.action_item_service import (
    ACTION_SECTIONS,
    ActionItemService,
    calculate_section_completion,
    completion_by_section,
    derive_action_items,
    overall_completion,
    parse_action_steps,
)

ANALYSIS_ID = uuid.uuid4()


def _item(section, completed):
    return SimpleNamespace(section=section, completed=completed, analysis_id=ANALYSIS_ID)


class TestParseActionSteps:
    def test_strips_bullets_and_numbering(self):
        text = "• First\n- Second\n* Third\n1. Fourth\n2) Fifth\n3] Sixth\nSeventh"
        assert parse_action_steps(text) == ["First", "Second", "Third", "Fourth", "Fifth", "Sixth", "Seventh"]

    def test_drops_blank_lines(self):
        assert parse_action_steps("\n  \n• Only\n\n") == ["Only"]

    def test_empty_input(self):
        assert parse_action_steps(None) == []
        assert parse_action_steps("") == []


class TestDeriveActionItems:
    def test_from_move_text(self):
        result = RadarResult(
            immediate_move="• Ask for criteria\n• Set a date",
            strategic_tool=["Keep a log"],
            long_term_fix="Build options",
        )

        assert derive_action_items(result) == [
            {"section": "immediate_move", "step_index": 0, "step_text": "Ask for criteria"},
            {"section": "immediate_move", "step_index": 1, "step_text": "Set a date"},
            {"section": "strategic_tool", "step_index": 0, "step_text": "Keep a log"},
            {"section": "long_term_fix", "step_index": 0, "step_text": "Build options"},
        ]

    def test_explicit_items_take_precedence(self):
        result = RadarResult(
            immediate_move="Ignored",
            action_items=[
                {"section": "analytical_check", "text": "Compare timelines"},
                {"section": "immediate_move", "text": "Call HR"},
                {"section": "analytical_check", "text": " Check peers "},
            ],
        )

        assert derive_action_items(result) == [
            {"section": "analytical_check", "step_index": 0, "step_text": "Compare timelines"},
            {"section": "immediate_move", "step_index": 0, "step_text": "Call HR"},
            {"section": "analytical_check", "step_index": 1, "step_text": "Check peers"},
        ]

    def test_malformed_explicit_items_skipped(self):
        result = RadarResult(
            action_items=[
                {"section": "unknown", "text": "x"},
                {"section": "immediate_move", "text": ""},
                "not a mapping",
                {"section": "immediate_move", "text": "Valid"},
            ]
        )

        assert derive_action_items(result) == [
            {"section": "immediate_move", "step_index": 0, "step_text": "Valid"},
        ]

    def test_nothing_to_derive(self):
        assert derive_action_items(RadarResult()) == []


class TestCompletion:
    def test_empty_sections_report_zero(self):
        assert completion_by_section([]) == {section: 0 for section in ACTION_SECTIONS}

    def test_rounds_half_up(self):
        items = [_item("immediate_move", True), _item("immediate_move", False)]
        items += [_item("strategic_tool", True), _item("strategic_tool", False), _item("strategic_tool", False)]
        items += [_item("analytical_check", True)] * 2 + [_item("analytical_check", False)]
        items += [_item("long_term_fix", True)] * 5 + [_item("long_term_fix", False)] * 3

        completion = completion_by_section(items)

        assert completion["immediate_move"] == 50
        assert completion["strategic_tool"] == 33
        assert completion["analytical_check"] == 67
        assert completion["long_term_fix"] == 63

    def test_accepts_mappings_and_ignores_unknown_sections(self):
        items = [{"section": "immediate_move", "completed": True}, {"section": "other", "completed": True}]
        assert completion_by_section(items)["immediate_move"] == 100

    def test_section_report(self):
        report = calculate_section_completion([_item("long_term_fix", True), _item("long_term_fix", False)])

        assert [entry["section"] for entry in report] == list(ACTION_SECTIONS)
        assert report[3] == {"section": "long_term_fix", "total": 2, "completed": 1, "percentage": 50}
        assert report[0]["percentage"] == 0

    def test_overall(self):
        assert overall_completion([]) == 0
        assert overall_completion([_item("immediate_move", True), _item("long_term_fix", False)]) == 50


@pytest.fixture
def service(mock_session):
    svc = ActionItemService(mock_session)
    svc.action_item_repository = MagicMock()
    svc.analysis_repository = MagicMock()
    svc.analysis_repository.set_overall_completion = AsyncMock()
    return svc


class TestActionItemService:
    @pytest.mark.asyncio
    async def test_list_includes_completion(self, service):
        items = [_item("immediate_move", True), _item("immediate_move", False)]
        service.analysis_repository.get_by_id = AsyncMock(return_value=SimpleNamespace(id=ANALYSIS_ID))
        service.action_item_repository.list_for_analysis = AsyncMock(return_value=items)

        listing = await service.execute_list(ANALYSIS_ID)

        assert listing["items"] == items
        assert listing["completion"]["immediate_move"] == 50
        assert listing["overall"] == 50
        assert len(listing["sections"]) == 4

    @pytest.mark.asyncio
    async def test_list_unknown_analysis(self, service):
        service.analysis_repository.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await service.execute_list(ANALYSIS_ID)

    @pytest.mark.asyncio
    async def test_toggle_refreshes_overall_completion(self, service):
        toggled = _item("immediate_move", True)
        service.action_item_repository.set_completed = AsyncMock(return_value=toggled)
        service.action_item_repository.list_for_analysis = AsyncMock(
            return_value=[toggled, _item("strategic_tool", True), _item("strategic_tool", False)]
        )
        item_id = uuid.uuid4()

        result = await service.execute_toggle(item_id, True)

        assert result is toggled
        service.action_item_repository.set_completed.assert_awaited_once_with(item_id, True)
        service.analysis_repository.set_overall_completion.assert_awaited_once_with(ANALYSIS_ID, 67)

    @pytest.mark.asyncio
    async def test_toggle_unknown_item(self, service):
        service.action_item_repository.set_completed = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await service.execute_toggle(uuid.uuid4(), False)

    @pytest.mark.asyncio
    async def test_toggle_requires_boolean(self, service):
        with pytest.raises(ValidationError):
            await service.execute_toggle(uuid.uuid4(), "yes")

    @pytest.mark.asyncio
    async def test_overall_completion_is_clamped(self, service):
        await service.update_overall_completion(ANALYSIS_ID, 140)
        service.analysis_repository.set_overall_completion.assert_awaited_once_with(ANALYSIS_ID, 100)
