"""Action item derivation, completion math and checklist updates."""

import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from radar.core.exceptions import NotFoundError, ValidationError
from radar.database.models import ActionItem
from radar.repositories.action_item_repository import ActionItemRepository
from radar.repositories.analysis_repository import AnalysisRepository
from radar.schemas.radar import RadarResult
from radar.services.base_service import BaseService
from radar.utils.formatting import join_with_bullets
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

ACTION_SECTIONS = ("immediate_move", "strategic_tool", "analytical_check", "long_term_fix")

# Leading bullet glyph, dash, asterisk, or "1." / "2)" / "3]" numbering
_STEP_PREFIX = re.compile(r"^(?:[•\-\*]|\d+[\.\)\]])\s*")


def parse_action_steps(text: Optional[str]) -> List[str]:
    """Split move text into individual steps, dropping list markers."""
    if not text:
        return []
    steps = []
    for line in text.split("\n"):
        step = _STEP_PREFIX.sub("", line.strip()).strip()
        if step:
            steps.append(step)
    return steps


def _item_value(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def derive_action_items(result: RadarResult) -> List[Dict[str, Any]]:
    """Build action item rows for a normalized result.

    Items listed by the model under ``actionItems`` (``{section, text}``)
    are used when present. Otherwise each move text is split into steps.
    ``step_index`` counts from 0 within each section in input order.

    Args:
        result: Normalized analysis result

    Returns:
        List of ``{section, step_index, step_text}`` mappings
    """
    counters = {section: 0 for section in ACTION_SECTIONS}
    items: List[Dict[str, Any]] = []

    def add(section: str, text: str) -> None:
        items.append({"section": section, "step_index": counters[section], "step_text": text})
        counters[section] += 1

    if result.action_items is not None:
        for entry in result.action_items:
            section = _item_value(entry, "section")
            text = _item_value(entry, "text") or _item_value(entry, "step_text")
            if section in counters and isinstance(text, str) and text.strip():
                add(section, text.strip())
            else:
                LOGGER.debug("Skipping malformed action item", extra={"item": str(entry)[:200]})
        return items

    for section in ACTION_SECTIONS:
        for step in parse_action_steps(join_with_bullets(getattr(result, section))):
            add(section, step)
    return items


def _percentage(completed: int, total: int) -> int:
    if total == 0:
        return 0
    # Half rounds up, matching the dashboard
    return int(math.floor(100 * completed / total + 0.5))


def completion_by_section(items: Iterable[Any]) -> Dict[str, int]:
    """Per-section completion percentage; 0 for sections with no items.

    Args:
        items: Action items (rows or mappings) with ``section`` and ``completed``

    Returns:
        Mapping of every section to an integer percentage
    """
    totals = {section: 0 for section in ACTION_SECTIONS}
    done = {section: 0 for section in ACTION_SECTIONS}

    for item in items:
        section = _item_value(item, "section")
        if section not in totals:
            continue
        totals[section] += 1
        if _item_value(item, "completed"):
            done[section] += 1

    return {section: _percentage(done[section], totals[section]) for section in ACTION_SECTIONS}


def calculate_section_completion(items: Iterable[Any]) -> List[Dict[str, Any]]:
    """Section, total, completed and percentage for each fixed section."""
    items = list(items)
    report = []
    for section in ACTION_SECTIONS:
        subset = [item for item in items if _item_value(item, "section") == section]
        completed = sum(1 for item in subset if _item_value(item, "completed"))
        report.append({
            "section": section,
            "total": len(subset),
            "completed": completed,
            "percentage": _percentage(completed, len(subset)),
        })
    return report


def overall_completion(items: Iterable[Any]) -> int:
    """Completion across all sections, clamped to 0-100."""
    items = list(items)
    completed = sum(1 for item in items if _item_value(item, "completed"))
    return max(0, min(100, _percentage(completed, len(items))))


class ActionItemService(BaseService):
    """Reads and toggles the action item checklist for an analysis."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.action_item_repository = ActionItemRepository(session)
        self.analysis_repository = AnalysisRepository(session)
        super().__init__(self.action_item_repository)

    async def run(self, *args, **kwargs) -> Any:
        """Route to the handler for ``action``."""
        action = kwargs.get("action")

        if action == "list":
            return await self._list_for_analysis(kwargs["analysis_id"])
        elif action == "toggle":
            return await self._toggle(kwargs["item_id"], kwargs["completed"])
        else:
            raise ValidationError(f"Unknown action: {action}")

    def validate(self, *args, **kwargs):
        action = kwargs.get("action")

        if action == "list" and kwargs.get("analysis_id") is None:
            raise ValidationError("analysis_id is required")
        if action == "toggle":
            if kwargs.get("item_id") is None:
                raise ValidationError("item_id is required")
            if not isinstance(kwargs.get("completed"), bool):
                raise ValidationError("completed must be a boolean")

    async def execute_list(self, analysis_id: UUID) -> Dict[str, Any]:
        """Items for an analysis plus per-section completion.

        Raises:
            NotFoundError: If the analysis does not exist
        """
        return await self.execute(action="list", analysis_id=analysis_id)

    async def execute_toggle(self, item_id: UUID, completed: bool) -> ActionItem:
        """Set an item's completion and refresh the analysis total.

        Args:
            item_id: Action item id
            completed: New completion state

        Returns:
            The updated item

        Raises:
            NotFoundError: If the item does not exist
        """
        return await self.execute(action="toggle", item_id=item_id, completed=completed)

    async def _list_for_analysis(self, analysis_id: UUID) -> Dict[str, Any]:
        analysis = await self.analysis_repository.get_by_id(analysis_id)
        if analysis is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")

        items = await self.action_item_repository.list_for_analysis(analysis_id)
        return {
            "items": items,
            "completion": completion_by_section(items),
            "sections": calculate_section_completion(items),
            "overall": overall_completion(items),
        }

    async def _toggle(self, item_id: UUID, completed: bool) -> ActionItem:
        item = await self.action_item_repository.set_completed(item_id, completed)
        if item is None:
            raise NotFoundError(f"Action item {item_id} not found")

        siblings = await self.action_item_repository.list_for_analysis(item.analysis_id)
        await self.update_overall_completion(item.analysis_id, overall_completion(siblings))

        self.logger.info(
            "Action item toggled",
            extra={"item_id": str(item_id), "completed": completed},
        )
        return item

    async def update_overall_completion(self, analysis_id: UUID, percentage: float) -> None:
        """Store the analysis-level completion, clamped to 0-100."""
        clamped = max(0, min(100, int(round(percentage))))
        await self.analysis_repository.set_overall_completion(analysis_id, clamped)
