from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from radar.database.models import ActionItem
from radar.repositories.base_repository import BaseRepository


class ActionItemRepository(BaseRepository[ActionItem]):
    """Repository for action item checklist rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ActionItem)

    async def create_for_analysis(
        self,
        analysis_id: UUID,
        user_id: str,
        items: Sequence[Dict[str, Any]],
    ) -> List[ActionItem]:
        """Insert items carrying ``section``, ``step_index`` and ``step_text``.

        Args:
            analysis_id: Owning analysis
            user_id: Owning user
            items: Item mappings; ``completed`` defaults to False

        Returns:
            The inserted rows
        """
        rows = [
            {
                "analysis_id": analysis_id,
                "user_id": user_id,
                "section": item["section"],
                "step_index": item["step_index"],
                "step_text": item["step_text"],
                "completed": bool(item.get("completed", False)),
            }
            for item in items
        ]
        return await self.create_many(rows)

    async def list_for_analysis(self, analysis_id: UUID) -> List[ActionItem]:
        query = (
            select(ActionItem)
            .where(ActionItem.analysis_id == analysis_id)
            .order_by(ActionItem.section, ActionItem.step_index)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def set_completed(self, item_id: UUID, completed: bool) -> Optional[ActionItem]:
        """Toggle an item, stamping or clearing ``completed_at``."""
        return await self.update(
            item_id,
            completed=completed,
            completed_at=datetime.now(timezone.utc) if completed else None,
        )
