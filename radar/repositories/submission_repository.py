from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from radar.database.models import Submission
from radar.repositories.base_repository import BaseRepository


class SubmissionRepository(BaseRepository[Submission]):
    """Repository for submission rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Submission)

    async def create_submission(
        self,
        user_id: str,
        email: str,
        input_text: str,
        job_id: str,
        query_id: Optional[str] = None,
    ) -> Submission:
        """Insert a submission in ``pending`` state."""
        return await self.create(
            user_id=user_id,
            email=email,
            input_querytext=input_text,
            job_id=job_id,
            query_id=query_id,
            status="pending",
        )

    async def update_status(self, submission_id: UUID, status: str) -> Optional[Submission]:
        return await self.update(submission_id, status=status)

    async def link_analysis(self, submission_id: UUID, analysis_id: UUID) -> Optional[Submission]:
        """Back-fill the analysis id onto the submission."""
        return await self.update(submission_id, analysis_id=analysis_id)

    async def get_latest_by_job_id(self, job_id: str) -> Optional[Submission]:
        query = (
            select(Submission)
            .where(Submission.job_id == job_id)
            .order_by(Submission.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
