from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from radar.core.exceptions import NotFoundError, ValidationError
from radar.database.models import Analysis, Submission
from radar.repositories.analysis_repository import AnalysisRepository
from radar.repositories.submission_repository import SubmissionRepository
from radar.services.base_service import BaseService

MAX_PAGE_SIZE = 100


class AnalysisQueryService(BaseService):
    """Read access to analyses and job status for dashboards and history."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.analysis_repository = AnalysisRepository(session)
        self.submission_repository = SubmissionRepository(session)
        super().__init__(self.analysis_repository)

    async def run(self, *args, **kwargs) -> Any:
        action = kwargs.get("action")

        if action == "get_analysis":
            return await self._get_analysis(kwargs["analysis_id"])
        elif action == "list_for_user":
            return await self.analysis_repository.list_for_user(
                kwargs["user_id"], limit=kwargs["limit"], offset=kwargs["offset"]
            )
        elif action == "get_job":
            return await self._get_job(kwargs["job_id"])
        else:
            raise ValidationError(f"Unknown action: {action}")

    def validate(self, *args, **kwargs):
        action = kwargs.get("action")

        if action == "list_for_user":
            if not kwargs.get("user_id"):
                raise ValidationError("userId is required")
            if not 1 <= kwargs.get("limit", 0) <= MAX_PAGE_SIZE:
                raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
            if kwargs.get("offset", 0) < 0:
                raise ValidationError("offset must not be negative")
        elif action == "get_job" and not kwargs.get("job_id"):
            raise ValidationError("jobId is required")

    async def execute_get_analysis(self, analysis_id: UUID) -> Analysis:
        """Fetch one analysis.

        Raises:
            NotFoundError: If no analysis has this id
        """
        return await self.execute(action="get_analysis", analysis_id=analysis_id)

    async def execute_list_for_user(self, user_id: str, limit: int = 20, offset: int = 0) -> List[Analysis]:
        """Newest-first analysis history for a user."""
        return await self.execute(action="list_for_user", user_id=user_id, limit=limit, offset=offset)

    async def execute_get_job(self, job_id: str) -> Submission:
        """Latest submission for a client job id, for status polling."""
        return await self.execute(action="get_job", job_id=job_id)

    async def _get_analysis(self, analysis_id: UUID) -> Analysis:
        analysis = await self.analysis_repository.get_by_id(analysis_id)
        if analysis is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")
        return analysis

    async def _get_job(self, job_id: str) -> Optional[Submission]:
        submission = await self.submission_repository.get_latest_by_job_id(job_id)
        if submission is None:
            raise NotFoundError(f"Job {job_id} not found")
        return submission
