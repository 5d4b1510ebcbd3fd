"""Drive one analysis job from submission to stored result.

Lifecycle: the submission goes pending -> processing -> completed, and the
analysis row goes processing -> completed. Any fatal failure sends both
rows to ``error`` on a best-effort basis before the original error is
raised to the caller.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from radar.config import Settings
from radar.core.exceptions import AnalysisJobError, AppError, PersistenceError, ValidationError
from radar.repositories.action_item_repository import ActionItemRepository
from radar.repositories.analysis_repository import AnalysisRepository
from radar.repositories.submission_repository import SubmissionRepository
from radar.schemas.radar import Attachment, RadarResult
from radar.services.action_item_service import derive_action_items
from radar.services.analysis_invoker import AnalysisInvoker
from radar.services.base_service import BaseService
from radar.services.capabilities import Parser
from radar.services.normalizer import flatten_for_response, normalize_response
from radar.utils.logging import get_logger, job_context

LOGGER = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RecoveryReport:
    """Outcome of the error-recovery writes.

    ``primary_error`` is the failure that aborted the job. Failures of the
    recovery writes themselves are collected in ``secondary_errors`` and
    never replace the primary error.
    """
    primary_error: Exception
    secondary_errors: List[Exception] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.secondary_errors


@dataclass
class AnalysisJobResult:
    """Successful job outcome returned to the HTTP layer."""
    job_id: str
    analysis_id: str
    data: Dict[str, Any]
    result: RadarResult
    strategy: Optional[str] = None


@dataclass
class _JobState:
    job_id: str
    step: str = "validate request"
    submission_id: Optional[UUID] = None
    analysis_id: Optional[UUID] = None


class AnalysisJobService(BaseService):
    """Orchestrates submission, invocation, normalization and persistence."""

    def __init__(
        self,
        session: AsyncSession,
        invoker: AnalysisInvoker,
        settings: Settings,
        parser: Optional[Parser] = None,
    ):
        """Initialize the service.

        Args:
            session: Request-scoped database session
            invoker: Analysis invocation stage
            settings: Application settings
            parser: Bound parse capability, if any
        """
        self.session = session
        self.invoker = invoker
        self.settings = settings
        self.parser = parser
        self.submission_repository = SubmissionRepository(session)
        self.analysis_repository = AnalysisRepository(session)
        self.action_item_repository = ActionItemRepository(session)
        super().__init__(self.analysis_repository)

    async def execute_analysis(
        self,
        input_text: str,
        user_id: str,
        email: str,
        files: Sequence[Attachment] = (),
        job_id: Optional[str] = None,
        query_id: Optional[str] = None,
    ) -> AnalysisJobResult:
        """Run an analysis job end to end.

        Args:
            input_text: Text to analyze
            user_id: Owning user id
            email: Owning user email
            files: Optional attachments
            job_id: Client job id; generated when absent
            query_id: Optional client query id

        Returns:
            AnalysisJobResult with the flattened payload

        Raises:
            ValidationError: If a required field is missing or the text is
                shorter than ``min_input_chars``; nothing is stored
            AnalysisJobError: If any fatal step fails, after recovery ran
        """
        return await self.execute(
            input_text=input_text,
            user_id=user_id,
            email=email,
            files=list(files),
            job_id=job_id,
            query_id=query_id,
        )

    def validate(self, *args, **kwargs):
        missing = [
            name
            for name, key in (("inputText", "input_text"), ("userId", "user_id"), ("userEmail", "email"))
            if not isinstance(kwargs.get(key), str) or not kwargs[key].strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        min_chars = self.settings.min_input_chars
        if len(kwargs["input_text"].strip()) < min_chars:
            raise ValidationError(f"inputText must be at least {min_chars} characters")

    async def run(
        self,
        input_text: str,
        user_id: str,
        email: str,
        files: List[Attachment],
        job_id: Optional[str] = None,
        query_id: Optional[str] = None,
    ) -> AnalysisJobResult:
        state = _JobState(job_id=job_id or str(uuid.uuid4()))
        text = input_text.strip()

        self.logger.info(
            "Analysis job received",
            extra=job_context(state.job_id, file_count=len(files)),
        )

        try:
            state.step = "create submission"
            submission = await self._persist(
                state.step,
                self.submission_repository.create_submission(
                    user_id=user_id,
                    email=email,
                    input_text=text,
                    job_id=state.job_id,
                    query_id=query_id,
                ),
            )
            state.submission_id = submission.id

            state.step = "mark submission processing"
            await self._persist(
                state.step,
                self.submission_repository.update_status(state.submission_id, "processing"),
            )

            state.step = "create analysis"
            analysis = await self._persist(
                state.step,
                self.analysis_repository.create_placeholder(
                    user_id=user_id,
                    email=email,
                    job_id=state.job_id,
                    input_text=text,
                    query_id=query_id,
                ),
            )
            state.analysis_id = analysis.id

            state.step = "link analysis to submission"
            await self._persist(
                state.step,
                self.submission_repository.link_analysis(state.submission_id, state.analysis_id),
            )

            state.step = "invoke analysis"
            invocation = await self.invoker.invoke(text, files)

            result = await normalize_response(
                invocation.raw,
                self.parser,
                builtin=invocation.builtin,
                latency_ms=invocation.latency_ms,
                tldr_chars=self.settings.fallback_tldr_chars,
                narrative_chars=self.settings.fallback_narrative_chars,
            )

            state.step = "save analysis results"
            await self._persist(
                state.step,
                self.analysis_repository.mark_completed(state.analysis_id, result, invocation),
            )

            await self._insert_action_items(state, user_id, result)

            state.step = "mark submission completed"
            await self._persist(
                state.step,
                self.submission_repository.update_status(state.submission_id, "completed"),
            )

        except Exception as e:
            report = await self._recover(state, e)
            raise AnalysisJobError(
                str(e),
                job_id=state.job_id,
                analysis_id=str(state.analysis_id) if state.analysis_id else None,
                report=report,
                original_error=e,
            ) from e

        self.logger.info(
            "Analysis job completed",
            extra=job_context(state.job_id, state.analysis_id, strategy=invocation.strategy),
        )
        return AnalysisJobResult(
            job_id=state.job_id,
            analysis_id=str(state.analysis_id),
            data=flatten_for_response(result),
            result=result,
            strategy=invocation.strategy,
        )

    async def _persist(self, step: str, operation: Awaitable[Optional[T]]) -> T:
        """Await a lifecycle write, naming the step on failure.

        Raises:
            PersistenceError: If the write fails or its row is missing
        """
        try:
            outcome = await operation
        except AppError:
            raise
        except Exception as e:
            raise PersistenceError(step, e) from e

        if outcome is None:
            raise PersistenceError(step, LookupError("row not found"))
        return outcome

    async def _insert_action_items(self, state: _JobState, user_id: str, result: RadarResult) -> None:
        """Store derived action items; failures are logged and swallowed."""
        try:
            items = derive_action_items(result)
            if items:
                await self.action_item_repository.create_for_analysis(
                    state.analysis_id, user_id, items
                )
            self.logger.info(
                "Action items stored",
                extra=job_context(state.job_id, state.analysis_id, count=len(items)),
            )
        except Exception as e:
            self.logger.error(
                "Action item insert failed; continuing",
                exc_info=True,
                extra=job_context(state.job_id, state.analysis_id, error=str(e)),
            )
            # The failed flush leaves the session unusable until rolled back
            await self._rollback(RecoveryReport(primary_error=e))

    async def _rollback(self, report: RecoveryReport) -> None:
        try:
            await self.session.rollback()
        except Exception as e:
            report.secondary_errors.append(e)
            self.logger.error("Session rollback failed", exc_info=True)

    async def _recover(self, state: _JobState, error: Exception) -> RecoveryReport:
        """Best-effort error writes for both rows.

        Every write is attempted independently. Nothing here raises.
        """
        report = RecoveryReport(primary_error=error)
        context = job_context(state.job_id, state.analysis_id, step=state.step)

        self.logger.error(
            f"Analysis job failed at '{state.step}': {error}",
            exc_info=error,
            extra=context,
        )

        await self._rollback(report)

        if state.analysis_id is not None:
            error_json = {
                "message": str(error),
                "type": type(error).__name__,
                "step": state.step,
            }
            status = getattr(error, "status", None)
            if status:
                error_json["run_status"] = status
            try:
                await self.analysis_repository.mark_failed(state.analysis_id, error_json)
            except Exception as e:
                report.secondary_errors.append(e)
                self.logger.error("Failed to mark analysis as error", exc_info=True, extra=context)
                await self._rollback(report)

        if state.submission_id is not None:
            try:
                await self.submission_repository.update_status(state.submission_id, "error")
            except Exception as e:
                report.secondary_errors.append(e)
                self.logger.error("Failed to mark submission as error", exc_info=True, extra=context)

        if not report.clean:
            self.logger.warning(
                "Error recovery incomplete",
                extra=job_context(
                    state.job_id,
                    state.analysis_id,
                    secondary_errors=[str(e) for e in report.secondary_errors],
                ),
            )
        return report
