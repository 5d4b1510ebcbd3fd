"""Analysis submission endpoint."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from radar.core.exceptions import AnalysisJobError, AppError, ValidationError
from radar.dependencies import get_analysis_job_service
from radar.schemas.analyze import AnalyzeErrorResponse, AnalyzeRequest, AnalyzeSuccessResponse
from radar.services.analysis_job_service import AnalysisJobService
from radar.utils.logging import get_logger, job_context

LOGGER = get_logger(__name__)

router = APIRouter()


def error_response(
    status_code: int,
    message: str,
    job_id: Optional[str] = None,
    analysis_id: Optional[str] = None,
    include_ids: bool = True,
) -> JSONResponse:
    """Build the ``{ok: false, ...}`` body used by the analyze contract."""
    body = AnalyzeErrorResponse(error=message, job_id=job_id, analysis_id=analysis_id)
    exclude = None if include_ids else {"job_id", "analysis_id"}
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude=exclude),
    )


@router.post(
    "/analyze",
    response_model=AnalyzeSuccessResponse,
    responses={
        400: {"description": "Missing or invalid input", "model": AnalyzeErrorResponse},
        405: {"description": "Method not allowed", "model": AnalyzeErrorResponse},
        500: {"description": "Analysis failed", "model": AnalyzeErrorResponse},
    },
    summary="Run an analysis",
    description=(
        "Create a submission, run the analysis against the configured provider, "
        "store the normalized result and return it flattened for display."
    ),
    operation_id="run_analysis",
)
async def analyze(
    request: AnalyzeRequest,
    service: Annotated[AnalysisJobService, Depends(get_analysis_job_service)],
) -> JSONResponse:
    """Run one analysis job synchronously.

    Args:
        request: Analysis request body
        service: Job orchestrator from dependency injection

    Returns:
        JSONResponse: 200 with the flattened result, 400 for missing input,
        500 with the allocated ids for any other failure
    """
    LOGGER.info(
        "Received analysis request",
        extra=job_context(request.job_id, file_count=len(request.files)),
    )

    try:
        outcome = await service.execute_analysis(
            input_text=request.input_text,
            user_id=request.user_id,
            email=request.user_email,
            files=[payload.to_attachment() for payload in request.files],
            job_id=request.job_id,
            query_id=request.query_id,
        )

    except ValidationError as e:
        LOGGER.warning("Analysis request rejected", extra={"error": str(e)})
        return error_response(status.HTTP_400_BAD_REQUEST, str(e), include_ids=False)

    except AnalysisJobError as e:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), e.job_id, e.analysis_id
        )

    except AppError as e:
        LOGGER.error("Analysis request failed", exc_info=True, extra={"error": str(e)})
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), request.job_id)

    body = AnalyzeSuccessResponse(
        job_id=outcome.job_id, analysis_id=outcome.analysis_id, data=outcome.data
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(by_alias=True))


@router.api_route(
    "/analyze",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def analyze_method_not_allowed() -> JSONResponse:
    response = error_response(
        status.HTTP_405_METHOD_NOT_ALLOWED, "Method not allowed", include_ids=False
    )
    response.headers["Allow"] = "POST, OPTIONS"
    return response
