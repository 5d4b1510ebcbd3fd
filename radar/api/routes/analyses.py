"""Read endpoints for analyses, job status and action items."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from radar.core.exceptions import AppError, NotFoundError, ValidationError
from radar.dependencies import get_action_item_service, get_analysis_query_service
from radar.schemas.analyze import (
    ActionItemListResponse,
    ActionItemResponse,
    AnalysisListResponse,
    AnalysisResponse,
    AnalysisSummaryResponse,
    JobStatusResponse,
    ToggleActionItemRequest,
)
from radar.services.action_item_service import ActionItemService
from radar.services.analysis_query_service import AnalysisQueryService
from radar.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


def _to_http_error(e: AppError) -> HTTPException:
    """Map service errors onto HTTP status codes."""
    if isinstance(e, NotFoundError):
        code, error = status.HTTP_404_NOT_FOUND, "NotFound"
    elif isinstance(e, ValidationError):
        code, error = status.HTTP_400_BAD_REQUEST, "ValidationError"
    else:
        LOGGER.error("Read request failed", exc_info=True, extra={"error": str(e)})
        code, error = status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalError"
    return HTTPException(
        status_code=code,
        detail={"error": error, "message": str(e)},
    )


@router.get(
    "/analyses/{analysis_id}",
    response_model=AnalysisResponse,
    summary="Get an analysis",
    operation_id="get_analysis",
)
async def get_analysis(
    analysis_id: UUID,
    service: Annotated[AnalysisQueryService, Depends(get_analysis_query_service)],
) -> AnalysisResponse:
    try:
        analysis = await service.execute_get_analysis(analysis_id)
    except AppError as e:
        raise _to_http_error(e) from e
    return AnalysisResponse.model_validate(analysis)


@router.get(
    "/analyses",
    response_model=AnalysisListResponse,
    summary="List a user's analyses",
    description="Newest first.",
    operation_id="list_analyses",
)
async def list_analyses(
    service: Annotated[AnalysisQueryService, Depends(get_analysis_query_service)],
    user_id: Annotated[str, Query(alias="userId")],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AnalysisListResponse:
    try:
        analyses = await service.execute_list_for_user(user_id, limit=limit, offset=offset)
    except AppError as e:
        raise _to_http_error(e) from e
    return AnalysisListResponse(
        items=[AnalysisSummaryResponse.model_validate(a) for a in analyses],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    summary="Get job status",
    description="Latest submission status for a client job id.",
    operation_id="get_job_status",
)
async def get_job_status(
    job_id: str,
    service: Annotated[AnalysisQueryService, Depends(get_analysis_query_service)],
) -> JobStatusResponse:
    try:
        submission = await service.execute_get_job(job_id)
    except AppError as e:
        raise _to_http_error(e) from e
    return JobStatusResponse.model_validate(submission)


@router.get(
    "/analyses/{analysis_id}/action-items",
    response_model=ActionItemListResponse,
    summary="List action items",
    description="Action items ordered by section and step, with completion per section.",
    operation_id="list_action_items",
)
async def list_action_items(
    analysis_id: UUID,
    service: Annotated[ActionItemService, Depends(get_action_item_service)],
) -> ActionItemListResponse:
    try:
        listing = await service.execute_list(analysis_id)
    except AppError as e:
        raise _to_http_error(e) from e
    return ActionItemListResponse(
        items=[ActionItemResponse.model_validate(item) for item in listing["items"]],
        completion=listing["completion"],
        sections=listing["sections"],
        overall=listing["overall"],
    )


@router.patch(
    "/action-items/{item_id}",
    response_model=ActionItemResponse,
    summary="Toggle an action item",
    operation_id="toggle_action_item",
)
async def toggle_action_item(
    item_id: UUID,
    request: ToggleActionItemRequest,
    service: Annotated[ActionItemService, Depends(get_action_item_service)],
) -> ActionItemResponse:
    try:
        item = await service.execute_toggle(item_id, request.completed)
    except AppError as e:
        raise _to_http_error(e) from e
    return ActionItemResponse.model_validate(item)
