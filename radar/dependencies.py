"""Centralized dependency injection for the FastAPI application.

Process-scoped objects (the OpenAI client and the resolved capabilities)
are built once in the lifespan handler and kept on ``app.state``;
services are built per request around the request's database session.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from radar.config import Settings, settings
from radar.core.database import get_async_session
from radar.core.openai_client import OpenAIClient
from radar.services.action_item_service import ActionItemService
from radar.services.analysis_invoker import AnalysisInvoker
from radar.services.analysis_job_service import AnalysisJobService
from radar.services.analysis_query_service import AnalysisQueryService
from radar.services.capabilities import ResolvedServices, ServiceResolver


def build_openai_client(config: Settings) -> OpenAIClient:
    """Create the shared OpenAI client from settings."""
    return OpenAIClient(
        api_key=config.openai_api_key,
        base_url=config.openai_api_url,
        organization=config.openai_organization,
        model=config.openai_model,
        timeout=config.http_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )


def resolve_services(config: Settings) -> ResolvedServices:
    """Bind capabilities once for the process.

    Raises:
        ConfigurationError: If an explicitly configured module cannot be bound
    """
    return ServiceResolver(
        upload_module=config.upload_service_module,
        analyze_module=config.analyze_service_module,
        parse_module=config.parse_service_module,
    ).resolve()


def get_settings_dependency() -> Settings:
    return settings


def get_openai_client(request: Request) -> OpenAIClient:
    return request.app.state.openai_client


def get_resolved_services(request: Request) -> ResolvedServices:
    return request.app.state.services


async def get_analysis_job_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)],
    client: Annotated[OpenAIClient, Depends(get_openai_client)],
    services: Annotated[ResolvedServices, Depends(get_resolved_services)],
    config: Annotated[Settings, Depends(get_settings_dependency)],
) -> AnalysisJobService:
    """Get the analysis job orchestrator for this request.

    Args:
        db_session: Database session from dependency injection
        client: Shared OpenAI client
        services: Capabilities resolved at startup
        config: Application settings

    Returns:
        AnalysisJobService: Orchestrator bound to this request's session
    """
    invoker = AnalysisInvoker(client=client, services=services, settings=config)
    return AnalysisJobService(
        session=db_session, invoker=invoker, settings=config, parser=services.parse
    )


async def get_analysis_query_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> AnalysisQueryService:
    return AnalysisQueryService(db_session)


async def get_action_item_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> ActionItemService:
    return ActionItemService(db_session)
