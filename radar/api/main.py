from fastapi import APIRouter

from radar.api.routes import analyses, analyze

api_router = APIRouter()

api_router.include_router(analyze.router, prefix="", tags=["Analysis"])
api_router.include_router(analyses.router, prefix="", tags=["Analyses"])
