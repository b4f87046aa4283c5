"""
API v1 router.
"""
from fastapi import APIRouter

from apispectra.api.v1.endpoints import dashboard, runs

api_router = APIRouter()

api_router.include_router(dashboard.router, tags=["dashboard"])
api_router.include_router(runs.router, tags=["runs"])
