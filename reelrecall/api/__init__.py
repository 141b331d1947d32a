"""
API routes initialization.

This module aggregates all API routers and provides a single router
to include in the main application.
"""

from fastapi import APIRouter

from reelrecall.api.routes import search, videos

# Create main API router
api_router = APIRouter()

# Video submission and job status
api_router.include_router(videos.router)

# Search and answers
api_router.include_router(search.router)
