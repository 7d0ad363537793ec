"""
API routes initialization.

Aggregates all routers into a single router mounted under API_V1_PREFIX.
"""

from fastapi import APIRouter

from vista.api.routes import embeddings, sync, webhooks

api_router = APIRouter()

api_router.include_router(webhooks.router)
api_router.include_router(sync.router)
api_router.include_router(embeddings.router)
