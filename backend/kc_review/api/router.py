from fastapi import APIRouter

from kc_review.api.v1 import health, proposals

api_router = APIRouter()

api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(proposals.router, prefix="/v1/proposals", tags=["proposals"])
