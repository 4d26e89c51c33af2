from fastapi import APIRouter

from reframe.api.v1 import ai, coach, health

api_router = APIRouter(prefix="/v1")

api_router.include_router(coach.router, tags=["Coach"])
api_router.include_router(ai.router, prefix="/ai", tags=["AI"])
api_router.include_router(health.router, tags=["Health"])
