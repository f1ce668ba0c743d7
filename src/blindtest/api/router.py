"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from blindtest.api import auth, health, passkey

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(passkey.router, prefix="/auth/passkey", tags=["passkey"])
