"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import auth, domains, health, navigation, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(domains.router, prefix="/domains", tags=["domains"])
router.include_router(navigation.router, prefix="/navigation", tags=["navigation"])
