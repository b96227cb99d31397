"""
API v1 routes - Member-facing API
"""

from fastapi import APIRouter
from friendvault.infrastructure.settings import get_settings
from friendvault.api.v1.vaults import router as vaults_router
from friendvault.api.v1.withdrawal_requests import router as withdrawal_requests_router
from friendvault.api.v1.identities import router as identities_router

settings = get_settings()
router = APIRouter(prefix=settings.API_V1_PREFIX, tags=["api-v1"])

router.include_router(vaults_router)
router.include_router(withdrawal_requests_router)
router.include_router(identities_router)
