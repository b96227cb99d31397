"""
Client API - Identity lookup (can this identity be added to a vault?)
"""

from fastapi import APIRouter, Depends

from friendvault.api.dependencies import get_identity_checker
from friendvault.schemas.common import Envelope
from friendvault.schemas.vaults import IdentityExistsResponse
from friendvault.services.identity import IdentityChecker

router = APIRouter(prefix="/identities", tags=["identities"])


@router.get(
    "/{identity}/exists",
    response_model=Envelope[IdentityExistsResponse],
    summary="Check identity",
    description="True if the identity belongs to an active platform user.",
)
def identity_exists(
    identity: str,
    checker: IdentityChecker = Depends(get_identity_checker),
) -> Envelope[IdentityExistsResponse]:
    return Envelope(data=IdentityExistsResponse(exists=checker.exists(identity)))
