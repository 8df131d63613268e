"""Admin API endpoints for ledger maintenance."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ikiraha.api.dependencies import get_refresh_token_service, require_admin
from ikiraha.api.responses import envelope
from ikiraha.models.auth import SweepResult
from ikiraha.models.response import ApiResponse
from ikiraha.models.user import UserProfile
from ikiraha.services.refresh_token_service import RefreshTokenService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/refresh-tokens/sweep", response_model=ApiResponse[SweepResult])
async def sweep_refresh_tokens(
    admin: UserProfile = Depends(require_admin),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
) -> JSONResponse:
    """Delete expired refresh tokens from the ledger (admin only).

    Returns:
        Number of deleted rows
    """
    deleted = await refresh_tokens.sweep_expired()
    logger.info("admin_swept_refresh_tokens", admin_id=admin.id, deleted=deleted)
    return envelope("Expired refresh tokens removed", SweepResult(deleted=deleted))
