"""
Authentication Routes
Tokens are issued by the session service; this only echoes the caller
"""

import logging

from fastapi import APIRouter, Depends, status

from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.utils.auth import get_current_identity
from venue_ledger.utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/me")
async def who_am_i(identity: Identity = Depends(get_current_identity)):
    """
    Test endpoint to verify your JWT token is working.
    """
    return success_response(
        status_code=status.HTTP_200_OK,
        message="Token is valid!",
        data={"user": identity},
    )
