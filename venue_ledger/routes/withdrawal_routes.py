import logging

from fastapi import APIRouter, Depends, status

from venue_ledger.models.user_model import UserRole
from venue_ledger.routes.dependencies import get_transaction_service
from venue_ledger.routes.docs.transaction_routes_docs import withdraw_responses
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.schemas.transaction_schemas import WithdrawalRequest
from venue_ledger.services.transaction_service import TransactionService
from venue_ledger.utils.auth import require_role
from venue_ledger.utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", responses=withdraw_responses)
async def withdraw(
    request: WithdrawalRequest,
    identity: Identity = Depends(require_role(UserRole.OWNER)),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Withdraw funds to a bank account or mobile money wallet
    The request email must be the caller's own
    """
    result = await service.withdraw(request, identity)

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Withdrawal completed",
        data=result,
    )
