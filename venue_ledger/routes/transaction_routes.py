import logging

from fastapi import APIRouter, Depends, Query, status

from venue_ledger.routes.dependencies import get_transaction_service
from venue_ledger.routes.docs.transaction_routes_docs import (
    get_balance_responses,
    get_transaction_responses,
)
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.schemas.transaction_schemas import (
    BalanceResponse,
    TransactionResponse,
)
from venue_ledger.services.transaction_service import TransactionService
from venue_ledger.utils.auth import get_current_identity
from venue_ledger.utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/transactions/{reference}", responses=get_transaction_responses)
async def get_transaction(
    reference: str,
    identity: Identity = Depends(get_current_identity),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Get a transaction snapshot
    Deposits that are not final yet are re-verified with Chapa first
    """
    snapshot = await service.get_transaction(reference, identity)

    if not snapshot.verified:
        logger.info(
            f"Returning unverified snapshot of {reference}: {snapshot.verification_error}"
        )

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Transaction retrieved",
        data=snapshot,
    )


@router.get("/transactions")
async def get_transactions(
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_current_identity),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Get the caller's transaction history, newest first
    """
    transactions = await service.list_transactions(identity, limit, offset)
    data_list = [TransactionResponse.model_validate(t) for t in transactions]

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Transactions retrieved",
        data={"transactions": data_list, "count": len(data_list)},
    )


@router.get("/balance", responses=get_balance_responses)
async def get_balance(
    identity: Identity = Depends(get_current_identity),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Get the caller's available balance
    """
    balance = await service.get_balance(identity.email)

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Balance retrieved",
        data=BalanceResponse(owner_email=identity.email, balance=balance),
    )
