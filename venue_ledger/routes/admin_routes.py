import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from venue_ledger.models.user_model import UserRole
from venue_ledger.routes.dependencies import get_transaction_service
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.schemas.transaction_schemas import (
    ReconcileRequest,
    TransactionResponse,
)
from venue_ledger.services.transaction_service import TransactionService
from venue_ledger.utils.auth import require_role
from venue_ledger.utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/transactions")
async def list_all_transactions(
    limit: int = Query(100, gt=0, le=500),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    List every transaction on the platform, newest first
    """
    transactions = await service.list_transactions(
        identity, limit, offset, all_users=True
    )
    data_list = [TransactionResponse.model_validate(t) for t in transactions]

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Transactions retrieved",
        data={"transactions": data_list, "count": len(data_list)},
    )


@router.post("/reconcile")
async def reconcile_deposits(
    request: Optional[ReconcileRequest] = None,
    identity: Identity = Depends(require_role(UserRole.ADMIN)),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Re-verify deposits left initiated or pending
    """
    request = request or ReconcileRequest()
    logger.info(
        f"Reconciliation requested by {identity.email} "
        f"(older than {request.older_than_minutes} min)"
    )
    result = await service.reconcile_stale_deposits(
        older_than_minutes=request.older_than_minutes, limit=request.limit
    )

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Reconciliation completed",
        data=result,
    )
