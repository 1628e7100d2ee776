import json
import logging

from fastapi import APIRouter, Depends, Query, Request, status

from venue_ledger.models.user_model import UserRole
from venue_ledger.routes.dependencies import get_transaction_service
from venue_ledger.routes.docs.transaction_routes_docs import (
    deposit_callback_responses,
    initiate_deposit_responses,
)
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.schemas.transaction_schemas import (
    DepositCallbackRequest,
    DepositRequest,
)
from venue_ledger.services.transaction_service import TransactionService
from venue_ledger.utils.auth import require_role
from venue_ledger.utils.exceptions import (
    TransactionNotFoundError,
    ValidationError,
)
from venue_ledger.utils.responses import error_response, success_response
from venue_ledger.utils.security import verify_chapa_signature, webhook_secret_configured

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", responses=initiate_deposit_responses)
async def initiate_deposit(
    request: DepositRequest,
    identity: Identity = Depends(require_role(UserRole.OWNER)),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Initiate a Chapa deposit
    The deposit stays pending until Chapa confirms it through the callback
    """
    result = await service.initiate_deposit(request, identity)

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Deposit initiated successfully",
        data=result,
    )


async def _process_callback(
    service: TransactionService, reference: str, reported_status: str
):
    try:
        result = await service.handle_deposit_callback(reference, reported_status)
    except TransactionNotFoundError as e:
        logger.warning(f"Deposit callback - transaction not found: {e.message}")
        return success_response(
            status_code=status.HTTP_200_OK,
            message="Transaction not found, but callback acknowledged",
            data={"status": "ignored", "reference": reference},
        )

    return success_response(
        status_code=status.HTTP_200_OK,
        message="Callback processed",
        data=result,
    )


@router.post("/callback", responses=deposit_callback_responses)
async def deposit_callback(
    request: Request,
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Handle Chapa webhook events and verification requests
    The reported status is never trusted; the deposit is re-verified with Chapa
    """
    body = await request.body()

    if webhook_secret_configured():
        signature = request.headers.get("x-chapa-signature") or request.headers.get(
            "chapa-signature"
        )
        if not verify_chapa_signature(body, signature):
            logger.warning("Rejected deposit callback with invalid signature")
            return error_response(
                status_code=status.HTTP_401_UNAUTHORIZED,
                message="Invalid webhook signature",
                error="UNAUTHORIZED",
            )

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise ValidationError("Callback body must be JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Callback body must be a JSON object")

    callback = DepositCallbackRequest.model_validate(payload)

    return await _process_callback(
        service, callback.resolved_reference(), callback.resolved_status()
    )


@router.get("/callback", responses=deposit_callback_responses)
async def deposit_callback_redirect(
    trx_ref: str = Query(None, description="Transaction reference sent by Chapa"),
    tx_ref: str = Query(None, description="Alternate reference parameter"),
    reported_status: str = Query(None, alias="status"),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Handle the GET callback Chapa issues after checkout
    """
    return await _process_callback(service, trx_ref or tx_ref, reported_status)
