"""Premium payment endpoints: intents, confirmation, reconciliation and ledger views"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header

from policy_gateway.api.dependencies import get_caller, get_coordinator
from policy_gateway.api.v1.schemas import (
    ConfirmPaymentRequest,
    PaymentIntentRequest,
    PaymentIntentResponse,
    ProcessorNotification,
    RevenueResponse,
    TransactionListResponse,
    TransactionResponse,
)
from policy_gateway.config import settings
from policy_gateway.domain.exceptions import AuthorizationError
from policy_gateway.domain.models import Caller
from policy_gateway.services.coordinator import LifecycleCoordinator

router = APIRouter()


@router.post("/payments/intents", response_model=PaymentIntentResponse, status_code=201)
async def create_payment_intent(
    request_body: PaymentIntentRequest,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """
    Start a premium payment.

    Flow:
    1. Create a payment intent with the processor
    2. Record a pending ledger transaction for it
    3. Return the client secret so the browser can confirm with the card form
    """
    intent, transaction = await coordinator.initiate_payment(request_body.to_domain(), caller)
    return PaymentIntentResponse(
        intent_id=intent.intent_id,
        client_secret=intent.client_secret,
        transaction=TransactionResponse.from_record(transaction),
    )


@router.post("/payments/{intent_id}/confirm", response_model=TransactionResponse)
async def confirm_payment(
    intent_id: str,
    request_body: ConfirmPaymentRequest,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """
    Confirm a pending intent with the payer's tokenized card.

    A 504 payment_pending response means the outcome is unknown: check the
    status with /refresh before paying again.
    """
    transaction = await coordinator.pay_with_token(intent_id, request_body.payment_method_token, caller)
    return TransactionResponse.from_record(transaction)


@router.post("/payments/{intent_id}/refresh", response_model=TransactionResponse)
async def refresh_payment(
    intent_id: str,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """Check the processor for the intent's current state and reconcile the ledger"""
    transaction = await coordinator.refresh_payment_status(intent_id, caller)
    return TransactionResponse.from_record(transaction)


@router.post("/payments/webhook", response_model=TransactionResponse)
def processor_webhook(
    notification: ProcessorNotification,
    x_processor_secret: Optional[str] = Header(default=None),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """Reconcile an outcome pushed by the processor; repeated notifications are no-ops"""
    if not x_processor_secret or not hmac.compare_digest(
        x_processor_secret.encode(), settings.processor_webhook_secret.encode()
    ):
        raise AuthorizationError("Invalid processor secret")
    transaction = coordinator.confirm_payment(notification.intent_id, notification.outcome, notification.reason)
    return TransactionResponse.from_record(transaction)


@router.get("/payments/transactions", response_model=TransactionListResponse)
def list_transactions(
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    transactions = coordinator.list_transactions(caller)
    return TransactionListResponse(transactions=[TransactionResponse.from_record(t) for t in transactions])


@router.get("/payments/revenue", response_model=RevenueResponse)
def revenue(
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """Successful revenue per currency, for the admin and agent dashboards"""
    return RevenueResponse(**coordinator.revenue_summary(caller))
