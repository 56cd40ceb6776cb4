"""Payment processor HTTP client for creating and confirming payment intents"""

import httpx
from typing import Any, Dict, Optional
from policy_gateway.domain.models import ConfirmationResult, IntentHandle, PaymentOutcome
from policy_gateway.domain.exceptions import PaymentPendingError, UpstreamError
from policy_gateway.domain.validation import validate_amount
from policy_gateway.infrastructure.observability.metrics import processor_latency_histogram, processor_failure_counter
from policy_gateway.config import settings

# Processor intent statuses that still need the payer
_ACTION_STATUSES = {"requires_action", "requires_confirmation"}


class PaymentIntentGateway:
    """
    Client for a Stripe-compatible payment intents API.

    Calls are never retried here: a repeated confirmation could charge the
    card twice, so any retry is an explicit resubmission by the payer.
    """

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.processor_api_base).rstrip("/")
        self.secret_key = secret_key or settings.processor_secret_key
        self.timeout = timeout or settings.processor_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            transport=self._transport,
        )

    async def create_intent(self, amount: int, currency: str) -> IntentHandle:
        """
        Create a payment intent for an amount in minor currency units.

        Nothing is recorded in the ledger yet, so callers may safely create a
        fresh intent after a failure.

        Raises:
            ValidationError: If amount is not a positive integer
            UpstreamError: On timeout, HTTP errors, or invalid response
        """
        validate_amount(amount)
        async with self._client() as client:
            try:
                with processor_latency_histogram.labels(operation="create").time():
                    response = await client.post(
                        "/v1/payment_intents",
                        data={"amount": amount, "currency": currency, "payment_method_types[]": "card"},
                    )
                response.raise_for_status()
                data = response.json()
                return IntentHandle(intent_id=data["id"], client_secret=data["client_secret"])

            except httpx.TimeoutException as e:
                processor_failure_counter.labels(operation="create").inc()
                raise UpstreamError(f"Payment processor timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                processor_failure_counter.labels(operation="create").inc()
                raise UpstreamError(f"Payment processor error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                processor_failure_counter.labels(operation="create").inc()
                raise UpstreamError("Payment processor unreachable") from e
            except (KeyError, ValueError, TypeError) as e:
                processor_failure_counter.labels(operation="create").inc()
                raise UpstreamError(f"Invalid intent data from processor: {e}") from e

    async def confirm_intent(self, intent_id: str, payment_method_token: str) -> ConfirmationResult:
        """
        Confirm an intent with a processor-issued payment method token.

        A card decline is a normal FAILED outcome. A timeout is ambiguous: the
        charge may have succeeded, so it surfaces as PaymentPendingError and
        must be resolved by the webhook or a status check.

        Raises:
            PaymentPendingError: On timeout after the request was sent
            UpstreamError: On HTTP errors, connection failures, or invalid response
        """
        async with self._client() as client:
            try:
                with processor_latency_histogram.labels(operation="confirm").time():
                    response = await client.post(
                        f"/v1/payment_intents/{intent_id}/confirm",
                        data={"payment_method": payment_method_token},
                    )
                if response.status_code == 402:
                    return ConfirmationResult(outcome=PaymentOutcome.FAILED, reason=_error_message(response.json()))
                response.raise_for_status()
                return _result_from_intent(response.json()) or ConfirmationResult(
                    outcome=PaymentOutcome.REQUIRES_ACTION
                )

            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                # Request never reached the processor; nothing was charged
                processor_failure_counter.labels(operation="confirm").inc()
                raise UpstreamError("Payment processor unreachable") from e
            except httpx.TimeoutException as e:
                processor_failure_counter.labels(operation="confirm").inc()
                raise PaymentPendingError(
                    "Payment confirmation timed out; check the payment status before paying again"
                ) from e
            except httpx.HTTPStatusError as e:
                processor_failure_counter.labels(operation="confirm").inc()
                raise UpstreamError(f"Payment processor error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                processor_failure_counter.labels(operation="confirm").inc()
                raise PaymentPendingError("Payment confirmation interrupted; check the payment status") from e
            except (KeyError, ValueError, TypeError) as e:
                processor_failure_counter.labels(operation="confirm").inc()
                raise UpstreamError(f"Invalid confirmation data from processor: {e}") from e

    async def retrieve_intent(self, intent_id: str) -> Optional[ConfirmationResult]:
        """
        Fetch the processor's current view of an intent.

        Returns:
            The terminal or action-required result, or None while the intent is
            still being processed or has not been confirmed yet
        """
        async with self._client() as client:
            try:
                with processor_latency_histogram.labels(operation="retrieve").time():
                    response = await client.get(f"/v1/payment_intents/{intent_id}")
                response.raise_for_status()
                return _result_from_intent(response.json())

            except httpx.TimeoutException as e:
                processor_failure_counter.labels(operation="retrieve").inc()
                raise UpstreamError(f"Payment processor timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                processor_failure_counter.labels(operation="retrieve").inc()
                raise UpstreamError(f"Payment processor error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                processor_failure_counter.labels(operation="retrieve").inc()
                raise UpstreamError("Payment processor unreachable") from e
            except (KeyError, ValueError, TypeError) as e:
                processor_failure_counter.labels(operation="retrieve").inc()
                raise UpstreamError(f"Invalid intent data from processor: {e}") from e


def _error_message(body: Dict[str, Any]) -> str:
    return (body.get("error") or {}).get("message") or "Card was declined"


def _result_from_intent(intent: Dict[str, Any]) -> Optional[ConfirmationResult]:
    """Map a processor intent object to an outcome; None while still in progress"""
    status = intent["status"]
    if status == "succeeded":
        return ConfirmationResult(outcome=PaymentOutcome.SUCCEEDED)
    if status in _ACTION_STATUSES:
        return ConfirmationResult(outcome=PaymentOutcome.REQUIRES_ACTION)
    if status == "canceled":
        return ConfirmationResult(outcome=PaymentOutcome.FAILED, reason="Payment was canceled")
    if status == "requires_payment_method" and intent.get("last_payment_error"):
        reason = _error_message({"error": intent["last_payment_error"]})
        return ConfirmationResult(outcome=PaymentOutcome.FAILED, reason=reason)
    # processing, or a fresh intent nobody has confirmed yet
    return None
