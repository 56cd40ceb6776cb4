"""
Application lifecycle and payment reconciliation.

All writes to applications, claims and the payment ledger go through
LifecycleCoordinator. Status changes are compare-and-set updates on the row,
so two reviewers (or two processor notifications) racing on the same record
resolve to exactly one winner without a global lock.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from policy_gateway.domain.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PaymentPendingError,
    UpstreamError,
)
from policy_gateway.domain.lifecycle import (
    TERMINAL_TRANSACTION_STATUSES,
    ensure_can_review,
    ensure_claimable,
    ensure_can_view_all,
    ensure_owner_or_admin,
    next_application_status,
    next_claim_status,
    transaction_status_for,
)
from policy_gateway.domain.models import (
    ApplicationDraft,
    ApplicationStatus,
    Caller,
    ClaimDraft,
    ClaimStatus,
    IntentHandle,
    PaymentOutcome,
    PaymentRequest,
    ReviewDecision,
    Role,
    TransactionStatus,
)
from policy_gateway.domain.validation import validate_application, validate_claim, validate_payment_request
from policy_gateway.infrastructure.clients.payments import PaymentIntentGateway
from policy_gateway.infrastructure.database.models import InsuranceApplication, InsuranceClaim, PaymentTransaction
from policy_gateway.infrastructure.database.repositories import (
    ApplicationRepository,
    ClaimRepository,
    TransactionRepository,
)
from policy_gateway.infrastructure.observability.logging import (
    log_application_submitted,
    log_claim_event,
    log_invalid_transition,
    log_payment_event,
    log_review,
)
from policy_gateway.infrastructure.observability.metrics import (
    applications_submitted_counter,
    claim_review_counter,
    claims_submitted_counter,
    invalid_transition_counter,
    record_payment,
    record_review,
)


def _parse_id(raw_id: str, label: str = "Application") -> uuid.UUID:
    try:
        return uuid.UUID(str(raw_id))
    except ValueError:
        raise NotFoundError(f"{label} not found")


class LifecycleCoordinator:
    """Applies application status transitions and reconciles payments with the ledger"""

    def __init__(self, db: Session, gateway: PaymentIntentGateway, request_id: Optional[str] = None):
        self.db = db
        self.gateway = gateway
        self.request_id = request_id
        self.applications = ApplicationRepository(db)
        self.claims = ClaimRepository(db)
        self.transactions = TransactionRepository(db)

    @contextmanager
    def _unit_of_work(self, action: str) -> Iterator[None]:
        """Roll back on any failure; storage errors surface as UpstreamError"""
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Storage error while trying to {action}: {e}", extra={"request_id": self.request_id})
            raise UpstreamError(f"Storage unavailable while trying to {action}") from e
        except Exception:
            self.db.rollback()
            raise

    # Applications

    def submit_application(self, draft: ApplicationDraft, submitter: Optional[Caller] = None) -> InsuranceApplication:
        """
        Validate and store a new Pending application. No payment is taken here.

        Customers may only apply under their own email; staff may apply on a
        customer's behalf. Identical submissions create separate applications.
        """
        validate_application(draft)
        if submitter is not None and not submitter.is_staff:
            ensure_owner_or_admin(submitter, draft.email)

        with self._unit_of_work("submit application"):
            application = self.applications.create_application(draft)
            self.db.commit()
            self.db.refresh(application)

        applications_submitted_counter.labels(insurance_type=application.insurance_type).inc()
        log_application_submitted(str(application.id), application.insurance_type, self.request_id)
        return application

    def review_application(
        self,
        application_id: str,
        decision: ReviewDecision,
        reviewer: Caller,
    ) -> InsuranceApplication:
        """
        Approve or reject a Pending application.

        Raises:
            NotFoundError: Unknown application id
            AuthorizationError: Reviewer is not an agent or admin
            InvalidTransitionError: Application already decided, including when a
                concurrent review committed first
        """
        app_uuid = _parse_id(application_id)

        with self._unit_of_work("review application"):
            application = self.applications.get_application(app_uuid)
            if application is None:
                raise NotFoundError("Application not found")
            ensure_can_review(reviewer)

            current = ApplicationStatus(application.status)
            try:
                target = next_application_status(current, decision)
            except InvalidTransitionError:
                self._audit_invalid_transition(application_id, reviewer, current.value, decision)
                raise

            if not self.applications.transition_status(app_uuid, ApplicationStatus.PENDING, target, reviewer.email):
                self.db.rollback()
                self.db.refresh(application)
                self._audit_invalid_transition(application_id, reviewer, application.status, decision)
                raise InvalidTransitionError(
                    f"Application is already {application.status}; cannot {decision.value}"
                )

            self.db.commit()
            self.db.refresh(application)

        record_review(application.status)
        log_review(application_id, reviewer.email, application.status, self.request_id)
        return application

    def _audit_invalid_transition(
        self, record_id: str, reviewer: Caller, current: str, decision: ReviewDecision, entity: str = "application"
    ) -> None:
        invalid_transition_counter.labels(entity=entity).inc()
        log_invalid_transition(record_id, reviewer.email, current, decision.value, entity=entity)

    def get_application(self, application_id: str, caller: Caller) -> InsuranceApplication:
        app_uuid = _parse_id(application_id)
        with self._unit_of_work("load application"):
            application = self.applications.get_application(app_uuid)
        if application is None:
            raise NotFoundError("Application not found")
        if not caller.is_staff:
            ensure_owner_or_admin(caller, application.email)
        return application

    def list_applications(self, caller: Caller, status: Optional[ApplicationStatus] = None) -> List[InsuranceApplication]:
        """Staff see every application; customers only their own"""
        status_value = status.value if status is not None else None
        with self._unit_of_work("list applications"):
            if caller.is_staff:
                return self.applications.list_applications(status=status_value)
            return self.applications.list_by_email(caller.email, status=status_value)

    # Claims

    def submit_claim(self, draft: ClaimDraft, claimant: Caller) -> InsuranceClaim:
        """
        File a Pending claim against an approved policy whose premium is paid.

        Customers claim on their own policies; agents and admins may file for a
        policyholder. A policy holds at most one Pending claim at a time.

        Raises:
            ValidationError: Missing reason or supporting document
            NotFoundError: Unknown application id
            AuthorizationError: Policy belongs to someone else
            InvalidTransitionError: Policy not in force, or a claim is already open
        """
        validate_claim(draft)
        app_uuid = _parse_id(draft.application_id)

        with self._unit_of_work("submit claim"):
            application = self.applications.get_application(app_uuid)
            if application is None:
                raise NotFoundError("Application not found")
            if not claimant.is_staff:
                ensure_owner_or_admin(claimant, application.email)
            ensure_claimable(application.status, application.paid_at is not None)

            try:
                claim = self.claims.create_claim(draft, app_uuid, application.email)
            except IntegrityError as e:
                # Partial unique index on open claims
                self.db.rollback()
                raise InvalidTransitionError("Policy already has a Pending claim") from e
            self.db.commit()
            self.db.refresh(claim)

        claims_submitted_counter.inc()
        log_claim_event("submitted", str(claim.id), str(app_uuid), claim.status, self.request_id)
        return claim

    def review_claim(self, claim_id: str, decision: ReviewDecision, reviewer: Caller) -> InsuranceClaim:
        """
        Approve or reject a Pending claim.

        Same check order and compare-and-set as review_application.
        """
        claim_uuid = _parse_id(claim_id, "Claim")

        with self._unit_of_work("review claim"):
            claim = self.claims.get_claim(claim_uuid)
            if claim is None:
                raise NotFoundError("Claim not found")
            ensure_can_review(reviewer)

            current = ClaimStatus(claim.status)
            try:
                target = next_claim_status(current, decision)
            except InvalidTransitionError:
                self._audit_invalid_transition(claim_id, reviewer, current.value, decision, entity="claim")
                raise

            if not self.claims.transition_status(claim_uuid, ClaimStatus.PENDING, target, reviewer.email):
                self.db.rollback()
                self.db.refresh(claim)
                self._audit_invalid_transition(claim_id, reviewer, claim.status, decision, entity="claim")
                raise InvalidTransitionError(f"Claim is already {claim.status}; cannot {decision.value}")

            self.db.commit()
            self.db.refresh(claim)

        claim_review_counter.labels(outcome=claim.status).inc()
        log_claim_event("reviewed", claim_id, str(claim.application_id), claim.status, self.request_id)
        return claim

    def get_claim(self, claim_id: str, caller: Caller) -> InsuranceClaim:
        claim_uuid = _parse_id(claim_id, "Claim")
        with self._unit_of_work("load claim"):
            claim = self.claims.get_claim(claim_uuid)
        if claim is None:
            raise NotFoundError("Claim not found")
        if not caller.is_staff:
            ensure_owner_or_admin(caller, claim.claimant_email)
        return claim

    def list_claims(self, caller: Caller, status: Optional[ClaimStatus] = None) -> List[InsuranceClaim]:
        """Staff see every claim; customers only their own"""
        status_value = status.value if status is not None else None
        with self._unit_of_work("list claims"):
            if caller.is_staff:
                return self.claims.list_claims(status=status_value)
            return self.claims.list_claims(claimant_email=caller.email, status=status_value)

    # Payments

    async def initiate_payment(self, request: PaymentRequest, payer: Caller) -> Tuple[IntentHandle, PaymentTransaction]:
        """
        Create a processor intent and a pending ledger entry for it.

        The returned client secret is for the payer's browser only and is never
        logged or stored.

        Raises:
            ValidationError: Bad amount, currency, or missing reference
            NotFoundError: Unknown application id
            AuthorizationError: Application belongs to someone else
            InvalidTransitionError: Application is not Approved
            UpstreamError: Processor or storage failure
        """
        request = replace(request, currency=(request.currency or "").strip().lower())
        validate_payment_request(request)

        app_uuid = None
        if request.application_id:
            app_uuid = _parse_id(request.application_id)
            with self._unit_of_work("load application"):
                application = self.applications.get_application(app_uuid)
                if application is None:
                    raise NotFoundError("Application not found")
                ensure_owner_or_admin(payer, application.email)
                if application.status != ApplicationStatus.APPROVED.value:
                    raise InvalidTransitionError(
                        f"Application is {application.status}; only Approved applications can be paid"
                    )
                # Release the read transaction before calling the processor
                self.db.commit()

        intent = await self.gateway.create_intent(request.amount_minor, request.currency)

        with self._unit_of_work("record payment"):
            transaction = self.transactions.create_pending(
                processor_intent_id=intent.intent_id,
                payer_email=payer.email,
                amount_minor=request.amount_minor,
                currency=request.currency,
                application_id=app_uuid,
                policy_ref=request.policy_ref,
            )
            self.db.commit()
            self.db.refresh(transaction)

        record_payment(TransactionStatus.PENDING.value)
        log_payment_event("initiated", intent.intent_id, transaction.status, request.amount_minor, request.currency)
        return intent, transaction

    def confirm_payment(
        self,
        intent_id: str,
        outcome: PaymentOutcome,
        reason: Optional[str] = None,
    ) -> PaymentTransaction:
        """
        Reconcile a processor outcome with the ledger.

        Idempotent: once a transaction is final, later calls return it
        unchanged. A requires_action outcome leaves it pending.

        Raises:
            NotFoundError: No transaction for this intent
        """
        with self._unit_of_work("reconcile payment"):
            transaction = self.transactions.get_by_intent(intent_id)
            if transaction is None:
                raise NotFoundError("Transaction not found")

            target = transaction_status_for(outcome)
            if TransactionStatus(transaction.status) in TERMINAL_TRANSACTION_STATUSES:
                if target is not None and target.value != transaction.status:
                    log_payment_event(
                        "conflicting_outcome_ignored", intent_id, transaction.status, level=logging.WARNING
                    )
                return transaction
            if target is None:
                return transaction

            if self.transactions.finalize(intent_id, target, reason):
                if target == TransactionStatus.SUCCESS and transaction.application_id is not None:
                    self.applications.mark_paid(transaction.application_id)
                self.db.commit()
                record_payment(target.value)
                log_payment_event("finalized", intent_id, target.value, transaction.amount_minor, transaction.currency)
            else:
                # A concurrent confirmation finalized it first
                self.db.rollback()

            self.db.refresh(transaction)
            return transaction

    async def pay_with_token(self, intent_id: str, payment_method_token: str, payer: Caller) -> PaymentTransaction:
        """
        Confirm a pending intent with the payer's processor token and reconcile.

        Raises:
            PaymentPendingError: Processor timed out; the transaction stays pending
        """
        transaction = self._load_payment(intent_id, payer)
        if transaction.status != TransactionStatus.PENDING.value:
            return transaction

        try:
            result = await self.gateway.confirm_intent(intent_id, payment_method_token)
        except PaymentPendingError:
            log_payment_event("confirmation_unresolved", intent_id, TransactionStatus.PENDING.value, level=logging.WARNING)
            raise

        return self.confirm_payment(intent_id, result.outcome, result.reason)

    async def refresh_payment_status(self, intent_id: str, caller: Caller) -> PaymentTransaction:
        """Ask the processor for the intent's state and reconcile if it has settled"""
        transaction = self._load_payment(intent_id, caller)
        if transaction.status != TransactionStatus.PENDING.value:
            return transaction

        result = await self.gateway.retrieve_intent(intent_id)
        if result is None:
            return self._load_payment(intent_id, caller)
        return self.confirm_payment(intent_id, result.outcome, result.reason)

    def _load_payment(self, intent_id: str, caller: Caller) -> PaymentTransaction:
        with self._unit_of_work("load payment"):
            transaction = self.transactions.get_by_intent(intent_id)
            if transaction is None:
                raise NotFoundError("Transaction not found")
            ensure_owner_or_admin(caller, transaction.payer_email)
            # Detach with attributes loaded so no transaction is held across processor calls
            self.db.expunge(transaction)
            self.db.commit()
        return transaction

    def list_transactions(self, caller: Caller) -> List[PaymentTransaction]:
        with self._unit_of_work("list transactions"):
            if caller.role == Role.ADMIN:
                return self.transactions.list_transactions()
            return self.transactions.list_by_payer(caller.email)

    def revenue_summary(self, caller: Caller) -> Dict[str, Dict[str, int]]:
        """Successful revenue per currency and transaction counts per status"""
        ensure_can_view_all(caller)
        with self._unit_of_work("summarize revenue"):
            return {
                "revenue_minor": self.transactions.revenue_by_currency(),
                "transactions": self.transactions.count_by_status(),
            }
