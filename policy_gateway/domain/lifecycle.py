"""
Application, claim and transaction state machines.

Applications: Pending -> Approved | Rejected. Both outcomes are terminal; a
customer who wants another decision submits a new application.

Claims follow the same review rules as applications.

Transactions: pending -> success | failed, finalized once.
"""

from typing import Optional

from policy_gateway.domain.exceptions import AuthorizationError, InvalidTransitionError
from policy_gateway.domain.models import (
    ApplicationStatus,
    Caller,
    ClaimStatus,
    PaymentOutcome,
    ReviewDecision,
    Role,
    TransactionStatus,
)

TERMINAL_APPLICATION_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})
TERMINAL_CLAIM_STATUSES = frozenset({ClaimStatus.APPROVED, ClaimStatus.REJECTED})
TERMINAL_TRANSACTION_STATUSES = frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED})


def decision_target(decision: ReviewDecision) -> ApplicationStatus:
    """Status an application moves to for a reviewer decision"""
    if decision == ReviewDecision.APPROVE:
        return ApplicationStatus.APPROVED
    return ApplicationStatus.REJECTED


def next_application_status(current: ApplicationStatus, decision: ReviewDecision) -> ApplicationStatus:
    """
    Resolve a review against the current status.

    Raises:
        InvalidTransitionError: If the application already has a decision
    """
    if current in TERMINAL_APPLICATION_STATUSES:
        raise InvalidTransitionError(
            f"Application is already {current.value}; cannot {decision.value}"
        )
    return decision_target(decision)


def next_claim_status(current: ClaimStatus, decision: ReviewDecision) -> ClaimStatus:
    if current in TERMINAL_CLAIM_STATUSES:
        raise InvalidTransitionError(f"Claim is already {current.value}; cannot {decision.value}")
    return ClaimStatus.APPROVED if decision == ReviewDecision.APPROVE else ClaimStatus.REJECTED


def ensure_claimable(application_status: str, paid: bool) -> None:
    """
    Claims are only filed against policies in force.

    Raises:
        InvalidTransitionError: Application not Approved, or premium not paid yet
    """
    if application_status != ApplicationStatus.APPROVED.value:
        raise InvalidTransitionError(
            f"Application is {application_status}; claims need an Approved policy"
        )
    if not paid:
        raise InvalidTransitionError("Premium has not been paid; the policy is not in force")


def transaction_status_for(outcome: PaymentOutcome) -> Optional[TransactionStatus]:
    """Map a processor outcome to a final ledger status, or None while still in progress"""
    if outcome == PaymentOutcome.SUCCEEDED:
        return TransactionStatus.SUCCESS
    if outcome == PaymentOutcome.FAILED:
        return TransactionStatus.FAILED
    return None


def ensure_can_review(reviewer: Caller) -> None:
    if reviewer.role not in (Role.AGENT, Role.ADMIN):
        raise AuthorizationError("Only agents and administrators can review applications and claims")


def ensure_can_view_all(caller: Caller) -> None:
    if not caller.is_staff:
        raise AuthorizationError("Only agents and administrators can view every record")


def ensure_owner_or_admin(caller: Caller, owner_email: str) -> None:
    """Customers and agents may only act on their own records; admins on any"""
    if caller.role == Role.ADMIN:
        return
    if caller.email.strip().lower() != (owner_email or "").strip().lower():
        raise AuthorizationError("Record belongs to another user")
