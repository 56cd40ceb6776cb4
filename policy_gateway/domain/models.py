"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ClaimStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PaymentOutcome(str, Enum):
    """Result reported by the payment processor for an intent"""

    SUCCEEDED = "succeeded"
    REQUIRES_ACTION = "requires_action"
    FAILED = "failed"


class Role(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    ADMIN = "admin"


class InsuranceType(str, Enum):
    LIFE = "life"
    HEALTH = "health"
    VEHICLE = "vehicle"
    PROPERTY = "property"


class PaymentTerm(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


HEALTH_CONDITIONS = (
    "Diabetes",
    "High Blood Pressure",
    "Heart Disease",
    "Asthma",
    "Cancer",
)
NO_CONDITIONS = "None"


@dataclass(frozen=True)
class Caller:
    """Identity supplied by the upstream identity provider"""

    email: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.AGENT, Role.ADMIN)


@dataclass
class Nominee:
    name: str
    relationship: str


@dataclass
class ApplicationDraft:
    """Customer-submitted application before it is persisted"""

    name: str
    email: str
    address: str
    national_id: str
    nominee: Nominee
    insurance_type: str
    coverage_amount: int
    payment_term: str
    health_disclosure: List[str] = field(default_factory=list)


@dataclass
class PaymentRequest:
    """Premium payment the payer wants to start"""

    amount_minor: int
    currency: str
    application_id: Optional[str] = None
    policy_ref: Optional[str] = None


@dataclass
class IntentHandle:
    """Processor handle returned when a payment intent is created"""

    intent_id: str
    client_secret: str


@dataclass
class ConfirmationResult:
    outcome: PaymentOutcome
    reason: Optional[str] = None


@dataclass
class ClaimDraft:
    """Claim filed against a paid, approved policy"""

    application_id: str
    reason: str
    document_ref: str
    claimant_name: Optional[str] = None
