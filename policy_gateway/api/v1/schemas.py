"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from policy_gateway.domain.models import (
    ApplicationDraft,
    ClaimDraft,
    InsuranceType,
    Nominee,
    PaymentOutcome,
    PaymentRequest,
    PaymentTerm,
    ReviewDecision,
)
from policy_gateway.infrastructure.database.models import InsuranceApplication, InsuranceClaim, PaymentTransaction


class StrictRequest(BaseModel):
    """Request bodies reject unknown fields"""

    model_config = ConfigDict(extra="forbid")


class NomineeSchema(StrictRequest):
    name: str = Field(..., min_length=1)
    relationship: str = Field(..., min_length=1)


class ApplicationCreateRequest(StrictRequest):
    """Request body for POST /v1/applications"""

    name: str = Field(..., min_length=1, description="Applicant full name")
    email: str = Field(..., min_length=3, description="Applicant email, used for ownership")
    address: str = Field(..., min_length=1)
    national_id: str = Field(..., min_length=1, description="National identity document number")
    nominee: NomineeSchema
    insurance_type: InsuranceType
    coverage_amount: int = Field(..., gt=0, description="Requested coverage in whole currency units")
    payment_term: PaymentTerm
    health_disclosure: List[str] = Field(default_factory=list, description="Pre-existing conditions, or ['None']")

    def to_draft(self) -> ApplicationDraft:
        return ApplicationDraft(
            name=self.name,
            email=self.email,
            address=self.address,
            national_id=self.national_id,
            nominee=Nominee(name=self.nominee.name, relationship=self.nominee.relationship),
            insurance_type=self.insurance_type.value,
            coverage_amount=self.coverage_amount,
            payment_term=self.payment_term.value,
            health_disclosure=list(self.health_disclosure),
        )


class ReviewRequest(StrictRequest):
    """Request body for POST /v1/applications/{id}/review and /v1/claims/{id}/review"""

    decision: ReviewDecision


class ApplicationResponse(BaseModel):
    id: str
    name: str
    email: str
    address: str
    national_id: str
    nominee: Dict[str, str]
    health_disclosure: List[str]
    insurance_type: str
    coverage_amount: int
    payment_term: str
    status: str
    application_date: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    paid: bool = False
    paid_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: InsuranceApplication) -> "ApplicationResponse":
        return cls(
            id=str(record.id),
            name=record.name,
            email=record.email,
            address=record.address,
            national_id=record.national_id,
            nominee={"name": record.nominee_name, "relationship": record.nominee_relationship},
            health_disclosure=list(record.health_disclosure or []),
            insurance_type=record.insurance_type,
            coverage_amount=record.coverage_amount,
            payment_term=record.payment_term,
            status=record.status,
            application_date=record.application_date,
            reviewed_by=record.reviewed_by,
            reviewed_at=record.reviewed_at,
            paid=record.paid_at is not None,
            paid_at=record.paid_at,
        )


class ApplicationListResponse(BaseModel):
    applications: List[ApplicationResponse]


class ClaimCreateRequest(StrictRequest):
    """Request body for POST /v1/claims"""

    application_id: str = Field(..., min_length=1, description="Approved, paid application the claim is against")
    reason: str = Field(..., min_length=1)
    document_ref: str = Field(..., min_length=1, description="Reference to the uploaded supporting document")
    claimant_name: Optional[str] = None

    def to_draft(self) -> ClaimDraft:
        return ClaimDraft(
            application_id=self.application_id,
            reason=self.reason,
            document_ref=self.document_ref,
            claimant_name=self.claimant_name,
        )


class ClaimResponse(BaseModel):
    id: str
    application_id: str
    claimant_email: str
    claimant_name: Optional[str] = None
    reason: str
    document_ref: str
    status: str
    submitted_at: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: InsuranceClaim) -> "ClaimResponse":
        return cls(
            id=str(record.id),
            application_id=str(record.application_id),
            claimant_email=record.claimant_email,
            claimant_name=record.claimant_name,
            reason=record.reason,
            document_ref=record.document_ref,
            status=record.status,
            submitted_at=record.submitted_at,
            reviewed_by=record.reviewed_by,
            reviewed_at=record.reviewed_at,
        )


class ClaimListResponse(BaseModel):
    claims: List[ClaimResponse]


class PaymentIntentRequest(StrictRequest):
    """Request body for POST /v1/payments/intents"""

    amount: int = Field(..., gt=0, description="Amount in minor currency units")
    currency: str = Field(..., min_length=3, max_length=3, description="ISO currency code, e.g. usd")
    application_id: Optional[str] = None
    policy_ref: Optional[str] = Field(None, min_length=1)

    def to_domain(self) -> PaymentRequest:
        return PaymentRequest(
            amount_minor=self.amount,
            currency=self.currency,
            application_id=self.application_id,
            policy_ref=self.policy_ref,
        )


class ConfirmPaymentRequest(StrictRequest):
    """Request body for POST /v1/payments/{intent_id}/confirm"""

    payment_method_token: str = Field(..., min_length=1, description="Processor-issued payment method id")


class ProcessorNotification(StrictRequest):
    """Asynchronous outcome pushed by the payment processor"""

    intent_id: str = Field(..., min_length=1)
    outcome: PaymentOutcome
    reason: Optional[str] = None


class TransactionResponse(BaseModel):
    id: str
    processor_intent_id: str
    payer_email: str
    application_id: Optional[str] = None
    policy_ref: Optional[str] = None
    amount: int
    currency: str
    status: str
    failure_reason: Optional[str] = None
    created_at: datetime
    finalized_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: PaymentTransaction) -> "TransactionResponse":
        return cls(
            id=str(record.id),
            processor_intent_id=record.processor_intent_id,
            payer_email=record.payer_email,
            application_id=str(record.application_id) if record.application_id else None,
            policy_ref=record.policy_ref,
            amount=record.amount_minor,
            currency=record.currency,
            status=record.status,
            failure_reason=record.failure_reason,
            created_at=record.created_at,
            finalized_at=record.finalized_at,
        )


class PaymentIntentResponse(BaseModel):
    """Response for POST /v1/payments/intents; client_secret is for the payer's browser only"""

    intent_id: str
    client_secret: str
    transaction: TransactionResponse


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]


class RevenueResponse(BaseModel):
    revenue_minor: Dict[str, int]
    transactions: Dict[str, int]


class ViewCountResponse(BaseModel):
    resource_id: str
    count: int


class ErrorDetail(BaseModel):
    kind: str
    message: str
    retryable: bool = False


class ErrorResponse(BaseModel):
    error: ErrorDetail
