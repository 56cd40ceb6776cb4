"""SQLAlchemy ORM models for applications, claims, the payment ledger and view counters"""

import uuid
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, Index, Text, JSON, Uuid, CheckConstraint, text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class InsuranceApplication(Base):
    """Customer application for an insurance policy"""

    __tablename__ = "application"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, index=True)
    address = Column(Text, nullable=False)
    national_id = Column(Text, nullable=False)
    nominee_name = Column(Text, nullable=False)
    nominee_relationship = Column(Text, nullable=False)
    health_disclosure = Column(JSON, nullable=False, default=list)
    insurance_type = Column(Text, nullable=False)
    coverage_amount = Column(BigInteger, nullable=False)
    payment_term = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="Pending", index=True)
    application_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_by = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    transactions = relationship("PaymentTransaction", back_populates="application")
    claims = relationship("InsuranceClaim", back_populates="application")


class PaymentTransaction(Base):
    """One processor payment intent and its final outcome"""

    __tablename__ = "payment_transaction"
    __table_args__ = (CheckConstraint("amount_minor > 0", name="ck_payment_transaction_amount_positive"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    processor_intent_id = Column(Text, nullable=False, unique=True, index=True)
    payer_email = Column(Text, nullable=False, index=True)
    # RESTRICT: an application with ledger entries cannot be deleted
    application_id = Column(
        Uuid(as_uuid=True), ForeignKey("application.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    policy_ref = Column(Text, nullable=True)
    amount_minor = Column(BigInteger, nullable=False)
    currency = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    application = relationship("InsuranceApplication", back_populates="transactions")


class InsuranceClaim(Base):
    """Claim against an approved, paid policy"""

    __tablename__ = "claim"
    __table_args__ = (
        # At most one open claim per policy
        Index(
            "uq_claim_open_per_application",
            "application_id",
            unique=True,
            sqlite_where=text("status = 'Pending'"),
            postgresql_where=text("status = 'Pending'"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        Uuid(as_uuid=True), ForeignKey("application.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    claimant_email = Column(Text, nullable=False, index=True)
    claimant_name = Column(Text, nullable=True)
    reason = Column(Text, nullable=False)
    document_ref = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="Pending", index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_by = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    application = relationship("InsuranceApplication", back_populates="claims")


class ViewCounter(Base):
    """Monotone view count per visitor-feed resource"""

    __tablename__ = "view_counter"
    __table_args__ = (CheckConstraint("count >= 0", name="ck_view_counter_non_negative"),)

    resource_id = Column(Text, primary_key=True)
    count = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
