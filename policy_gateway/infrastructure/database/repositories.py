"""Data access layer for applications, claims, ledger transactions and view counters"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, select, update, insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from policy_gateway.domain.models import ApplicationDraft, ApplicationStatus, ClaimDraft, ClaimStatus, TransactionStatus
from policy_gateway.infrastructure.database.models import (
    InsuranceApplication,
    InsuranceClaim,
    PaymentTransaction,
    ViewCounter,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationRepository:
    """Repository for insurance applications"""

    def __init__(self, db: Session):
        self.db = db

    def create_application(self, draft: ApplicationDraft) -> InsuranceApplication:
        """Persist a new Pending application"""
        db_application = InsuranceApplication(
            name=draft.name.strip(),
            email=draft.email.strip().lower(),
            address=draft.address.strip(),
            national_id=draft.national_id.strip(),
            nominee_name=draft.nominee.name.strip(),
            nominee_relationship=draft.nominee.relationship.strip(),
            health_disclosure=list(draft.health_disclosure) or ["None"],
            insurance_type=draft.insurance_type,
            coverage_amount=draft.coverage_amount,
            payment_term=draft.payment_term,
            status=ApplicationStatus.PENDING.value,
            application_date=_utcnow(),
        )
        self.db.add(db_application)
        self.db.flush()  # Get ID without committing
        return db_application

    def get_application(self, application_id: uuid.UUID) -> Optional[InsuranceApplication]:
        return self.db.get(InsuranceApplication, application_id, populate_existing=True)

    def list_by_email(self, email: str, status: Optional[str] = None, limit: int = 50) -> List[InsuranceApplication]:
        """Fetch one customer's applications, newest first"""
        query = self.db.query(InsuranceApplication).filter(InsuranceApplication.email == email.strip().lower())
        if status is not None:
            query = query.filter(InsuranceApplication.status == status)
        return query.order_by(InsuranceApplication.application_date.desc()).limit(limit).all()

    def list_applications(self, status: Optional[str] = None, limit: int = 100) -> List[InsuranceApplication]:
        query = self.db.query(InsuranceApplication)
        if status is not None:
            query = query.filter(InsuranceApplication.status == status)
        return query.order_by(InsuranceApplication.application_date.desc()).limit(limit).all()

    def transition_status(
        self,
        application_id: uuid.UUID,
        expected: ApplicationStatus,
        target: ApplicationStatus,
        reviewer_email: str,
    ) -> bool:
        """
        Compare-and-set the status column.

        Returns:
            True if this call moved the row, False if the status no longer matched
        """
        result = self.db.execute(
            update(InsuranceApplication)
            .where(InsuranceApplication.id == application_id)
            .where(InsuranceApplication.status == expected.value)
            .values(status=target.value, reviewed_by=reviewer_email, reviewed_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_paid(self, application_id: uuid.UUID) -> None:
        # First successful payment wins the timestamp
        self.db.execute(
            update(InsuranceApplication)
            .where(InsuranceApplication.id == application_id)
            .where(InsuranceApplication.paid_at.is_(None))
            .values(paid_at=_utcnow())
            .execution_options(synchronize_session=False)
        )


class ClaimRepository:
    """Repository for claims against issued policies"""

    def __init__(self, db: Session):
        self.db = db

    def create_claim(self, draft: ClaimDraft, application_id: uuid.UUID, claimant_email: str) -> InsuranceClaim:
        """
        Persist a new Pending claim.

        Raises:
            IntegrityError: The policy already has an open claim
        """
        db_claim = InsuranceClaim(
            application_id=application_id,
            claimant_email=claimant_email.strip().lower(),
            claimant_name=(draft.claimant_name or "").strip() or None,
            reason=draft.reason.strip(),
            document_ref=draft.document_ref.strip(),
            status=ClaimStatus.PENDING.value,
            submitted_at=_utcnow(),
        )
        self.db.add(db_claim)
        self.db.flush()
        return db_claim

    def get_claim(self, claim_id: uuid.UUID) -> Optional[InsuranceClaim]:
        return self.db.get(InsuranceClaim, claim_id, populate_existing=True)

    def list_claims(
        self, claimant_email: Optional[str] = None, status: Optional[str] = None, limit: int = 100
    ) -> List[InsuranceClaim]:
        query = self.db.query(InsuranceClaim)
        if claimant_email is not None:
            query = query.filter(InsuranceClaim.claimant_email == claimant_email.strip().lower())
        if status is not None:
            query = query.filter(InsuranceClaim.status == status)
        return query.order_by(InsuranceClaim.submitted_at.desc()).limit(limit).all()

    def transition_status(
        self, claim_id: uuid.UUID, expected: ClaimStatus, target: ClaimStatus, reviewer_email: str
    ) -> bool:
        """Compare-and-set, as for applications"""
        result = self.db.execute(
            update(InsuranceClaim)
            .where(InsuranceClaim.id == claim_id)
            .where(InsuranceClaim.status == expected.value)
            .values(status=target.value, reviewed_by=reviewer_email, reviewed_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class TransactionRepository:
    """Repository for the payment ledger"""

    def __init__(self, db: Session):
        self.db = db

    def create_pending(
        self,
        processor_intent_id: str,
        payer_email: str,
        amount_minor: int,
        currency: str,
        application_id: Optional[uuid.UUID] = None,
        policy_ref: Optional[str] = None,
    ) -> PaymentTransaction:
        db_transaction = PaymentTransaction(
            processor_intent_id=processor_intent_id,
            payer_email=payer_email.strip().lower(),
            application_id=application_id,
            policy_ref=policy_ref,
            amount_minor=amount_minor,
            currency=currency,
            status=TransactionStatus.PENDING.value,
            created_at=_utcnow(),
        )
        self.db.add(db_transaction)
        self.db.flush()
        return db_transaction

    def get_by_intent(self, processor_intent_id: str) -> Optional[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.processor_intent_id == processor_intent_id)
            .populate_existing()
            .first()
        )

    def finalize(
        self,
        processor_intent_id: str,
        status: TransactionStatus,
        failure_reason: Optional[str] = None,
    ) -> bool:
        """
        Move a pending transaction to its final status.

        Returns:
            True if this call finalized the row, False if it was already final
        """
        result = self.db.execute(
            update(PaymentTransaction)
            .where(PaymentTransaction.processor_intent_id == processor_intent_id)
            .where(PaymentTransaction.status == TransactionStatus.PENDING.value)
            .values(status=status.value, failure_reason=failure_reason, finalized_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_by_payer(self, payer_email: str, limit: int = 50) -> List[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.payer_email == payer_email.strip().lower())
            .order_by(PaymentTransaction.created_at.desc())
            .limit(limit)
            .all()
        )

    def list_transactions(self, limit: int = 100) -> List[PaymentTransaction]:
        return self.db.query(PaymentTransaction).order_by(PaymentTransaction.created_at.desc()).limit(limit).all()

    def revenue_by_currency(self) -> Dict[str, int]:
        """Sum of successful charges per currency"""
        rows = self.db.execute(
            select(PaymentTransaction.currency, func.sum(PaymentTransaction.amount_minor))
            .where(PaymentTransaction.status == TransactionStatus.SUCCESS.value)
            .group_by(PaymentTransaction.currency)
        ).all()
        return {currency: int(total) for currency, total in rows}

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.execute(
            select(PaymentTransaction.status, func.count()).group_by(PaymentTransaction.status)
        ).all()
        counts = {status.value: 0 for status in TransactionStatus}
        counts.update({status: int(n) for status, n in rows})
        return counts


class ViewCounterRepository:
    """Repository for per-resource view counts"""

    def __init__(self, db: Session):
        self.db = db

    def increment(self, resource_id: str) -> None:
        """Add one view in a single statement; creates the counter on first use"""
        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = dialect_insert(ViewCounter).values(resource_id=resource_id, count=1, updated_at=_utcnow())
            stmt = stmt.on_conflict_do_update(
                index_elements=[ViewCounter.resource_id],
                set_={"count": ViewCounter.count + 1, "updated_at": _utcnow()},
            )
            self.db.execute(stmt)
            return

        # Other dialects: atomic add, then create on first use
        if self._add_one(resource_id):
            return
        try:
            self.db.execute(insert(ViewCounter).values(resource_id=resource_id, count=1, updated_at=_utcnow()))
        except IntegrityError:
            # Another writer created the row first
            self.db.rollback()
            self._add_one(resource_id)

    def _add_one(self, resource_id: str) -> bool:
        result = self.db.execute(
            update(ViewCounter)
            .where(ViewCounter.resource_id == resource_id)
            .values(count=ViewCounter.count + 1, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_count(self, resource_id: str) -> int:
        count = self.db.execute(
            select(ViewCounter.count).where(ViewCounter.resource_id == resource_id)
        ).scalar_one_or_none()
        return int(count or 0)
