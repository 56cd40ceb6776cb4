"""Race-free view counters for the visitor feed"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from policy_gateway.domain.exceptions import UpstreamError
from policy_gateway.domain.validation import validate_resource_id
from policy_gateway.infrastructure.database.repositories import ViewCounterRepository
from policy_gateway.infrastructure.observability.metrics import view_increment_counter


class ViewCounterService:
    """
    Increment and read per-resource view counts.

    Increments are a single atomic statement in the database, so concurrent
    page loads never overwrite each other. Reads are plain selects of the
    committed value and never wait on writers.
    """

    def __init__(self, db: Session):
        self.db = db
        self.counters = ViewCounterRepository(db)

    def increment(self, resource_id: str) -> int:
        """Add one view and return the committed count"""
        validate_resource_id(resource_id)
        try:
            self.counters.increment(resource_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"View counter increment failed: {e}", extra={"resource_id": resource_id})
            raise UpstreamError("View counter storage unavailable") from e

        view_increment_counter.inc()
        return self.read(resource_id)

    def read(self, resource_id: str) -> int:
        """Latest committed count; 0 before the first view"""
        validate_resource_id(resource_id)
        try:
            return self.counters.get_count(resource_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise UpstreamError("View counter storage unavailable") from e
