"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "domain_error"
    retryable = False


class ValidationError(DomainException):
    """Input is malformed or incomplete"""

    kind = "validation_error"


class NotFoundError(DomainException):
    """Referenced application or transaction does not exist"""

    kind = "not_found"


class InvalidTransitionError(DomainException):
    """Status change not allowed from the current state"""

    kind = "invalid_transition"


class AuthorizationError(DomainException):
    """Caller lacks the capability for this operation"""

    kind = "authorization_error"


class UpstreamError(DomainException):
    """Payment processor or storage failed; resubmitting is safe"""

    kind = "upstream_error"
    retryable = True


class PaymentPendingError(UpstreamError):
    """Processor did not answer a confirmation in time; the charge may have gone through"""

    kind = "payment_pending"
    retryable = False
