"""Input validation for applications, claims and payments"""

import re
from typing import List

from policy_gateway.domain.exceptions import ValidationError
from policy_gateway.domain.models import (
    HEALTH_CONDITIONS,
    NO_CONDITIONS,
    ApplicationDraft,
    ClaimDraft,
    InsuranceType,
    PaymentRequest,
    PaymentTerm,
)

CURRENCY_PATTERN = re.compile(r"^[a-z]{3}$")
RESOURCE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def _require(value: str, field_name: str, problems: List[str]) -> None:
    if value is None or not str(value).strip():
        problems.append(f"{field_name} is required")


def validate_health_disclosure(conditions: List[str]) -> List[str]:
    """
    Check disclosed conditions against the fixed list.

    "None" is only accepted on its own. An empty list is treated as "None".

    Returns:
        List of problems (empty when valid)
    """
    if not conditions:
        return []

    problems = []
    if NO_CONDITIONS in conditions and len(conditions) > 1:
        problems.append(f"health_disclosure '{NO_CONDITIONS}' cannot be combined with conditions")
    for condition in conditions:
        if condition != NO_CONDITIONS and condition not in HEALTH_CONDITIONS:
            problems.append(f"health_disclosure has unknown condition '{condition}'")
    if len(set(conditions)) != len(conditions):
        problems.append("health_disclosure has duplicate entries")
    return problems


def validate_application(draft: ApplicationDraft) -> None:
    """
    Reject incomplete or out-of-range submissions.

    Raises:
        ValidationError: With every problem found, joined in one message
    """
    problems: List[str] = []
    _require(draft.name, "name", problems)
    _require(draft.email, "email", problems)
    _require(draft.address, "address", problems)
    _require(draft.national_id, "national_id", problems)
    if draft.nominee is None:
        problems.append("nominee is required")
    else:
        _require(draft.nominee.name, "nominee.name", problems)
        _require(draft.nominee.relationship, "nominee.relationship", problems)

    if draft.email and "@" not in draft.email:
        problems.append("email is not a valid address")
    if draft.insurance_type not in {t.value for t in InsuranceType}:
        problems.append(f"insurance_type '{draft.insurance_type}' is not offered")
    if draft.payment_term not in {t.value for t in PaymentTerm}:
        problems.append(f"payment_term '{draft.payment_term}' is not offered")
    if not isinstance(draft.coverage_amount, int) or draft.coverage_amount <= 0:
        problems.append("coverage_amount must be a positive integer")

    problems.extend(validate_health_disclosure(draft.health_disclosure))

    if problems:
        raise ValidationError("; ".join(problems))


def validate_claim(draft: ClaimDraft) -> None:
    problems: List[str] = []
    _require(draft.application_id, "application_id", problems)
    _require(draft.reason, "reason", problems)
    _require(draft.document_ref, "document_ref", problems)
    if problems:
        raise ValidationError("; ".join(problems))


def validate_amount(amount_minor: int) -> None:
    # bool is an int subclass
    if isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0:
        raise ValidationError("amount must be a positive integer in minor currency units")


def validate_payment_request(request: PaymentRequest) -> None:
    validate_amount(request.amount_minor)
    if not CURRENCY_PATTERN.match(request.currency or ""):
        raise ValidationError("currency must be a three-letter lowercase ISO code")
    if not request.application_id and not request.policy_ref:
        raise ValidationError("either application_id or policy_ref is required")


def validate_resource_id(resource_id: str) -> None:
    if not RESOURCE_ID_PATTERN.match(resource_id or ""):
        raise ValidationError("resource id must be 1-128 characters of letters, digits, '.', '_' or '-'")
