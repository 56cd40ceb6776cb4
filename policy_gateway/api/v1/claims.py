"""Claim endpoints: file, list, fetch and review claims on issued policies"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from policy_gateway.api.dependencies import get_caller, get_coordinator
from policy_gateway.api.v1.schemas import ClaimCreateRequest, ClaimListResponse, ClaimResponse, ReviewRequest
from policy_gateway.domain.models import Caller, ClaimStatus
from policy_gateway.services.coordinator import LifecycleCoordinator

router = APIRouter()


@router.post("/claims", response_model=ClaimResponse, status_code=201)
def submit_claim(
    request_body: ClaimCreateRequest,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """File a claim; the policy must be Approved with its premium paid"""
    claim = coordinator.submit_claim(request_body.to_draft(), caller)
    return ClaimResponse.from_record(claim)


@router.get("/claims", response_model=ClaimListResponse)
def list_claims(
    status: Optional[ClaimStatus] = Query(None, description="Filter by status"),
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    claims = coordinator.list_claims(caller, status=status)
    return ClaimListResponse(claims=[ClaimResponse.from_record(c) for c in claims])


@router.get("/claims/{claim_id}", response_model=ClaimResponse)
def get_claim(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    return ClaimResponse.from_record(coordinator.get_claim(claim_id, caller))


@router.post("/claims/{claim_id}/review", response_model=ClaimResponse)
def review_claim(
    claim_id: str,
    request_body: ReviewRequest,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """Approve or reject a Pending claim (agents and admins only)"""
    claim = coordinator.review_claim(claim_id, request_body.decision, caller)
    return ClaimResponse.from_record(claim)
