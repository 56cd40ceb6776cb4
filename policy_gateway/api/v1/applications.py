"""Insurance application endpoints: submit, list, fetch and review"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from policy_gateway.api.dependencies import get_caller, get_coordinator
from policy_gateway.api.v1.schemas import (
    ApplicationCreateRequest,
    ApplicationListResponse,
    ApplicationResponse,
    ReviewRequest,
)
from policy_gateway.domain.models import ApplicationStatus, Caller
from policy_gateway.services.coordinator import LifecycleCoordinator

router = APIRouter()


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
def submit_application(
    request_body: ApplicationCreateRequest,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """Submit a new application; it starts Pending and no payment is taken"""
    application = coordinator.submit_application(request_body.to_draft(), submitter=caller)
    return ApplicationResponse.from_record(application)


@router.get("/applications", response_model=ApplicationListResponse)
def list_applications(
    status: Optional[ApplicationStatus] = Query(None, description="Filter by status"),
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """
    List applications visible to the caller.

    Customers get only their own; agents and admins get everyone's.
    """
    applications = coordinator.list_applications(caller, status=status)
    return ApplicationListResponse(applications=[ApplicationResponse.from_record(a) for a in applications])


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: str,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    return ApplicationResponse.from_record(coordinator.get_application(application_id, caller))


@router.post("/applications/{application_id}/review", response_model=ApplicationResponse)
def review_application(
    application_id: str,
    request_body: ReviewRequest,
    caller: Caller = Depends(get_caller),
    coordinator: LifecycleCoordinator = Depends(get_coordinator),
):
    """Approve or reject a Pending application (agents and admins only)"""
    application = coordinator.review_application(application_id, request_body.decision, caller)
    return ApplicationResponse.from_record(application)
