"""Visitor feed view counters"""

from fastapi import APIRouter, Depends

from policy_gateway.api.dependencies import get_view_counter
from policy_gateway.api.v1.schemas import ViewCountResponse
from policy_gateway.services.view_counter import ViewCounterService

router = APIRouter()


@router.post("/views/{resource_id}/increment", response_model=ViewCountResponse)
def increment_views(resource_id: str, counter: ViewCounterService = Depends(get_view_counter)):
    """Count one page load"""
    return ViewCountResponse(resource_id=resource_id, count=counter.increment(resource_id))


@router.get("/views/{resource_id}", response_model=ViewCountResponse)
def read_views(resource_id: str, counter: ViewCounterService = Depends(get_view_counter)):
    return ViewCountResponse(resource_id=resource_id, count=counter.read(resource_id))
