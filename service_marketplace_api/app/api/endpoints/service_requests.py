"""
Service request (proposal) endpoints.

Proposals are created by prospective providers and resolved by the
creator of the service.  Accepting a proposal closes the negotiation
for the whole service.
"""

from typing import List

from fastapi import APIRouter, Path, status

from service_marketplace_api.app.core.errors import MarketplaceError
from service_marketplace_api.app.schemas.service_request import (
    ResolveRequest,
    ResolveResult,
    ServiceRequestCreate,
    ServiceRequestRead,
)
from service_marketplace_api.app.services.negotiation_service import NegotiationService


router = APIRouter()


@router.post("/request", response_model=ServiceRequestRead, status_code=status.HTTP_201_CREATED)
async def create_service_request(body: ServiceRequestCreate) -> ServiceRequestRead:
    """Submit a proposal for an open service."""
    try:
        return await NegotiationService.create_request(body)
    except MarketplaceError as e:
        raise e.to_http() from e


@router.get("/{service_id}", response_model=List[ServiceRequestRead])
async def list_service_requests(
    service_id: int = Path(..., description="ID of the service"),
) -> List[ServiceRequestRead]:
    """List all proposals for a service, oldest first."""
    return await NegotiationService.list_requests(service_id)


@router.post("/{request_id}/resolve", response_model=ResolveResult)
async def resolve_service_request(
    body: ResolveRequest,
    request_id: int = Path(..., description="ID of the service request"),
) -> ResolveResult:
    """Accept or decline a proposal (service creator only).

    Accepting also accepts the service on behalf of the proposer and
    declines every other pending proposal for it.
    """
    try:
        request, service = await NegotiationService.resolve_request(request_id, body.decision, body.actor_id)
    except MarketplaceError as e:
        raise e.to_http() from e
    return ResolveResult(request=request, service=service)
