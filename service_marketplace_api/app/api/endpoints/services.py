"""
Service listing endpoints.

Creating a service accepts multipart form data with up to
``settings.max_service_images`` images.  Status changes and edits of
the descriptive fields are separate operations, each with its own
ownership check.
"""

from typing import List, Optional

from fastapi import APIRouter, File, Form, Path, Query, Request, UploadFile, status
from pydantic import ValidationError as PydanticValidationError

from service_marketplace_api.app.core.config import settings
from service_marketplace_api.app.core.errors import MarketplaceError, ValidationError, from_pydantic
from service_marketplace_api.app.core.uploads import check_image, discard_uploads, save_upload
from service_marketplace_api.app.schemas.address import address_from_form
from service_marketplace_api.app.schemas.service import (
    ServiceCreate,
    ServiceRead,
    ServiceStatus,
    ServiceStatusUpdate,
    ServiceType,
    ServiceUpdate,
)
from service_marketplace_api.app.services.service_lifecycle import ServiceLifecycle


router = APIRouter()


@router.post("/create", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(
    request: Request,
    name: str = Form(...),
    description: str = Form(...),
    value: float = Form(...),
    service_type: str = Form(..., alias="serviceType"),
    creator: int = Form(...),
    images: Optional[List[UploadFile]] = File(None),
) -> ServiceRead:
    """Create a service with its images.

    ``location`` is sent either as a JSON string or in bracket notation
    (``location[street]`` ...).  All images are checked before any is
    stored; if the service cannot be created the stored images are
    removed again.
    """
    uploads = [image for image in images or [] if image.filename]
    try:
        if len(uploads) > settings.max_service_images:
            raise ValidationError(
                f"At most {settings.max_service_images} images are allowed",
                images=len(uploads),
            )
        for image in uploads:
            check_image(image)
        try:
            data = ServiceCreate(
                name=name,
                description=description,
                value=value,
                location=address_from_form(await request.form(), "location"),
                service_type=service_type,
                creator=creator,
            )
        except PydanticValidationError as e:
            raise from_pydantic(e, creator=creator) from e
    except MarketplaceError as e:
        raise e.to_http() from e

    stored: list[str] = []
    try:
        for image in uploads:
            stored.append(await save_upload(image, "images"))
        return await ServiceLifecycle.create_service(data.model_copy(update={"images": stored}))
    except Exception as e:
        discard_uploads(stored)
        if isinstance(e, MarketplaceError):
            raise e.to_http() from e
        raise


@router.get("", response_model=List[ServiceRead])
async def list_services(
    status_filter: Optional[ServiceStatus] = Query(None, alias="status"),
    service_type: Optional[ServiceType] = Query(None, alias="serviceType"),
    creator: Optional[int] = Query(None),
) -> List[ServiceRead]:
    """List services, newest first, optionally filtered by status, type or creator."""
    return await ServiceLifecycle.list_services(
        status=status_filter.value if status_filter else None,
        service_type=service_type.value if service_type else None,
        creator=creator,
    )


@router.get("/{service_id}", response_model=ServiceRead)
async def get_service(service_id: int = Path(..., description="ID of the service")) -> ServiceRead:
    try:
        return await ServiceLifecycle.get_service(service_id)
    except MarketplaceError as e:
        raise e.to_http() from e


@router.patch("/{service_id}", response_model=ServiceRead)
async def update_service_details(
    body: ServiceUpdate,
    service_id: int = Path(..., description="ID of the service"),
) -> ServiceRead:
    """Edit name, description or value of an open service (creator only)."""
    try:
        return await ServiceLifecycle.update_service_details(service_id, body.actor_id, body.changes())
    except MarketplaceError as e:
        raise e.to_http() from e


@router.patch("/{service_id}/status", response_model=ServiceRead)
async def update_service_status(
    body: ServiceStatusUpdate,
    service_id: int = Path(..., description="ID of the service"),
) -> ServiceRead:
    """Apply a status transition.

    Allowed: ``open → accepted`` (by a proposer), ``open → canceled``,
    ``accepted → completed`` and ``accepted → canceled`` (by the
    creator).  Anything else answers 409.
    """
    try:
        return await ServiceLifecycle.update_service_status(service_id, body.requested_status, body.actor_id)
    except MarketplaceError as e:
        raise e.to_http() from e


@router.get("/{service_id}/history")
async def service_history(service_id: int = Path(..., description="ID of the service")) -> List[dict]:
    """Return the audit trail of a service: creation, edits and transitions."""
    try:
        return await ServiceLifecycle.history(service_id)
    except MarketplaceError as e:
        raise e.to_http() from e
