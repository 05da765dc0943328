"""
Business logic for negotiation: creating and resolving service requests.

A service request is a proposal by a prospective provider to perform
an ``open`` service at a proposed value and date.  The creator of the
service resolves each proposal:

* ``accept`` marks the proposal ``accepted``, moves the service
  ``open → accepted`` (``acceptedBy`` = proposer) and declines every
  other pending proposal, all in one transaction;
* ``decline`` marks only that proposal ``declined``.
"""

import logging
import math
import sqlite3
from datetime import date, datetime, timezone
from typing import List, Tuple

from service_marketplace_api.app.core.db import get_connection, transaction
from service_marketplace_api.app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from service_marketplace_api.app.schemas.service import ServiceRead, ServiceStatus
from service_marketplace_api.app.schemas.service_request import (
    RequestStatus,
    ServiceRequestCreate,
    ServiceRequestRead,
)
from service_marketplace_api.app.services.audit_service import AuditService
from service_marketplace_api.app.services.service_lifecycle import (
    ServiceLifecycle,
    fetch_service_row,
    row_to_service,
)


logger = logging.getLogger(__name__)

REQUEST_COLUMNS = (
    "id, service_id, proposer_id, proposed_value, proposed_date, status, created_at, updated_at"
)


def row_to_request(row: sqlite3.Row) -> ServiceRequestRead:
    return ServiceRequestRead(
        id=row["id"],
        service=row["service_id"],
        proposer=row["proposer_id"],
        proposed_value=row["proposed_value"],
        proposed_date=row["proposed_date"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def _fetch_request_row(cursor: sqlite3.Cursor, request_id: int) -> sqlite3.Row:
    row = cursor.execute(
        f"SELECT {REQUEST_COLUMNS} FROM service_requests WHERE id = ?",
        (request_id,),
    ).fetchone()
    if not row:
        raise NotFoundError(f"Service request {request_id} not found", request_id=request_id)
    return row


class NegotiationService:
    """Creation, listing and resolution of service requests."""

    @classmethod
    async def create_request(cls, data: ServiceRequestCreate) -> ServiceRequestRead:
        """Create a ``pending`` proposal for an open service.

        Raises ``ValidationError`` for a non-positive value or a date in
        the past, ``NotFoundError`` if the service does not exist or is
        not open (or the proposer does not exist) and ``ForbiddenError``
        if the proposer created the service.
        """
        if not (math.isfinite(data.proposed_value) and data.proposed_value > 0):
            raise ValidationError(
                "Proposed value must be greater than zero",
                service_id=data.service,
                proposed_value=data.proposed_value,
            )
        if _utc_date(data.proposed_date) < datetime.now(timezone.utc).date():
            raise ValidationError(
                "Proposed date must not be in the past",
                service_id=data.service,
                proposed_date=data.proposed_date.isoformat(),
            )
        with transaction() as cursor:
            service = cursor.execute(
                "SELECT id, creator_id, status FROM services WHERE id = ?",
                (data.service,),
            ).fetchone()
            if not service or service["status"] != ServiceStatus.OPEN.value:
                raise NotFoundError(
                    f"Open service {data.service} not found",
                    service_id=data.service,
                    status=service["status"] if service else None,
                )
            proposer = cursor.execute("SELECT id FROM users WHERE id = ?", (data.proposer,)).fetchone()
            if not proposer:
                raise NotFoundError(f"User {data.proposer} not found", user_id=data.proposer)
            if service["creator_id"] == data.proposer:
                raise ForbiddenError(
                    "A user cannot make a proposal on their own service",
                    service_id=data.service,
                    actor_id=data.proposer,
                )
            cursor.execute(
                """
                INSERT INTO service_requests (service_id, proposer_id, proposed_value, proposed_date, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    data.service,
                    data.proposer,
                    data.proposed_value,
                    data.proposed_date.isoformat(),
                    RequestStatus.PENDING.value,
                ),
            )
            request_id = cursor.lastrowid
            await AuditService.log(
                user_id=data.proposer,
                action="create",
                object_type="service_request",
                object_id=request_id,
                details={"service_id": data.service, "proposed_value": data.proposed_value},
                cursor=cursor,
            )
            row = _fetch_request_row(cursor, request_id)
        logger.info(
            "User %s proposed %s for service %s (request %s)",
            data.proposer,
            data.proposed_value,
            data.service,
            request_id,
        )
        return row_to_request(row)

    @classmethod
    async def list_requests(cls, service_id: int) -> List[ServiceRequestRead]:
        """Return all proposals for a service, oldest first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT {REQUEST_COLUMNS} FROM service_requests WHERE service_id = ? ORDER BY id ASC",
                (service_id,),
            ).fetchall()
            return [row_to_request(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def resolve_request(
        cls,
        request_id: int,
        decision: str,
        actor_id: int,
    ) -> Tuple[ServiceRequestRead, ServiceRead]:
        """Accept or decline a proposal on behalf of the service creator.

        Errors, checked in this order:

        * ``NotFoundError`` – the request does not exist;
        * ``ForbiddenError`` – the actor did not create the service;
        * ``ConflictError`` – accepting while the service is no longer
          ``open`` (another proposal won, or the service was closed);
        * ``InvalidTransitionError`` – the request is not ``pending``.

        Returns the updated request and its service.
        """
        if decision not in ("accept", "decline"):
            raise ValidationError(f"Unknown decision '{decision}'", request_id=request_id)
        with transaction() as cursor:
            request = _fetch_request_row(cursor, request_id)
            service_id = request["service_id"]
            service = fetch_service_row(cursor, service_id)
            if service["creator_id"] != actor_id:
                raise ForbiddenError(
                    "Only the service creator can resolve proposals",
                    request_id=request_id,
                    service_id=service_id,
                    actor_id=actor_id,
                )
            if decision == "accept" and service["status"] != ServiceStatus.OPEN.value:
                raise ConflictError(
                    f"Service {service_id} is {service['status']}; proposal {request_id} cannot be accepted",
                    request_id=request_id,
                    service_id=service_id,
                    transition=f"{service['status']}->accepted",
                )
            if request["status"] != RequestStatus.PENDING.value:
                raise InvalidTransitionError(
                    f"Service request {request_id} is already {request['status']}",
                    request_id=request_id,
                    transition=f"{request['status']}->{decision}",
                )

            if decision == "accept":
                await ServiceLifecycle.accept_proposal(
                    cursor,
                    service_id=service_id,
                    request_id=request_id,
                    proposer_id=request["proposer_id"],
                    proposed_value=request["proposed_value"],
                    actor_id=actor_id,
                )
            else:
                cursor.execute(
                    """
                    UPDATE service_requests SET status = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ? AND status = ?
                    """,
                    (RequestStatus.DECLINED.value, request_id, RequestStatus.PENDING.value),
                )
            await AuditService.log(
                user_id=actor_id,
                action="resolve",
                object_type="service_request",
                object_id=request_id,
                details={"decision": decision, "service_id": service_id},
                cursor=cursor,
            )
            request = _fetch_request_row(cursor, request_id)
            service = fetch_service_row(cursor, service_id)
        logger.info("User %s resolved request %s: %s", actor_id, request_id, decision)
        return row_to_request(request), row_to_service(service)
