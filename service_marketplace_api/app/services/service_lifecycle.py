"""
Business logic for service listings and their status lifecycle.

A service moves through the following states::

    open ──► accepted ──► completed
      │          │
      └──► canceled ◄──┘

``acceptedBy`` is set exactly while the service is ``accepted`` or
``completed``.  Every status write is a compare-and-swap on the
current status inside a ``BEGIN IMMEDIATE`` transaction, so two
concurrent acceptances of the same service cannot both succeed.

Descriptive fields (name, description, value) are edited through
``update_service_details``, never through the status operation.
"""

import json
import logging
import sqlite3
from typing import List, Optional

from service_marketplace_api.app.core.db import get_connection, transaction
from service_marketplace_api.app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from service_marketplace_api.app.schemas.service import (
    ServiceCreate,
    ServiceRead,
    ServiceStatus,
)
from service_marketplace_api.app.schemas.service_request import RequestStatus
from service_marketplace_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[ServiceStatus, frozenset[ServiceStatus]] = {
    ServiceStatus.OPEN: frozenset({ServiceStatus.ACCEPTED, ServiceStatus.CANCELED}),
    ServiceStatus.ACCEPTED: frozenset({ServiceStatus.COMPLETED, ServiceStatus.CANCELED}),
    ServiceStatus.COMPLETED: frozenset(),
    ServiceStatus.CANCELED: frozenset(),
}

SERVICE_COLUMNS = (
    "id, name, description, value, proposed_value, location, service_type, "
    "creator_id, status, accepted_by, images, created_at, updated_at"
)

EDITABLE_FIELDS = ("name", "description", "value")


def row_to_service(row: sqlite3.Row) -> ServiceRead:
    return ServiceRead(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        value=row["value"],
        proposed_value=row["proposed_value"],
        location=json.loads(row["location"]),
        service_type=row["service_type"],
        creator=row["creator_id"],
        status=row["status"],
        accepted_by=row["accepted_by"],
        images=json.loads(row["images"] or "[]"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def fetch_service_row(cursor: sqlite3.Cursor, service_id: int) -> sqlite3.Row:
    """Return the service row or raise ``NotFoundError``."""
    row = cursor.execute(
        f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = ?",
        (service_id,),
    ).fetchone()
    if not row:
        raise NotFoundError(f"Service {service_id} not found", service_id=service_id)
    return row


def can_transition(current: ServiceStatus, requested: ServiceStatus) -> bool:
    return requested in VALID_TRANSITIONS[current]


def read_status(service_id: int) -> ServiceStatus:
    """Return the committed status of a service without taking the write lock."""
    conn = get_connection()
    try:
        return ServiceStatus(fetch_service_row(conn.cursor(), service_id)["status"])
    finally:
        conn.close()


class ServiceLifecycle:
    """Creation, lookup, editing and status transitions of services."""

    @classmethod
    async def create_service(cls, data: ServiceCreate) -> ServiceRead:
        """Store a new ``open`` service.

        Raises ``NotFoundError`` if the creator does not exist.
        """
        with transaction() as cursor:
            creator = cursor.execute("SELECT id FROM users WHERE id = ?", (data.creator,)).fetchone()
            if not creator:
                raise NotFoundError(f"User {data.creator} not found", user_id=data.creator)
            cursor.execute(
                """
                INSERT INTO services (name, description, value, location, service_type, creator_id, status, images)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.name,
                    data.description,
                    data.value,
                    data.location.model_dump_json(by_alias=True),
                    data.service_type.value,
                    data.creator,
                    ServiceStatus.OPEN.value,
                    json.dumps(data.images),
                ),
            )
            service_id = cursor.lastrowid
            await AuditService.log(
                user_id=data.creator,
                action="create",
                object_type="service",
                object_id=service_id,
                details={"name": data.name, "value": data.value, "images": len(data.images)},
                cursor=cursor,
            )
            row = fetch_service_row(cursor, service_id)
        logger.info("User %s created service %s '%s'", data.creator, service_id, data.name)
        return row_to_service(row)

    @classmethod
    async def get_service(cls, service_id: int) -> ServiceRead:
        conn = get_connection()
        try:
            return row_to_service(fetch_service_row(conn.cursor(), service_id))
        finally:
            conn.close()

    @classmethod
    async def list_services(
        cls,
        status: Optional[str] = None,
        service_type: Optional[str] = None,
        creator: Optional[int] = None,
    ) -> List[ServiceRead]:
        """List services, newest first, optionally filtered."""
        conn = get_connection()
        try:
            query = f"SELECT {SERVICE_COLUMNS} FROM services"
            where_clauses: list[str] = []
            params: list = []
            if status:
                where_clauses.append("status = ?")
                params.append(status)
            if service_type:
                where_clauses.append("service_type = ?")
                params.append(service_type)
            if creator is not None:
                where_clauses.append("creator_id = ?")
                params.append(creator)
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY id DESC"
            rows = conn.execute(query, tuple(params)).fetchall()
            return [row_to_service(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def update_service_details(cls, service_id: int, actor_id: int, changes: dict) -> ServiceRead:
        """Edit the name, description or value of an open service.

        Only the creator may edit, and only while the service is
        ``open``; once a proposal is accepted the terms are settled.
        """
        changes = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        if not changes:
            raise ValidationError(
                "Nothing to update; provide name, description or value",
                service_id=service_id,
            )
        with transaction() as cursor:
            row = fetch_service_row(cursor, service_id)
            if row["creator_id"] != actor_id:
                raise ForbiddenError(
                    "Only the creator can edit a service",
                    service_id=service_id,
                    actor_id=actor_id,
                )
            if row["status"] != ServiceStatus.OPEN.value:
                raise InvalidTransitionError(
                    f"Service {service_id} is {row['status']} and can no longer be edited",
                    service_id=service_id,
                    status=row["status"],
                )
            assignments = ", ".join(f"{field} = ?" for field in changes)
            cursor.execute(
                f"UPDATE services SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (*changes.values(), service_id),
            )
            await AuditService.log(
                user_id=actor_id,
                action="update",
                object_type="service",
                object_id=service_id,
                details=changes,
                cursor=cursor,
            )
            row = fetch_service_row(cursor, service_id)
        logger.info("User %s edited service %s: %s", actor_id, service_id, sorted(changes))
        return row_to_service(row)

    @classmethod
    async def update_service_status(
        cls,
        service_id: int,
        requested_status: ServiceStatus | str,
        actor_id: int,
    ) -> ServiceRead:
        """Move a service to ``requested_status`` on behalf of ``actor_id``.

        * ``open → accepted``: the actor must hold a pending proposal
          on the service and must not be its creator.  The actor's
          latest pending proposal is accepted and every other pending
          proposal is declined.
        * ``open → canceled``, ``accepted → completed``,
          ``accepted → canceled``: creator only.

        The status is read before the write lock is taken.  If another
        writer changed it in between, the call lost a race and raises
        ``ConflictError``; a transition that is disallowed from the
        status the caller saw raises ``InvalidTransitionError``.

        Raises ``NotFoundError``, ``InvalidTransitionError``,
        ``ForbiddenError`` or ``ConflictError``; on any error the
        service and its proposals are left unchanged.
        """
        try:
            requested = ServiceStatus(requested_status)
        except ValueError:
            raise ValidationError(f"Unknown service status '{requested_status}'", service_id=service_id)
        expected = read_status(service_id)
        with transaction() as cursor:
            row = fetch_service_row(cursor, service_id)
            current = ServiceStatus(row["status"])
            if current is not expected:
                # Another writer committed between the read and the lock.
                raise ConflictError(
                    f"Service {service_id} changed concurrently from {expected.value} to {current.value}",
                    service_id=service_id,
                    transition=f"{expected.value}->{requested.value}",
                )
            if not can_transition(current, requested):
                raise InvalidTransitionError(
                    f"Cannot change service {service_id} from {current.value} to {requested.value}",
                    service_id=service_id,
                    transition=f"{current.value}->{requested.value}",
                )

            if requested is ServiceStatus.ACCEPTED:
                if row["creator_id"] == actor_id:
                    raise ForbiddenError(
                        "A user cannot accept their own service",
                        service_id=service_id,
                        actor_id=actor_id,
                    )
                proposal = cursor.execute(
                    """
                    SELECT id, proposed_value FROM service_requests
                    WHERE service_id = ? AND proposer_id = ? AND status = ?
                    ORDER BY id DESC LIMIT 1
                    """,
                    (service_id, actor_id, RequestStatus.PENDING.value),
                ).fetchone()
                if not proposal:
                    raise ForbiddenError(
                        "Only a user with a pending proposal can accept a service",
                        service_id=service_id,
                        actor_id=actor_id,
                    )
                await cls.accept_proposal(
                    cursor,
                    service_id=service_id,
                    request_id=proposal["id"],
                    proposer_id=actor_id,
                    proposed_value=proposal["proposed_value"],
                    actor_id=actor_id,
                )
            else:
                if row["creator_id"] != actor_id:
                    raise ForbiddenError(
                        f"Only the creator can mark a service {requested.value}",
                        service_id=service_id,
                        actor_id=actor_id,
                    )
                # Completion keeps the provider; cancellation releases it.
                accepted_by = row["accepted_by"] if requested is ServiceStatus.COMPLETED else None
                cls._swap_status(cursor, service_id, current, requested, accepted_by)
                await AuditService.log(
                    user_id=actor_id,
                    action="transition",
                    object_type="service",
                    object_id=service_id,
                    details={"from": current.value, "to": requested.value},
                    cursor=cursor,
                )
            row = fetch_service_row(cursor, service_id)
        logger.info(
            "Service %s: %s -> %s by user %s", service_id, current.value, requested.value, actor_id
        )
        return row_to_service(row)

    @classmethod
    async def accept_proposal(
        cls,
        cursor: sqlite3.Cursor,
        service_id: int,
        request_id: int,
        proposer_id: int,
        proposed_value: float,
        actor_id: int,
    ) -> List[int]:
        """Accept one proposal inside the caller's transaction.

        Moves the service ``open → accepted`` with ``acceptedBy`` set
        to the proposer, marks the proposal ``accepted`` and declines
        all other pending proposals for the service.  Returns the ids
        of the declined proposals.
        """
        cls._swap_status(
            cursor,
            service_id,
            ServiceStatus.OPEN,
            ServiceStatus.ACCEPTED,
            accepted_by=proposer_id,
            proposed_value=proposed_value,
        )
        updated = cursor.execute(
            """
            UPDATE service_requests SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
            """,
            (RequestStatus.ACCEPTED.value, request_id, RequestStatus.PENDING.value),
        )
        if updated.rowcount != 1:
            raise ConflictError(
                f"Service request {request_id} is no longer pending",
                request_id=request_id,
                service_id=service_id,
            )
        declined = [
            r["id"]
            for r in cursor.execute(
                "SELECT id FROM service_requests WHERE service_id = ? AND status = ? AND id != ?",
                (service_id, RequestStatus.PENDING.value, request_id),
            ).fetchall()
        ]
        cursor.execute(
            """
            UPDATE service_requests SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE service_id = ? AND status = ? AND id != ?
            """,
            (RequestStatus.DECLINED.value, service_id, RequestStatus.PENDING.value, request_id),
        )
        await AuditService.log(
            user_id=actor_id,
            action="transition",
            object_type="service",
            object_id=service_id,
            details={
                "from": ServiceStatus.OPEN.value,
                "to": ServiceStatus.ACCEPTED.value,
                "accepted_by": proposer_id,
                "request_id": request_id,
                "declined": declined,
            },
            cursor=cursor,
        )
        logger.info(
            "Service %s accepted proposal %s from user %s; declined %s",
            service_id,
            request_id,
            proposer_id,
            declined,
        )
        return declined

    @staticmethod
    def _swap_status(
        cursor: sqlite3.Cursor,
        service_id: int,
        expected: ServiceStatus,
        new: ServiceStatus,
        accepted_by: Optional[int],
        proposed_value: Optional[float] = None,
    ) -> None:
        """Write ``new`` only if the stored status is still ``expected``."""
        updated = cursor.execute(
            """
            UPDATE services
            SET status = ?, accepted_by = ?, proposed_value = COALESCE(?, proposed_value),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
            """,
            (new.value, accepted_by, proposed_value, service_id, expected.value),
        )
        if updated.rowcount != 1:
            raise ConflictError(
                f"Service {service_id} changed concurrently; expected status {expected.value}",
                service_id=service_id,
                transition=f"{expected.value}->{new.value}",
            )

    @classmethod
    async def history(cls, service_id: int) -> List[dict]:
        """Return the audit trail of a service, oldest first."""
        await cls.get_service(service_id)
        return await AuditService.list_logs(object_type="service", object_id=service_id)
