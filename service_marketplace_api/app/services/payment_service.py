"""
Business logic for payments.

Payments are recorded once per payment attempt with status
``pending``.  Confirming or failing a payment is left to a
payment-gateway webhook outside this service; ``paymentProviderId``
holds the gateway's transaction reference for that purpose.
"""

import logging
import math
import sqlite3
from typing import List, Optional

from service_marketplace_api.app.core.db import get_connection, transaction
from service_marketplace_api.app.core.errors import NotFoundError, ValidationError
from service_marketplace_api.app.schemas.payment import PaymentCreate, PaymentRead
from service_marketplace_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

PAYMENT_COLUMNS = (
    "id, service_id, customer_id, provider_id, amount, payment_method, payment_status, "
    "payment_provider_id, payment_date, created_at"
)


def row_to_payment(row: sqlite3.Row) -> PaymentRead:
    return PaymentRead(
        id=row["id"],
        service=row["service_id"],
        customer=row["customer_id"],
        provider=row["provider_id"],
        amount=row["amount"],
        payment_method=row["payment_method"],
        payment_status=row["payment_status"],
        payment_provider_id=row["payment_provider_id"],
        payment_date=row["payment_date"],
        created_at=row["created_at"],
    )


class PaymentService:
    """Recording and listing of payments."""

    @classmethod
    async def create_payment(cls, data: PaymentCreate) -> PaymentRead:
        """Record a ``pending`` payment.

        Raises ``ValidationError`` if the amount is not positive and
        ``NotFoundError`` if the service, customer or provider do not
        exist.
        """
        if not (math.isfinite(data.amount) and data.amount > 0):
            raise ValidationError("Payment amount must be positive", amount=data.amount)
        with transaction() as cursor:
            if not cursor.execute("SELECT id FROM services WHERE id = ?", (data.service,)).fetchone():
                raise NotFoundError(f"Service {data.service} not found", service_id=data.service)
            for role, user_id in (("customer", data.customer), ("provider", data.provider)):
                if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                    raise NotFoundError(f"User {user_id} ({role}) not found", user_id=user_id)
            cursor.execute(
                """
                INSERT INTO payments (service_id, customer_id, provider_id, amount, payment_method, payment_provider_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    data.service,
                    data.customer,
                    data.provider,
                    data.amount,
                    data.payment_method,
                    data.payment_provider_id,
                ),
            )
            payment_id = cursor.lastrowid
            await AuditService.log(
                user_id=data.customer,
                action="create",
                object_type="payment",
                object_id=payment_id,
                details={"service_id": data.service, "amount": data.amount},
                cursor=cursor,
            )
            row = cursor.execute(
                f"SELECT {PAYMENT_COLUMNS} FROM payments WHERE id = ?",
                (payment_id,),
            ).fetchone()
        logger.info(
            "Payment %s of %s recorded for service %s", payment_id, data.amount, data.service
        )
        return row_to_payment(row)

    @classmethod
    async def list_payments(
        cls,
        service: Optional[int] = None,
        customer: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[PaymentRead]:
        """List payments, newest first, with optional filters."""
        conn = get_connection()
        try:
            query = f"SELECT {PAYMENT_COLUMNS} FROM payments"
            where_clauses: list[str] = []
            params: list = []
            if service is not None:
                where_clauses.append("service_id = ?")
                params.append(service)
            if customer is not None:
                where_clauses.append("customer_id = ?")
                params.append(customer)
            if status:
                where_clauses.append("payment_status = ?")
                params.append(status)
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY id DESC"
            rows = conn.execute(query, tuple(params)).fetchall()
            return [row_to_payment(row) for row in rows]
        finally:
            conn.close()
