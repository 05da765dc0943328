"""
Business logic for users.

Users are created on registration with a hashed password and an
optional profile photo.  ``authenticate`` verifies the salted hash;
it never compares stored values directly.
"""

import json
import logging
import sqlite3
from typing import Optional

from service_marketplace_api.app.core.db import get_connection
from service_marketplace_api.app.core.errors import ConflictError, NotFoundError
from service_marketplace_api.app.core.security import hash_password, verify_password
from service_marketplace_api.app.schemas.user import UserCreate, UserRead
from service_marketplace_api.app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

USER_COLUMNS = "id, name, email, phone_number, address, photo, created_at"


def row_to_user(row: sqlite3.Row) -> UserRead:
    return UserRead(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        phone_number=row["phone_number"],
        address=json.loads(row["address"]),
        photo=row["photo"],
        created_at=row["created_at"],
    )


class UserService:
    """Registration, login and lookup of users."""

    @classmethod
    async def create_user(cls, data: UserCreate) -> UserRead:
        """Store a new user and return it.

        Raises ``ConflictError`` if the email is already registered.
        """
        logger.info("Registering user %s", data.email)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "INSERT INTO users (name, email, phone_number, address, password, photo) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        data.name,
                        data.email,
                        data.phone_number,
                        data.address.model_dump_json(by_alias=True),
                        hash_password(data.password),
                        data.photo,
                    ),
                )
            except sqlite3.IntegrityError:
                conn.rollback()
                raise ConflictError(f"Email {data.email} is already registered", email=data.email)
            user_id = cursor.lastrowid
            await AuditService.log(
                user_id=user_id,
                action="create",
                object_type="user",
                object_id=user_id,
                details={"email": data.email},
                cursor=cursor,
            )
            conn.commit()
            row = cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
            return row_to_user(row)
        finally:
            conn.close()

    @classmethod
    async def authenticate(cls, email: str, password: str) -> Optional[UserRead]:
        """Return the user if the credentials match, otherwise ``None``."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS}, password FROM users WHERE email = ?",
                (email,),
            ).fetchone()
        finally:
            conn.close()
        if not row or not verify_password(password, row["password"]):
            logger.warning("Failed login for %s", email)
            return None
        return row_to_user(row)

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError(f"User {user_id} not found", user_id=user_id)
        return row_to_user(row)
