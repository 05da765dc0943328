"""
Audit service for recording and querying system actions.

Creates and state transitions are written to the ``audit_logs`` table
together with the acting user and structured details.  Writers that
already hold a transaction pass their cursor so the audit record
commits or rolls back together with the change it describes.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional

from service_marketplace_api.app.core.db import get_connection


def row_to_log(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "action": row["action"],
        "objectType": row["object_type"],
        "objectId": row["object_id"],
        "timestamp": row["timestamp"],
        "details": json.loads(row["details"]) if row["details"] else None,
    }


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        user_id: Optional[int],
        action: str,
        object_type: str,
        object_id: Optional[int] = None,
        details: Optional[dict] = None,
        cursor: Optional[sqlite3.Cursor] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        user_id : Optional[int]
            ID of the user performing the action.  ``None`` for
            system‑initiated actions.
        action : str
            Short description of the action (e.g. "create", "transition").
        object_type : str
            Type of object affected (e.g. "service", "service_request").
        object_id : Optional[int]
            Primary key of the affected object.
        details : Optional[dict]
            Additional structured data, stored as JSON.
        cursor : Optional[sqlite3.Cursor]
            Cursor of an open transaction to write through.  When
            omitted, a dedicated connection is used and committed.
        """
        params = (user_id, action, object_type, object_id, json.dumps(details) if details else None)
        sql = (
            "INSERT INTO audit_logs (user_id, action, object_type, object_id, details) "
            "VALUES (?, ?, ?, ?, ?)"
        )
        if cursor is not None:
            cursor.execute(sql, params)
            return
        conn = get_connection()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def list_logs(
        cls,
        object_type: Optional[str] = None,
        object_id: Optional[int] = None,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Retrieve audit records with optional filters, oldest first."""
        filters = {
            "object_type": object_type,
            "object_id": object_id,
            "user_id": user_id,
            "action": action,
        }
        active = {column: value for column, value in filters.items() if value is not None}
        query = "SELECT id, user_id, action, object_type, object_id, timestamp, details FROM audit_logs"
        if active:
            query += " WHERE " + " AND ".join(f"{column} = ?" for column in active)
        query += " ORDER BY id ASC LIMIT ? OFFSET ?"
        conn = get_connection()
        try:
            rows = conn.execute(query, (*active.values(), limit, offset)).fetchall()
        finally:
            conn.close()
        return [row_to_log(row) for row in rows]
