from __future__ import annotations

import json
import logging
import secrets
import string
import time
from typing import Any, Dict, List

from health_procure.domain.contracts import AuditEntry, Priority, ProcurementRequest, RequestStatus
from health_procure.errors import NotFoundError
from health_procure.infrastructure.repositories.base import BaseRepository


_LOGGER = logging.getLogger("health_procure")

_BASE36_ALPHABET = string.digits + string.ascii_lowercase

# Wire field name -> column name.
FIELD_COLUMNS: Dict[str, str] = {
    "id": "id",
    "category": "category",
    "itemName": "item_name",
    "quantity": "quantity",
    "pricePerUnit": "price_per_unit",
    "priority": "priority",
    "justification": "justification",
    "submittedBy": "submitted_by",
    "status": "status",
    "createdAt": "created_at",
    "auditLog": "audit_log",
}


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def new_request_id(now_ms: int | None = None) -> str:
    millis = int(now_ms if now_ms is not None else time.time() * 1000)
    return f"REQ-{_base36(millis)}-{secrets.token_hex(4)}"


def _serialize_value(column: str, value: Any) -> Any:
    if column == "audit_log":
        entries = [entry.to_dict() if isinstance(entry, AuditEntry) else dict(entry) for entry in value or []]
        return json.dumps(entries, ensure_ascii=True, separators=(",", ":"))
    if column in {"status", "priority"} and hasattr(value, "value"):
        return value.value
    return value


def _parse_audit_log(raw: Any, request_id: str) -> tuple:
    if not raw:
        return ()
    try:
        entries = json.loads(raw) if isinstance(raw, str) else raw
    except (TypeError, ValueError):
        _LOGGER.warning("audit_log_unreadable", extra={"procurement_request_id": request_id})
        return ()
    if not isinstance(entries, list):
        _LOGGER.warning("audit_log_unreadable", extra={"procurement_request_id": request_id})
        return ()
    return tuple(AuditEntry.from_dict(entry) for entry in entries if isinstance(entry, dict))


def row_to_request(row: Dict[str, Any]) -> ProcurementRequest:
    request_id = str(row["id"])
    status = RequestStatus.parse(row.get("status"))
    if status is None:
        raise ValueError(f"unknown status {row.get('status')!r} on {request_id}")
    price = row.get("price_per_unit")
    return ProcurementRequest(
        id=request_id,
        category=str(row.get("category") or ""),
        item_name=str(row.get("item_name") or ""),
        quantity=int(row.get("quantity") or 0),
        price_per_unit=float(price) if price is not None else None,
        priority=Priority.parse(row.get("priority"), default=Priority.MEDIUM),
        justification=str(row.get("justification") or ""),
        submitted_by=str(row.get("submitted_by") or ""),
        status=status,
        created_at=str(row.get("created_at") or ""),
        audit_log=_parse_audit_log(row.get("audit_log"), request_id),
    )


class ProcurementRequestRepository(BaseRepository):
    table_name = "procurement_requests"
    updatable_columns = frozenset(
        {
            "category",
            "item_name",
            "quantity",
            "price_per_unit",
            "priority",
            "justification",
            "status",
            "audit_log",
        }
    )

    def load_all(self, db) -> List[ProcurementRequest]:
        rows = db.execute(
            """
            SELECT id, category, item_name, quantity, price_per_unit, priority, justification,
                   submitted_by, status, created_at, audit_log
            FROM procurement_requests
            ORDER BY seq
            """
        ).fetchall()
        return [row_to_request(row) for row in self.rows_to_dicts(rows)]

    def get(self, db, request_id: str) -> ProcurementRequest | None:
        row = db.execute(
            """
            SELECT id, category, item_name, quantity, price_per_unit, priority, justification,
                   submitted_by, status, created_at, audit_log
            FROM procurement_requests
            WHERE id = ?
            LIMIT 1
            """,
            (request_id,),
        ).fetchone()
        data = self.row_to_dict(row)
        return row_to_request(data) if data else None

    def append(self, db, request: ProcurementRequest) -> ProcurementRequest:
        stored = request.with_id(new_request_id())
        db.execute(
            """
            INSERT INTO procurement_requests (
                id, category, item_name, quantity, price_per_unit, priority, justification,
                submitted_by, status, created_at, audit_log
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                stored.id,
                stored.category,
                stored.item_name,
                stored.quantity,
                stored.price_per_unit,
                stored.priority.value,
                stored.justification,
                stored.submitted_by,
                stored.status.value,
                stored.created_at,
                _serialize_value("audit_log", stored.audit_log),
            ),
        )
        return stored

    def update_by_field(self, db, field: str, value: Any, partial: Dict[str, Any]) -> int:
        """Overwrite the given fields on every row matching ``field = value``.

        Keys of ``partial`` and ``field`` use wire names (``auditLog``,
        ``itemName``...). Raises NotFoundError when nothing matched.
        """
        match_column = FIELD_COLUMNS.get(field)
        if match_column is None:
            raise ValueError(f"unknown field: {field}")
        if not partial:
            return 0

        columns = {}
        for key, new_value in partial.items():
            column = FIELD_COLUMNS.get(key, key)
            columns[column] = _serialize_value(column, new_value)
        self.assert_updatable(columns.keys())

        updates = [f"{column} = ?" for column in columns.keys()]
        params = list(columns.values())
        params.append(value)
        cursor = db.execute(
            f"""
            UPDATE procurement_requests
            SET {", ".join(updates)}, updated_at = CURRENT_TIMESTAMP
            WHERE {match_column} = ?
            """,
            tuple(params),
        )
        updated = int(cursor.rowcount or 0)
        if updated == 0:
            raise NotFoundError(details=f"no procurement request with {field} = {value}")
        return updated

    def save_transition(self, db, request: ProcurementRequest) -> None:
        self.update_by_field(
            db,
            "id",
            request.id,
            {"status": request.status, "auditLog": request.audit_log},
        )

    def count(self, db) -> int:
        row = db.execute("SELECT COUNT(*) AS total FROM procurement_requests").fetchone()
        return int(dict(row)["total"]) if row else 0
