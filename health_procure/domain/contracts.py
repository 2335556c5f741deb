from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Tuple


class Role(str, Enum):
    BASE = "base"
    TALUKA = "taluka"
    DISTRICT = "district"
    STATE = "state"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    @classmethod
    def parse(cls, value: object) -> "Role | None":
        normalized = str(value.value if isinstance(value, Enum) else value or "").strip().lower()
        for role in cls:
            if role.value == normalized:
                return role
        return None


_ROLE_ORDER: Tuple[Role, ...] = (Role.BASE, Role.TALUKA, Role.DISTRICT, Role.STATE)


class RequestStatus(str, Enum):
    PENDING_TALUKA = "Pending Taluka Approval"
    PENDING_DISTRICT = "Pending District Approval"
    PENDING_STATE = "Pending State Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_pending(self) -> bool:
        return self not in {RequestStatus.APPROVED, RequestStatus.REJECTED}

    @property
    def is_terminal(self) -> bool:
        return not self.is_pending

    @classmethod
    def parse(cls, value: object) -> "RequestStatus | None":
        normalized = str(value.value if isinstance(value, Enum) else value or "").strip()
        for status in cls:
            if status.value.lower() == normalized.lower():
                return status
        return None


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, value: object, default: "Priority | None" = None) -> "Priority | None":
        normalized = str(value or "").strip().lower()
        for priority in cls:
            if priority.value.lower() == normalized:
                return priority
        return default


class Decision(str, Enum):
    APPROVE = "Approve"
    REJECT = "Reject"

    @classmethod
    def parse(cls, value: object) -> "Decision | None":
        normalized = str(value or "").strip().lower()
        if normalized in {"approve", "approved"}:
            return cls.APPROVE
        if normalized in {"reject", "rejected"}:
            return cls.REJECT
        return None


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: Role
    reports_to: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "reportsTo": self.reports_to,
        }


@dataclass(frozen=True)
class AuditEntry:
    """One line of a request's history.

    ``user`` is the display name shown in the timeline; ``user_id`` is the
    directory id of the actor. Entries written before ids were recorded have
    no ``user_id``.
    """

    action: str
    user: str
    date: str
    comment: str | None = None
    user_id: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"action": self.action, "user": self.user, "date": self.date}
        if self.comment:
            entry["comment"] = self.comment
        if self.user_id:
            entry["userId"] = self.user_id
        return entry

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AuditEntry":
        return cls(
            action=str(raw.get("action") or ""),
            user=str(raw.get("user") or ""),
            date=str(raw.get("date") or ""),
            comment=(str(raw.get("comment")).strip() or None) if raw.get("comment") else None,
            user_id=str(raw.get("userId") or "").strip() or None,
        )



@dataclass(frozen=True)
class RequestDraft:
    """A staged line item before it is submitted and receives an id."""

    category: str
    item_name: str
    quantity: int
    justification: str
    price_per_unit: float = 0.0
    priority: Priority = Priority.MEDIUM


@dataclass(frozen=True)
class ProcurementRequest:
    id: str | None
    category: str
    item_name: str
    quantity: int
    price_per_unit: float | None
    priority: Priority
    justification: str
    submitted_by: str
    status: RequestStatus
    created_at: str
    audit_log: Tuple[AuditEntry, ...] = field(default_factory=tuple)

    @property
    def total_cost(self) -> float:
        return float(self.quantity) * float(self.price_per_unit or 0)

    def with_id(self, request_id: str) -> "ProcurementRequest":
        return replace(self, id=request_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "itemName": self.item_name,
            "quantity": self.quantity,
            "pricePerUnit": self.price_per_unit,
            "priority": self.priority.value,
            "justification": self.justification,
            "submittedBy": self.submitted_by,
            "status": self.status.value,
            "createdAt": self.created_at,
            "auditLog": [entry.to_dict() for entry in self.audit_log],
        }


@dataclass(frozen=True)
class ItemRollup:
    item_name: str
    category: str
    total_quantity: int
    total_cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemName": self.item_name,
            "totalQuantity": self.total_quantity,
            "totalCost": self.total_cost,
        }


@dataclass(frozen=True)
class TextGenerationResult:
    result_text: str
    source: str = "mock"

    def to_dict(self) -> Dict[str, Any]:
        return {"resultText": self.result_text, "source": self.source}


@dataclass(frozen=True)
class SubmissionResult:
    requests: List[ProcurementRequest]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": len(self.requests),
            "requests": [request.to_dict() for request in self.requests],
        }
