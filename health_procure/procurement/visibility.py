from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Sequence

from health_procure.domain.contracts import ProcurementRequest, RequestStatus, Role, User
from health_procure.errors import ValidationError
from health_procure.procurement.approval_flow import ACTION_APPROVED, pending_status_for
from health_procure.procurement.hierarchy import HierarchyResolver


STATUS_FILTERS = ("all", "pending", "approved", "rejected", "approved-by-me")


def visible_requests(
    requests: Sequence[ProcurementRequest],
    viewer: User | None,
    resolver: HierarchyResolver,
) -> List[ProcurementRequest]:
    """Approval queue of the viewer, in input order."""
    if viewer is None:
        return []
    role = viewer.role
    if role is Role.STATE:
        return [r for r in requests if r.status is RequestStatus.PENDING_STATE]
    if role is Role.DISTRICT:
        managed = resolver.subordinate_ids(viewer.id)
        return [
            r for r in requests if r.submitted_by in managed and r.status is RequestStatus.PENDING_DISTRICT
        ]
    if role is Role.TALUKA:
        managed = {user.id for user in resolver.direct_subordinates(viewer.id)}
        return [r for r in requests if r.submitted_by in managed and r.status is RequestStatus.PENDING_TALUKA]
    if role is Role.BASE:
        return [r for r in requests if r.submitted_by == viewer.id]
    return []


def scoped_requests(
    requests: Sequence[ProcurementRequest],
    viewer: User | None,
    resolver: HierarchyResolver,
) -> List[ProcurementRequest]:
    """Everything the viewer may report on: own submissions plus the subtree."""
    if viewer is None:
        return []
    if viewer.role is Role.STATE:
        return list(requests)
    if viewer.role is Role.BASE:
        return [r for r in requests if r.submitted_by == viewer.id]
    if viewer.role in {Role.TALUKA, Role.DISTRICT}:
        scope = resolver.subtree_ids(viewer.id)
        return [r for r in requests if r.submitted_by in scope]
    return []


def _approved_by(viewer: User) -> Callable[[ProcurementRequest], bool]:
    """Match approvals recorded for the viewer.

    Entries carrying an actor id are matched on it. Older entries only hold
    the display name, so for those two offices sharing a name cannot be told
    apart.
    """

    def is_viewer(entry) -> bool:
        if entry.user_id:
            return entry.user_id == viewer.id
        return entry.user == viewer.name

    def predicate(request: ProcurementRequest) -> bool:
        return any(is_viewer(entry) and entry.action.lower().startswith(ACTION_APPROVED) for entry in request.audit_log)

    return predicate



def normalize_status_filter(value: str | None) -> str:
    normalized = str(value or "all").strip().lower()
    if normalized not in STATUS_FILTERS:
        raise ValidationError(code="status_filter_invalid", payload={"allowed": list(STATUS_FILTERS)})
    return normalized


def filter_by_status(
    requests: Iterable[ProcurementRequest],
    status_filter: str | None,
    viewer: User | None = None,
) -> List[ProcurementRequest]:
    key = normalize_status_filter(status_filter)
    items = list(requests)
    if key == "all":
        return items
    if key == "pending":
        return [r for r in items if r.status.is_pending]
    if key == "approved":
        return [r for r in items if r.status is RequestStatus.APPROVED]
    if key == "rejected":
        return [r for r in items if r.status is RequestStatus.REJECTED]
    if viewer is None:
        return []
    approved_by_viewer = _approved_by(viewer)
    return [r for r in items if approved_by_viewer(r)]


def request_stats(requests: Iterable[ProcurementRequest], viewer: User | None = None) -> Dict[str, int]:
    items = list(requests)
    if viewer is not None and viewer.role is not Role.BASE:
        # Approvers count what is waiting at their own tier.
        own_stage = pending_status_for(viewer.role)
        pending = sum(1 for r in items if r.status is own_stage)
    else:
        pending = sum(1 for r in items if r.status.is_pending)
    return {
        "total": len(items),
        "pending": pending,
        "approved": sum(1 for r in items if r.status is RequestStatus.APPROVED),
        "rejected": sum(1 for r in items if r.status is RequestStatus.REJECTED),
    }
