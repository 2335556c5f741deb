from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List

from health_procure.domain.contracts import (
    AuditEntry,
    Decision,
    Priority,
    ProcurementRequest,
    RequestDraft,
    RequestStatus,
    Role,
    User,
)
from health_procure.errors import PermissionError as AppPermissionError
from health_procure.errors import ValidationError
from health_procure.procurement.hierarchy import HierarchyResolver


APPROVAL_STAGES: List[Dict[str, object]] = [
    {"key": "submitted", "label": "Submitted", "role": None, "status": None},
    {"key": "taluka", "label": "Taluka Approval", "role": Role.TALUKA, "status": RequestStatus.PENDING_TALUKA},
    {"key": "district", "label": "District Approval", "role": Role.DISTRICT, "status": RequestStatus.PENDING_DISTRICT},
    {"key": "state", "label": "State Approval", "role": Role.STATE, "status": RequestStatus.PENDING_STATE},
]


PENDING_STATUS_BY_ROLE: Dict[Role, RequestStatus] = {
    Role.TALUKA: RequestStatus.PENDING_TALUKA,
    Role.DISTRICT: RequestStatus.PENDING_DISTRICT,
    Role.STATE: RequestStatus.PENDING_STATE,
}


APPROVER_ROLE_BY_STATUS: Dict[RequestStatus, Role] = {
    status: role for role, status in PENDING_STATUS_BY_ROLE.items()
}


# Where an approval at each pending stage leads. The state tier finalises.
APPROVE_TRANSITIONS: Dict[RequestStatus, RequestStatus] = {
    RequestStatus.PENDING_TALUKA: RequestStatus.PENDING_DISTRICT,
    RequestStatus.PENDING_DISTRICT: RequestStatus.PENDING_STATE,
    RequestStatus.PENDING_STATE: RequestStatus.APPROVED,
}

ACTION_SUBMITTED = "Submitted"
ACTION_APPROVED = "approved"
ACTION_REJECTED = "rejected"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def pending_status_for(role: Role) -> RequestStatus | None:
    return PENDING_STATUS_BY_ROLE.get(role)


def approver_role_for(status: RequestStatus) -> Role | None:
    return APPROVER_ROLE_BY_STATUS.get(status)


def initial_status(submitter_role: Role) -> RequestStatus:
    """First pending stage above the submitter's own tier."""
    if submitter_role is Role.STATE:
        raise AppPermissionError(
            code="submission_not_allowed",
            details="state users have no approval tier above them",
        )
    next_role = _role_at_rank(submitter_role.rank + 1)
    return PENDING_STATUS_BY_ROLE[next_role]


def _role_at_rank(rank: int) -> Role:
    for role in Role:
        if role.rank == rank:
            return role
    raise ValueError(f"no role at rank {rank}")


def new_request(submitter: User, draft: RequestDraft, now: str | None = None) -> ProcurementRequest:
    timestamp = now or utc_now_iso()
    return ProcurementRequest(
        id=None,
        category=draft.category,
        item_name=draft.item_name,
        quantity=int(draft.quantity),
        price_per_unit=float(draft.price_per_unit or 0),
        priority=draft.priority or Priority.MEDIUM,
        justification=draft.justification,
        submitted_by=submitter.id,
        status=initial_status(submitter.role),
        created_at=timestamp,
        audit_log=(AuditEntry(action=ACTION_SUBMITTED, user=submitter.name, date=timestamp, user_id=submitter.id),),
    )


def manages_submitter(request: ProcurementRequest, user: User, resolver: HierarchyResolver) -> bool:
    """Whether ``user`` sits above the request's submitter at the right distance.

    Taluka officers handle their direct facilities only, district officers
    their whole subtree, the state officer everything.
    """
    if user.role is Role.STATE:
        return True
    if user.role is Role.DISTRICT:
        return request.submitted_by in resolver.subordinate_ids(user.id)
    if user.role is Role.TALUKA:
        return any(sub.id == request.submitted_by for sub in resolver.direct_subordinates(user.id))
    return False


def can_act(request: ProcurementRequest, user: User | None, resolver: HierarchyResolver) -> bool:
    if user is None or request.status.is_terminal:
        return False
    if approver_role_for(request.status) is not user.role:
        return False
    return manages_submitter(request, user, resolver)


def allowed_decisions(request: ProcurementRequest, user: User | None, resolver: HierarchyResolver) -> List[str]:
    if not can_act(request, user, resolver):
        return []
    return [Decision.APPROVE.value, Decision.REJECT.value]


def next_status(status: RequestStatus, decision: Decision) -> RequestStatus:
    if status.is_terminal:
        raise _not_allowed(status, decision)
    if decision is Decision.REJECT:
        return RequestStatus.REJECTED
    return APPROVE_TRANSITIONS[status]


def apply_decision(
    request: ProcurementRequest,
    acting_user: User,
    decision: Decision,
    comment: str | None = None,
    now: str | None = None,
    *,
    resolver: HierarchyResolver,
) -> ProcurementRequest:
    if request.status.is_terminal:
        raise _not_allowed(request.status, decision)

    expected_role = approver_role_for(request.status)
    if acting_user.role is not expected_role or not manages_submitter(request, acting_user, resolver):
        raise AppPermissionError(
            code="not_authorized_for_stage",
            payload={
                "status": request.status.value,
                "required_role": expected_role.value if expected_role else None,
                "role": acting_user.role.value,
            },
        )

    entry = AuditEntry(
        action=ACTION_APPROVED if decision is Decision.APPROVE else ACTION_REJECTED,
        user=acting_user.name,
        date=now or utc_now_iso(),
        comment=(comment or "").strip() or None,
        user_id=acting_user.id,
    )
    return replace(
        request,
        status=next_status(request.status, decision),
        audit_log=(*request.audit_log, entry),
    )


def _not_allowed(status: RequestStatus, decision: Decision) -> ValidationError:
    return ValidationError(
        code="action_not_allowed_for_status",
        http_status=409,
        payload={"status": status.value, "action": decision.value},
    )


def _stage_index_for_status(status: RequestStatus | None) -> int:
    for idx, stage in enumerate(APPROVAL_STAGES):
        if stage["status"] is status:
            return idx
    return 0


def _rejection_stage_index(request: ProcurementRequest, submitter_role: Role | None) -> int:
    """Stage at which a rejected request stopped.

    Approvals recorded before the rejection are counted from the submitter's
    entry stage.
    """
    start = 1
    if submitter_role is not None and submitter_role is not Role.STATE:
        start = _stage_index_for_status(initial_status(submitter_role))
    approvals = 0
    for entry in request.audit_log:
        action = entry.action.lower()
        if action.startswith(ACTION_REJECTED):
            break
        if action.startswith(ACTION_APPROVED):
            approvals += 1
    return min(start + approvals, len(APPROVAL_STAGES) - 1)


def progress_steps(request: ProcurementRequest, submitter_role: Role | None = None) -> List[Dict[str, object]]:
    """Stepper view of a request: Submitted, each tier, then the final outcome."""
    status = request.status
    steps: List[Dict[str, object]] = []

    if status is RequestStatus.REJECTED:
        stopped_at = _rejection_stage_index(request, submitter_role)
    elif status is RequestStatus.APPROVED:
        stopped_at = len(APPROVAL_STAGES)
    else:
        stopped_at = _stage_index_for_status(status)

    for idx, stage in enumerate(APPROVAL_STAGES):
        if idx < stopped_at:
            state = "completed"
        elif idx == stopped_at:
            state = "rejected" if status is RequestStatus.REJECTED else "current"
        else:
            state = "upcoming"
        steps.append({"key": stage["key"], "label": stage["label"], "state": state})

    if status is RequestStatus.REJECTED:
        steps.append({"key": "final", "label": "Request Rejected", "state": "rejected"})
    else:
        steps.append(
            {
                "key": "final",
                "label": "Request Approved",
                "state": "completed" if status is RequestStatus.APPROVED else "upcoming",
            }
        )
    return steps


def flow_meta(
    request: ProcurementRequest,
    user: User | None,
    resolver: HierarchyResolver,
    submitter_role: Role | None = None,
) -> Dict[str, object]:
    required = approver_role_for(request.status)
    return {
        "status": request.status.value,
        "terminal": request.status.is_terminal,
        "awaiting_role": required.value if required else None,
        "allowed_decisions": allowed_decisions(request, user, resolver),
        "steps": progress_steps(request, submitter_role),
    }
