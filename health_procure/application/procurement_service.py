from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from health_procure.domain.contracts import (
    Decision,
    Priority,
    ProcurementRequest,
    RequestDraft,
    Role,
    SubmissionResult,
    TextGenerationResult,
    User,
)
from health_procure.errors import AuthenticationError, NotFoundError, ValidationError
from health_procure.infrastructure.repositories import ProcurementRequestRepository
from health_procure.integrations.text_generation import TextGenerationClient, requests_to_csv
from health_procure.observability import observe_workflow_event
from health_procure.procurement import approval_flow, reporting, visibility
from health_procure.procurement.catalog import normalize_category
from health_procure.procurement.hierarchy import HierarchyResolver
from health_procure.ui_strings import queue_title


LOGGER = logging.getLogger("health_procure")


def _parse_positive_int(value: Any) -> int | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number <= 0 or number != int(number):
        return None
    return int(number)


def _parse_price(value: Any) -> float | None:
    if value in (None, ""):
        return 0.0
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price >= 0 else None


def parse_drafts(raw_items: Sequence[Any]) -> List[RequestDraft]:
    """Validate staged items as one batch.

    Any invalid item rejects the whole batch; the error payload lists every
    failing index with its problem fields.
    """
    if not raw_items:
        raise ValidationError(code="invalid_submission", payload={"invalid_items": []})

    drafts: List[RequestDraft] = []
    failures: List[Dict[str, Any]] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            failures.append({"index": index, "fields": ["item"]})
            continue
        problems: List[str] = []
        category = normalize_category(raw.get("category"))
        if category is None:
            problems.append("category")
        item_name = str(raw.get("itemName") or "").strip()
        if not item_name:
            problems.append("itemName")
        quantity = _parse_positive_int(raw.get("quantity"))
        if quantity is None:
            problems.append("quantity")
        justification = str(raw.get("justification") or "").strip()
        if not justification:
            problems.append("justification")
        price = _parse_price(raw.get("pricePerUnit"))
        if price is None:
            problems.append("pricePerUnit")
        priority = Priority.parse(raw.get("priority")) if raw.get("priority") else Priority.MEDIUM
        if priority is None:
            problems.append("priority")

        if problems:
            failures.append({"index": index, "fields": problems})
            continue
        drafts.append(
            RequestDraft(
                category=category,
                item_name=item_name,
                quantity=quantity,
                justification=justification,
                price_per_unit=price,
                priority=priority,
            )
        )

    if failures:
        raise ValidationError(code="invalid_submission", payload={"invalid_items": failures})
    return drafts


class ProcurementService:
    def __init__(
        self,
        resolver: HierarchyResolver,
        repository: ProcurementRequestRepository | None = None,
        text_client: TextGenerationClient | None = None,
    ) -> None:
        self.resolver = resolver
        self.repository = repository or ProcurementRequestRepository()
        self.text_client = text_client or TextGenerationClient()

    @staticmethod
    def _require_actor(actor: User | None) -> User:
        if actor is None:
            raise AuthenticationError()
        return actor

    def _submitter_role(self, request: ProcurementRequest) -> Role | None:
        submitter = self.resolver.directory.get(request.submitted_by)
        return submitter.role if submitter else None

    def submit_requests(self, db, actor: User | None, raw_items: Sequence[Any]) -> SubmissionResult:
        actor = self._require_actor(actor)
        drafts = parse_drafts(raw_items)
        # Resolve the entry stage before touching storage so a state submitter fails cleanly.
        approval_flow.initial_status(actor.role)

        now = approval_flow.utc_now_iso()
        stored: List[ProcurementRequest] = []
        try:
            for draft in drafts:
                stored.append(self.repository.append(db, approval_flow.new_request(actor, draft, now)))
            db.commit()
        except Exception:
            db.rollback()
            LOGGER.error(
                "request_submission_failed",
                extra={"user_id": actor.id, "items": len(drafts)},
                exc_info=True,
            )
            raise

        for request in stored:
            observe_workflow_event("request_submitted", to_status=request.status.value)
            LOGGER.info(
                "request_submitted",
                extra={
                    "procurement_request_id": request.id,
                    "user_id": actor.id,
                    "status": request.status.value,
                    "category": request.category,
                },
            )
        return SubmissionResult(requests=stored)

    def get_request(self, db, request_id: str) -> ProcurementRequest:
        request = self.repository.get(db, request_id)
        if request is None:
            raise NotFoundError(details=f"procurement request {request_id} not found")
        return request

    def decide(
        self,
        db,
        actor: User | None,
        request_id: str,
        decision_value: Any,
        comment: str | None = None,
    ) -> ProcurementRequest:
        actor = self._require_actor(actor)
        decision = Decision.parse(decision_value)
        if decision is None:
            raise ValidationError(code="decision_invalid", payload={"allowed": [d.value for d in Decision]})

        current = self.get_request(db, request_id)
        updated = approval_flow.apply_decision(current, actor, decision, comment, resolver=self.resolver)
        try:
            self.repository.save_transition(db, updated)
            db.commit()
        except Exception:
            db.rollback()
            LOGGER.error(
                "request_decision_failed",
                extra={"procurement_request_id": request_id, "user_id": actor.id},
                exc_info=True,
            )
            raise

        observe_workflow_event("request_decided", current.status.value, updated.status.value)
        LOGGER.info(
            "request_decided",
            extra={
                "procurement_request_id": request_id,
                "user_id": actor.id,
                "decision": decision.value,
                "from_status": current.status.value,
                "to_status": updated.status.value,
            },
        )
        return updated

    def approval_queue(self, db, viewer: User | None, status_filter: str | None = None) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        queue = visibility.visible_requests(self.repository.load_all(db), viewer, self.resolver)
        filtered = visibility.filter_by_status(queue, status_filter, viewer)
        return {
            "title": queue_title(viewer.role.value),
            "filter": visibility.normalize_status_filter(status_filter),
            "requests": [self.request_view(request, viewer) for request in filtered],
            "stats": visibility.request_stats(queue, viewer),
        }

    def scope_listing(self, db, viewer: User | None, status_filter: str | None = None) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        scoped = visibility.scoped_requests(self.repository.load_all(db), viewer, self.resolver)
        filtered = visibility.filter_by_status(scoped, status_filter, viewer)
        return {
            "filter": visibility.normalize_status_filter(status_filter),
            "requests": [self.request_view(request, viewer) for request in filtered],
            "stats": visibility.request_stats(scoped, viewer),
        }

    def request_detail(self, db, viewer: User | None, request_id: str) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        request = self.get_request(db, request_id)
        in_scope = visibility.scoped_requests([request], viewer, self.resolver)
        if not in_scope and not visibility.visible_requests([request], viewer, self.resolver):
            raise NotFoundError(details=f"procurement request {request_id} is outside the viewer scope")
        return self.request_view(request, viewer)

    def request_view(self, request: ProcurementRequest, viewer: User) -> Dict[str, Any]:
        payload = request.to_dict()
        submitter = self.resolver.directory.get(request.submitted_by)
        payload["submittedByName"] = submitter.name if submitter else None
        payload["totalCost"] = request.total_cost
        payload["flow"] = approval_flow.flow_meta(request, viewer, self.resolver, self._submitter_role(request))
        return payload

    def _scoped(self, db, viewer: User) -> List[ProcurementRequest]:
        return visibility.scoped_requests(self.repository.load_all(db), viewer, self.resolver)

    def approved_items(self, db, viewer: User | None) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        aggregated = reporting.aggregate_cost(self._scoped(db, viewer), mode="approved")
        return reporting.aggregation_payload(aggregated)

    def requested_budget(self, db, viewer: User | None) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        aggregated = reporting.aggregate_cost(self._scoped(db, viewer), mode="requested")
        return reporting.aggregation_payload(aggregated)

    def report_grouping(self, db, viewer: User | None) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        grouping = reporting.group_for_reporting(self._scoped(db, viewer), self.resolver, viewer.role)
        return {"role": viewer.role.value, "groups": reporting.grouping_payload(grouping)}

    def cost_breakdown(
        self,
        db,
        viewer: User | None,
        unit_id: str | None = None,
        category: str | None = None,
    ) -> Dict[str, Any]:
        viewer = self._require_actor(viewer)
        rows = reporting.cost_breakdown(
            self.repository.load_all(db),
            self.resolver,
            viewer,
            unit_id=unit_id,
            category=category,
        )
        return {"unitId": unit_id or "all", "category": category or "all", "rows": rows}

    def draft_justification(self, actor: User | None, payload: Dict[str, Any]) -> TextGenerationResult:
        self._require_actor(actor)
        item_name = str(payload.get("itemName") or "").strip()
        category = normalize_category(payload.get("category"))
        quantity = _parse_positive_int(payload.get("quantity"))
        problems = [
            name
            for name, ok in (("itemName", bool(item_name)), ("category", category is not None), ("quantity", quantity is not None))
            if not ok
        ]
        if problems:
            raise ValidationError(payload={"fields": problems})
        return self.text_client.generate_justification(item_name, category, quantity)

    def forecast_demand(self, db, actor: User | None, payload: Dict[str, Any]) -> TextGenerationResult:
        actor = self._require_actor(actor)
        historical = str(payload.get("historicalData") or "").strip()
        if not historical:
            raise ValidationError(payload={"fields": ["historicalData"]})
        current = str(payload.get("currentRequests") or "").strip()
        if not current:
            current = requests_to_csv(self._scoped(db, actor))
        return self.text_client.forecast_demand(historical, current)
