"""Budget rollups and report groupings over procurement requests.

Everything here is a pure function of its inputs. Costs are
``quantity * pricePerUnit`` with a missing price counted as zero.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from health_procure.domain.contracts import ItemRollup, ProcurementRequest, RequestStatus, Role, User
from health_procure.errors import ValidationError
from health_procure.procurement.catalog import PROCUREMENT_CATEGORIES, normalize_category
from health_procure.procurement.hierarchy import HierarchyResolver


AGGREGATION_MODES = ("approved", "requested")

StateGrouping = Dict[str, Dict[str, Dict[str, List[ProcurementRequest]]]]
TalukaGrouping = Dict[str, Dict[str, List[ProcurementRequest]]]
DistrictGrouping = Dict[str, List[ProcurementRequest]]


def _included(request: ProcurementRequest, mode: str) -> bool:
    if mode == "approved":
        return request.status is RequestStatus.APPROVED
    if mode == "requested":
        return request.status is not RequestStatus.REJECTED
    raise ValidationError(code="validation_error", payload={"field": "mode", "allowed": list(AGGREGATION_MODES)})


def rollup_by_item(
    requests: Iterable[ProcurementRequest],
    *,
    mode: str = "approved",
    scope_ids: Set[str] | None = None,
) -> Dict[str, ItemRollup]:
    """Sum quantity and cost per item name, in first-seen order.

    An item keeps the category of the first request that named it.
    """
    items: Dict[str, ItemRollup] = {}
    for request in requests:
        if not _included(request, mode):
            continue
        if scope_ids is not None and request.submitted_by not in scope_ids:
            continue
        current = items.get(request.item_name)
        if current is None:
            items[request.item_name] = ItemRollup(
                item_name=request.item_name,
                category=request.category,
                total_quantity=int(request.quantity),
                total_cost=request.total_cost,
            )
            continue
        items[request.item_name] = ItemRollup(
            item_name=current.item_name,
            category=current.category,
            total_quantity=current.total_quantity + int(request.quantity),
            total_cost=current.total_cost + request.total_cost,
        )
    return items


def aggregate_cost(
    requests: Iterable[ProcurementRequest],
    *,
    mode: str = "approved",
    scope_ids: Set[str] | None = None,
) -> Dict[str, List[ItemRollup]]:
    """Item rollups regrouped by category, costliest first.

    Categories without matching items are left out. Equal costs keep their
    first-seen order.
    """
    grouped: Dict[str, List[ItemRollup]] = {}
    for rollup in rollup_by_item(requests, mode=mode, scope_ids=scope_ids).values():
        grouped.setdefault(rollup.category, []).append(rollup)
    return {
        category: sorted(rollups, key=lambda item: item.total_cost, reverse=True)
        for category, rollups in grouped.items()
    }


def category_totals(aggregated: Dict[str, List[ItemRollup]]) -> Dict[str, Dict[str, float]]:
    totals: Dict[str, Dict[str, float]] = {}
    for category, rollups in aggregated.items():
        totals[category] = {
            "totalQuantity": sum(item.total_quantity for item in rollups),
            "totalCost": sum(item.total_cost for item in rollups),
        }
    return totals


def budget_total(aggregated: Dict[str, List[ItemRollup]]) -> float:
    return sum(item.total_cost for rollups in aggregated.values() for item in rollups)


def aggregation_payload(aggregated: Dict[str, List[ItemRollup]]) -> Dict[str, Any]:
    return {
        "categories": {
            category: [item.to_dict() for item in rollups] for category, rollups in aggregated.items()
        },
        "categoryTotals": category_totals(aggregated),
        "totalCost": budget_total(aggregated),
    }


def _approved_cost(
    requests: Iterable[ProcurementRequest],
    facility_ids: Set[str],
    category: str | None = None,
) -> float:
    return sum(
        request.total_cost
        for request in requests
        if request.status is RequestStatus.APPROVED
        and request.submitted_by in facility_ids
        and (category is None or request.category == category)
    )


def _cost_per_category(requests: List[ProcurementRequest], facility_ids: Set[str]) -> List[Dict[str, Any]]:
    rows = []
    for category in PROCUREMENT_CATEGORIES:
        total = _approved_cost(requests, facility_ids, category)
        if total > 0:
            rows.append({"name": category, "totalCost": total})
    return rows


def cost_breakdown(
    requests: Iterable[ProcurementRequest],
    resolver: HierarchyResolver,
    viewer: User,
    *,
    unit_id: str | None = None,
    category: str | None = None,
) -> List[Dict[str, Any]]:
    """Approved cost per child unit of the viewer, or per category inside one unit.

    State viewers break down by district, district viewers by taluka. Only
    base facilities contribute cost.
    """
    items = list(requests)
    if viewer.role is Role.STATE:
        units = resolver.directory.users_with_role(Role.DISTRICT)
    elif viewer.role is Role.DISTRICT:
        units = [user for user in resolver.direct_subordinates(viewer.id) if user.role is Role.TALUKA]
    else:
        return []

    category_filter = None
    if category and str(category).strip().lower() != "all":
        category_filter = normalize_category(category)
        if category_filter is None:
            raise ValidationError(code="validation_error", payload={"field": "category"})

    if unit_id and unit_id != "all":
        selected = next((unit for unit in units if unit.id == unit_id), None)
        if selected is None:
            return []
        return _cost_per_category(items, resolver.base_facilities_under(selected.id))

    return [
        {
            "id": unit.id,
            "name": unit.name,
            "totalCost": _approved_cost(items, resolver.base_facilities_under(unit.id), category_filter),
        }
        for unit in units
    ]


def group_for_state(requests: Iterable[ProcurementRequest], resolver: HierarchyResolver) -> StateGrouping:
    grouped: StateGrouping = {}
    for request in requests:
        submitter = resolver.directory.get(request.submitted_by)
        if submitter is None or submitter.role is not Role.BASE:
            continue
        taluka = resolver.nearest_ancestor(submitter.id, Role.TALUKA)
        district = resolver.nearest_ancestor(submitter.id, Role.DISTRICT)
        if taluka is None or district is None:
            continue
        facilities = grouped.setdefault(district.name, {}).setdefault(taluka.name, {})
        facilities.setdefault(submitter.name, []).append(request)
    return grouped


def group_for_taluka(requests: Iterable[ProcurementRequest], resolver: HierarchyResolver) -> TalukaGrouping:
    grouped: TalukaGrouping = {}
    for request in requests:
        submitter = resolver.directory.get(request.submitted_by)
        if submitter is None:
            continue
        grouped.setdefault(submitter.name, {}).setdefault(request.category, []).append(request)
    return grouped


def group_for_district(requests: Iterable[ProcurementRequest], resolver: HierarchyResolver) -> DistrictGrouping:
    grouped: DistrictGrouping = {}
    for request in requests:
        submitter = resolver.directory.get(request.submitted_by)
        if submitter is None:
            continue
        grouped.setdefault(submitter.name, []).append(request)
    return grouped


def group_for_reporting(
    requests: Iterable[ProcurementRequest],
    resolver: HierarchyResolver,
    viewer_role: Role,
) -> Dict[str, Any]:
    if viewer_role is Role.STATE:
        return group_for_state(requests, resolver)
    if viewer_role is Role.TALUKA:
        return group_for_taluka(requests, resolver)
    if viewer_role is Role.DISTRICT:
        return group_for_district(requests, resolver)
    return {}


def grouping_payload(grouping: Any) -> Any:
    """JSON form of a nested grouping: request lists become request dicts."""
    if isinstance(grouping, dict):
        return {key: grouping_payload(value) for key, value in grouping.items()}
    return [request.to_dict() for request in grouping]
