import unittest

from health_procure.domain.contracts import RequestStatus, Role
from health_procure.errors import ValidationError
from health_procure.procurement import reporting
from tests.helpers.factories import demo_resolver, make_request


class CostAggregationTest(unittest.TestCase):
    def test_gloves_rollup_sums_quantity_and_cost(self) -> None:
        requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED, quantity=10, price_per_unit=5),
            make_request("r2", "base-2", status=RequestStatus.APPROVED, quantity=5, price_per_unit=5),
        ]
        aggregated = reporting.aggregate_cost(requests)
        self.assertEqual(list(aggregated), ["Equipment"])
        gloves = aggregated["Equipment"][0]
        self.assertEqual(gloves.item_name, "Gloves")
        self.assertEqual(gloves.total_quantity, 15)
        self.assertEqual(gloves.total_cost, 75)

    def test_approved_mode_ignores_pending_and_rejected(self) -> None:
        requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED),
            make_request("r2", "base-1", status=RequestStatus.PENDING_STATE),
            make_request("r3", "base-1", status=RequestStatus.REJECTED),
        ]
        rollups = reporting.rollup_by_item(requests, mode="approved")
        self.assertEqual(rollups["Gloves"].total_quantity, 10)

    def test_requested_mode_counts_everything_not_rejected(self) -> None:
        requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED),
            make_request("r2", "base-1", status=RequestStatus.PENDING_STATE),
            make_request("r3", "base-1", status=RequestStatus.REJECTED),
        ]
        rollups = reporting.rollup_by_item(requests, mode="requested")
        self.assertEqual(rollups["Gloves"].total_quantity, 20)
        self.assertEqual(rollups["Gloves"].total_cost, 100)

    def test_missing_price_counts_as_zero(self) -> None:
        requests = [make_request("r1", "base-1", status=RequestStatus.APPROVED, price_per_unit=None)]
        self.assertEqual(reporting.rollup_by_item(requests)["Gloves"].total_cost, 0)

    def test_categories_are_sparse_and_sorted_by_cost(self) -> None:
        requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED, item_name="Gloves", quantity=10, price_per_unit=5),
            make_request("r2", "base-1", status=RequestStatus.APPROVED, item_name="Oxygen Concentrator", quantity=1, price_per_unit=45000),
            make_request("r3", "base-1", status=RequestStatus.APPROVED, item_name="CPR Training", category="Training", quantity=2, price_per_unit=1500),
        ]
        aggregated = reporting.aggregate_cost(requests)
        self.assertEqual(set(aggregated), {"Equipment", "Training"})
        self.assertEqual([item.item_name for item in aggregated["Equipment"]], ["Oxygen Concentrator", "Gloves"])
        self.assertEqual(reporting.budget_total(aggregated), 45000 + 50 + 3000)

        payload = reporting.aggregation_payload(aggregated)
        self.assertEqual(payload["categoryTotals"]["Training"], {"totalQuantity": 2, "totalCost": 3000})
        self.assertEqual(payload["categories"]["Equipment"][1], {"itemName": "Gloves", "totalQuantity": 10, "totalCost": 50})

    def test_equal_costs_keep_insertion_order(self) -> None:
        requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED, item_name="Syringes", quantity=10, price_per_unit=5),
            make_request("r2", "base-2", status=RequestStatus.APPROVED, item_name="Bandages", quantity=5, price_per_unit=10),
            make_request("r3", "base-1", status=RequestStatus.APPROVED, item_name="Masks", quantity=1, price_per_unit=10),
        ]
        aggregated = reporting.aggregate_cost(requests)
        self.assertEqual([item.item_name for item in aggregated["Equipment"]], ["Syringes", "Bandages", "Masks"])
        self.assertEqual([item.total_cost for item in aggregated["Equipment"]], [50, 50, 10])

    def test_scope_ids_restrict_submitters(self) -> None:
        requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED),
            make_request("r2", "base-4", status=RequestStatus.APPROVED),
        ]
        rollups = reporting.rollup_by_item(requests, scope_ids={"base-4"})
        self.assertEqual(rollups["Gloves"].total_quantity, 10)

    def test_unknown_mode_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            reporting.aggregate_cost([make_request("r1", "base-1")], mode="forecast")


class CostBreakdownTest(unittest.TestCase):
    def setUp(self) -> None:
        self.resolver = demo_resolver()
        self.requests = [
            make_request("r1", "base-1", status=RequestStatus.APPROVED, quantity=10, price_per_unit=5),
            make_request("r2", "base-3", status=RequestStatus.APPROVED, item_name="CPR Training", category="Training", quantity=1, price_per_unit=1500),
            make_request("r3", "base-4", status=RequestStatus.APPROVED, quantity=2, price_per_unit=5),
            make_request("r4", "base-4", status=RequestStatus.PENDING_STATE, quantity=100, price_per_unit=5),
        ]

    def test_state_breaks_down_by_district(self) -> None:
        state = self.resolver.directory.get("state-1")
        rows = reporting.cost_breakdown(self.requests, self.resolver, state)
        self.assertEqual(
            rows,
            [
                {"id": "district-1", "name": "Pune District Health Office", "totalCost": 1550},
                {"id": "district-2", "name": "Nashik District Health Office", "totalCost": 10},
            ],
        )

    def test_category_filter(self) -> None:
        state = self.resolver.directory.get("state-1")
        rows = reporting.cost_breakdown(self.requests, self.resolver, state, category="training")
        self.assertEqual([row["totalCost"] for row in rows], [1500, 0])

    def test_district_breaks_down_by_taluka(self) -> None:
        district = self.resolver.directory.get("district-1")
        rows = reporting.cost_breakdown(self.requests, self.resolver, district)
        self.assertEqual([(row["id"], row["totalCost"]) for row in rows], [("taluka-1", 50), ("taluka-2", 1500)])

    def test_single_unit_breaks_down_by_category(self) -> None:
        state = self.resolver.directory.get("state-1")
        rows = reporting.cost_breakdown(self.requests, self.resolver, state, unit_id="district-1")
        self.assertEqual(rows, [{"name": "Equipment", "totalCost": 50}, {"name": "Training", "totalCost": 1500}])
        self.assertEqual(reporting.cost_breakdown(self.requests, self.resolver, state, unit_id="ghost"), [])

    def test_other_roles_get_no_breakdown(self) -> None:
        base = self.resolver.directory.get("base-1")
        self.assertEqual(reporting.cost_breakdown(self.requests, self.resolver, base), [])

    def test_invalid_category_rejected(self) -> None:
        state = self.resolver.directory.get("state-1")
        with self.assertRaises(ValidationError):
            reporting.cost_breakdown(self.requests, self.resolver, state, category="Catering")


class ReportGroupingTest(unittest.TestCase):
    def setUp(self) -> None:
        self.resolver = demo_resolver()

    def test_state_grouping_spans_two_districts(self) -> None:
        requests = [
            make_request("r1", "base-1"),
            make_request("r2", "base-3"),
            make_request("r3", "base-4"),
            make_request("r4", "taluka-1"),
        ]
        grouping = reporting.group_for_reporting(requests, self.resolver, Role.STATE)
        self.assertEqual(set(grouping), {"Pune District Health Office", "Nashik District Health Office"})
        pune = grouping["Pune District Health Office"]
        self.assertEqual(set(pune), {"Haveli Taluka Health Office", "Mulshi Taluka Health Office"})
        self.assertEqual([r.id for r in pune["Haveli Taluka Health Office"]["PHC Wagholi"]], ["r1"])
        nashik = grouping["Nashik District Health Office"]
        self.assertEqual([r.id for r in nashik["Niphad Taluka Health Office"]["PHC Lasalgaon"]], ["r3"])

    def test_taluka_grouping_by_facility_then_category(self) -> None:
        requests = [
            make_request("r1", "base-1"),
            make_request("r2", "base-1", item_name="CPR Training", category="Training"),
            make_request("r3", "base-2"),
        ]
        grouping = reporting.group_for_reporting(requests, self.resolver, Role.TALUKA)
        self.assertEqual(set(grouping["PHC Wagholi"]), {"Equipment", "Training"})
        self.assertEqual([r.id for r in grouping["PHC Khed Shivapur"]["Equipment"]], ["r3"])

    def test_district_grouping_by_facility(self) -> None:
        requests = [make_request("r1", "base-1"), make_request("r2", "ghost")]
        grouping = reporting.group_for_reporting(requests, self.resolver, Role.DISTRICT)
        self.assertEqual(list(grouping), ["PHC Wagholi"])

    def test_base_role_gets_empty_grouping(self) -> None:
        self.assertEqual(reporting.group_for_reporting([make_request("r1", "base-1")], self.resolver, Role.BASE), {})

    def test_grouping_payload_serialises_requests(self) -> None:
        grouping = reporting.group_for_reporting([make_request("r1", "base-1")], self.resolver, Role.DISTRICT)
        payload = reporting.grouping_payload(grouping)
        self.assertEqual(payload["PHC Wagholi"][0]["id"], "r1")


if __name__ == "__main__":
    unittest.main()
