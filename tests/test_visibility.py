import unittest

from health_procure.domain.contracts import AuditEntry, RequestStatus, Role, User
from health_procure.errors import ValidationError
from health_procure.procurement.visibility import (
    filter_by_status,
    request_stats,
    scoped_requests,
    visible_requests,
)
from tests.helpers.factories import demo_resolver, make_request


class VisibilityTest(unittest.TestCase):
    def setUp(self) -> None:
        self.resolver = demo_resolver()
        self.directory = self.resolver.directory
        self.requests = [
            make_request("r1", "base-1", status=RequestStatus.PENDING_TALUKA),
            make_request("r2", "base-3", status=RequestStatus.PENDING_DISTRICT),
            make_request("r3", "base-4", status=RequestStatus.PENDING_STATE),
            make_request("r4", "base-1", status=RequestStatus.APPROVED),
            make_request("r5", "base-2", status=RequestStatus.REJECTED),
            make_request("r6", "taluka-1", status=RequestStatus.PENDING_DISTRICT),
            make_request("r7", "base-4", status=RequestStatus.PENDING_TALUKA),
        ]

    def _ids(self, user_id: str):
        viewer = self.directory.get(user_id)
        return [request.id for request in visible_requests(self.requests, viewer, self.resolver)]

    def test_taluka_sees_direct_reports_pending_at_taluka(self) -> None:
        self.assertEqual(self._ids("taluka-1"), ["r1"])
        self.assertEqual(self._ids("taluka-3"), ["r7"])

    def test_district_sees_subtree_pending_at_district(self) -> None:
        self.assertEqual(self._ids("district-1"), ["r2", "r6"])
        self.assertEqual(self._ids("district-2"), [])

    def test_state_sees_everything_pending_at_state(self) -> None:
        self.assertEqual(self._ids("state-1"), ["r3"])

    def test_base_sees_own_requests_in_any_status(self) -> None:
        self.assertEqual(self._ids("base-1"), ["r1", "r4"])

    def test_unknown_viewer_sees_nothing(self) -> None:
        self.assertEqual(visible_requests(self.requests, None, self.resolver), [])
        stranger = User(id="ghost", name="Ghost", role=Role.TALUKA)
        self.assertEqual(visible_requests(self.requests, stranger, self.resolver), [])

    def test_visibility_is_idempotent(self) -> None:
        for user in self.directory.users():
            once = visible_requests(self.requests, user, self.resolver)
            twice = visible_requests(once, user, self.resolver)
            self.assertEqual(once, twice)

    def test_scope_includes_own_and_subtree_requests(self) -> None:
        taluka = self.directory.get("taluka-1")
        ids = [request.id for request in scoped_requests(self.requests, taluka, self.resolver)]
        self.assertEqual(ids, ["r1", "r4", "r5", "r6"])

        state = self.directory.get("state-1")
        self.assertEqual(len(scoped_requests(self.requests, state, self.resolver)), len(self.requests))


class StatusFilterTest(unittest.TestCase):
    def setUp(self) -> None:
        self.taluka = User(id="taluka-1", name="Haveli Taluka Health Office", role=Role.TALUKA, reports_to="district-1")
        approved_by_taluka = (
            AuditEntry(action="Submitted", user="PHC Wagholi", date="2026-10-01T09:00:00Z"),
            AuditEntry(action="approved", user=self.taluka.name, date="2026-10-02T09:00:00Z"),
        )
        self.requests = [
            make_request("r1", "base-1", status=RequestStatus.PENDING_TALUKA),
            make_request("r2", "base-1", status=RequestStatus.PENDING_DISTRICT, audit_log=approved_by_taluka),
            make_request("r3", "base-2", status=RequestStatus.APPROVED),
            make_request("r4", "base-2", status=RequestStatus.REJECTED),
        ]

    def _ids(self, status_filter, viewer=None):
        return [request.id for request in filter_by_status(self.requests, status_filter, viewer)]

    def test_filters(self) -> None:
        self.assertEqual(self._ids("all"), ["r1", "r2", "r3", "r4"])
        self.assertEqual(self._ids(None), ["r1", "r2", "r3", "r4"])
        self.assertEqual(self._ids("pending"), ["r1", "r2"])
        self.assertEqual(self._ids("approved"), ["r3"])
        self.assertEqual(self._ids("Rejected"), ["r4"])
        self.assertEqual(self._ids("approved-by-me", self.taluka), ["r2"])
        self.assertEqual(self._ids("approved-by-me"), [])

    def test_approved_by_me_matches_actor_id_over_name(self) -> None:
        namesake = User(id="taluka-9", name=self.taluka.name, role=Role.TALUKA, reports_to="district-2")
        approved_by_namesake = (
            AuditEntry(action="Submitted", user="PHC Lasalgaon", date="2026-10-01T09:00:00Z", user_id="base-4"),
            AuditEntry(action="approved", user=namesake.name, date="2026-10-02T09:00:00Z", user_id=namesake.id),
        )
        self.requests.append(make_request("r5", "base-4", status=RequestStatus.PENDING_DISTRICT, audit_log=approved_by_namesake))

        self.assertEqual(self._ids("approved-by-me", self.taluka), ["r2"])
        # r2 predates actor ids, so only the name is there to match.
        self.assertEqual(self._ids("approved-by-me", namesake), ["r2", "r5"])

    def test_unknown_filter_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            filter_by_status(self.requests, "archived")
        self.assertEqual(ctx.exception.code, "status_filter_invalid")

    def test_stats_for_base_count_every_pending_status(self) -> None:
        self.assertEqual(
            request_stats(self.requests),
            {"total": 4, "pending": 2, "approved": 1, "rejected": 1},
        )

    def test_stats_for_approver_count_own_tier_only(self) -> None:
        self.assertEqual(request_stats(self.requests, self.taluka)["pending"], 1)


if __name__ == "__main__":
    unittest.main()
