import unittest

from health_procure import create_app
from health_procure.config import Config
from health_procure.db import close_db
from health_procure.observability import metrics_snapshot, reset_metrics_for_tests
from health_procure.security import reset_rate_limiter_for_tests
from tests.helpers.temp_db import TempDbSandbox


class SecurityHardeningTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="security_hardening")
        temp_config = self._temp_db.make_config(
            Config,
            TESTING=True,
            RATE_LIMIT_ENABLED=True,
            RATE_LIMIT_WINDOW_SECONDS=60,
            RATE_LIMIT_MAX_REQUESTS=3,
        )
        self.app = create_app(temp_config)
        self.client = self.app.test_client()
        reset_rate_limiter_for_tests()
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_rate_limiter_for_tests()
        reset_metrics_for_tests()

    def test_security_headers_present(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.headers.get("X-Content-Type-Options"), "nosniff")
        self.assertEqual(response.headers.get("X-Frame-Options"), "DENY")
        self.assertIn("frame-ancestors 'none'", response.headers.get("Content-Security-Policy", ""))
        self.assertTrue(response.headers.get("X-Response-Time-Ms"))

    def test_api_rate_limit_returns_429(self) -> None:
        statuses = [self.client.get("/api/catalog").status_code for _ in range(4)]
        self.assertEqual(statuses, [200, 200, 200, 429])

        blocked = self.client.get("/api/catalog")
        payload = blocked.get_json()
        self.assertEqual(payload["error"], "rate_limit_exceeded")
        self.assertGreaterEqual(payload["retry_after"], 0)

    def test_health_is_not_rate_limited(self) -> None:
        statuses = {self.client.get("/health").status_code for _ in range(6)}
        self.assertEqual(statuses, {200})

    def test_metrics_record_routes_and_errors(self) -> None:
        self.client.get("/api/catalog")
        self.client.get("/api/requests/REQ-missing")
        snapshot = metrics_snapshot()
        self.assertEqual(snapshot["requests_total"], 2)
        self.assertEqual(snapshot["errors_total"], 1)
        routes = {item["route"] for item in snapshot["by_route"]}
        self.assertIn("GET /api/catalog", routes)


if __name__ == "__main__":
    unittest.main()
