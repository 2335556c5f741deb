import json
import os
import unittest

from health_procure import create_app
from health_procure.config import Config
from health_procure.db import close_db
from health_procure.directory import DEMO_USERS, load_directory_records
from health_procure.errors import ConfigurationError
from tests.helpers.temp_db import TempDbSandbox


class DirectoryLoadingTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="directory_loading")
        self.directory_path = os.path.join(self._temp_db.temp_dir, "users.json")

    def tearDown(self) -> None:
        self._temp_db.cleanup()

    def _write(self, content: str) -> None:
        with open(self.directory_path, "w", encoding="utf-8") as handle:
            handle.write(content)

    def test_demo_directory_without_path(self) -> None:
        records = load_directory_records(None)
        self.assertEqual(len(records), len(DEMO_USERS))
        records[0]["name"] = "changed"
        self.assertNotEqual(DEMO_USERS[0]["name"], "changed")

    def test_users_key_is_accepted(self) -> None:
        users = [
            {"id": "s", "name": "State", "role": "state", "reportsTo": None},
            {"id": "d", "name": "District", "role": "district", "reportsTo": "s"},
        ]
        self._write(json.dumps({"users": users}))
        self.assertEqual(load_directory_records(self.directory_path), users)

    def test_app_uses_configured_directory(self) -> None:
        self._write(
            json.dumps(
                [
                    {"id": "s", "name": "State", "role": "state", "reportsTo": None},
                    {"id": "d", "name": "District", "role": "district", "reportsTo": "s"},
                    {"id": "t", "name": "Taluka", "role": "taluka", "reportsTo": "d"},
                    {"id": "b", "name": "Clinic", "role": "base", "reportsTo": "t"},
                ]
            )
        )
        app = create_app(self._temp_db.make_config(Config, TESTING=True, USER_DIRECTORY_PATH=self.directory_path))
        client = app.test_client()
        self.assertEqual(client.get("/health").get_json()["directory_users"], 4)
        self.assertEqual(client.post("/api/auth/login", json={"userId": "b"}).status_code, 200)
        self.assertEqual(client.post("/api/auth/login", json={"userId": "base-1"}).status_code, 401)
        with app.app_context():
            close_db()

    def test_invalid_json_fails_startup(self) -> None:
        self._write("{not json")
        with self.assertRaises(ConfigurationError):
            create_app(self._temp_db.make_config(Config, TESTING=True, USER_DIRECTORY_PATH=self.directory_path))

    def test_missing_file_fails_startup(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_directory_records(os.path.join(self._temp_db.temp_dir, "absent.json"))

    def test_broken_hierarchy_fails_startup(self) -> None:
        self._write(json.dumps([{"id": "b", "name": "Clinic", "role": "base", "reportsTo": "nobody"}]))
        with self.assertRaises(ConfigurationError) as ctx:
            create_app(self._temp_db.make_config(Config, TESTING=True, USER_DIRECTORY_PATH=self.directory_path))
        self.assertEqual(ctx.exception.code, "directory_invalid")


if __name__ == "__main__":
    unittest.main()
