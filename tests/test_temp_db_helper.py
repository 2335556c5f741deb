import os
import sqlite3
import tempfile
import unittest

from tests.helpers.temp_db import TempDbSandbox, assert_safe_temp_db_path


class TempDbHelperTest(unittest.TestCase):
    def test_sandbox_lives_in_temp_and_cleans_up(self) -> None:
        sandbox = TempDbSandbox(prefix="health_procure_sanity")
        self.assertTrue(os.path.exists(sandbox.db_path))
        self.assertTrue(os.path.realpath(sandbox.db_path).startswith(os.path.realpath(tempfile.gettempdir())))

        conn = sqlite3.connect(sandbox.db_path)
        try:
            conn.execute("CREATE TABLE sanity (id INTEGER PRIMARY KEY)")
        finally:
            conn.close()

        sandbox.cleanup()
        self.assertFalse(os.path.exists(sandbox.temp_dir))

    def test_config_points_at_sandbox(self) -> None:
        sandbox = TempDbSandbox(prefix="health_procure_config")
        try:
            config = sandbox.make_config(object, TESTING=True)
            self.assertEqual(config.DB_PATH, sandbox.db_path)
            self.assertTrue(config.TESTING)
            self.assertFalse(config.LOG_JSON)
        finally:
            sandbox.cleanup()

    def test_disallow_workspace_paths(self) -> None:
        with self.assertRaises(ValueError):
            assert_safe_temp_db_path(os.path.join(os.getcwd(), "health_procure_test.db"))


if __name__ == "__main__":
    unittest.main()
