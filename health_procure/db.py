import sqlite3
from typing import Iterable

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


REQUEST_STATUSES = (
    "Pending Taluka Approval",
    "Pending District Approval",
    "Pending State Approval",
    "Approved",
    "Rejected",
)


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path)
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def get_read_db():
    if "db_read" not in g:
        db_path = current_app.config.get("DATABASE_READ_URL") or current_app.config["DB_PATH"]
        g.db_read = _connect_database(db_path)
    return g.db_read


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()
    db_read = g.pop("db_read", None)
    if db_read is not None:
        db_read.close()


def schema_statements(backend: str) -> list:
    status_check = ", ".join(f"'{status}'" for status in REQUEST_STATUSES)
    if backend == "postgres":
        seq_column = "seq BIGSERIAL PRIMARY KEY"
        price_type = "DOUBLE PRECISION"
    else:
        seq_column = "seq INTEGER PRIMARY KEY AUTOINCREMENT"
        price_type = "REAL"
    return [
        f"""
        CREATE TABLE IF NOT EXISTS procurement_requests (
            {seq_column},
            id TEXT NOT NULL UNIQUE,
            category TEXT NOT NULL CHECK (
                category IN ('HR','Infrastructure','Equipment','Training')
            ),
            item_name TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            price_per_unit {price_type} CHECK (price_per_unit IS NULL OR price_per_unit >= 0),
            priority TEXT NOT NULL DEFAULT 'Medium' CHECK (
                priority IN ('High','Medium','Low')
            ),
            justification TEXT NOT NULL,
            submitted_by TEXT NOT NULL,
            status TEXT NOT NULL CHECK (status IN ({status_check})),
            created_at TEXT NOT NULL,
            audit_log TEXT NOT NULL DEFAULT '[]',
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_procurement_requests_submitted_by ON procurement_requests (submitted_by)",
        "CREATE INDEX IF NOT EXISTS idx_procurement_requests_status ON procurement_requests (status)",
    ]


def init_db():
    db = get_db()
    for statement in schema_statements(db.backend):
        db.execute(statement)
    db.commit()
