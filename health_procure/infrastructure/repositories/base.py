from __future__ import annotations

from typing import Any, Iterable


class BaseRepository:
    table_name: str = ""
    updatable_columns: frozenset = frozenset()

    def assert_updatable(self, fields: Iterable[str]) -> None:
        unknown = sorted(set(fields) - set(self.updatable_columns))
        if unknown:
            raise ValueError(f"columns not updatable on {self.table_name}: {', '.join(unknown)}")

    @staticmethod
    def row_to_dict(row: Any) -> dict | None:
        if row is None:
            return None
        return dict(row)

    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]
