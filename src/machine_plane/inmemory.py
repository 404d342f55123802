"""In-memory collaborator implementations for local development and tests.

These are used when ENVIRONMENT=local. They satisfy the protocol interfaces
but store everything in process memory (no persistence across restarts).
"""

from __future__ import annotations

import copy
from typing import Any, Mapping

from .db.errors import RecordStoreConflictError


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(row.get(col) == val for col, val in filters.items())


def _project(row: Mapping[str, Any], columns: str) -> dict[str, Any]:
    if columns.strip() == "*":
        return copy.deepcopy(dict(row))
    wanted = [c.strip() for c in columns.split(",") if c.strip()]
    return {c: copy.deepcopy(row.get(c)) for c in wanted}


class InMemoryMachineRecordStore:
    """Append-only list of machine rows.

    Rows are never removed. ``machine_id`` is unique across the whole table,
    tombstoned rows included.
    """

    def __init__(self) -> None:
        self._rows: list[dict[str, Any]] = []

    @property
    def rows(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._rows)

    async def create_record(self, data: Mapping[str, Any]) -> dict[str, Any]:
        machine_id = data.get("machine_id")
        if any(r.get("machine_id") == machine_id for r in self._rows):
            raise RecordStoreConflictError(f"machine_id already recorded: {machine_id}")
        row = dict(data)
        self._rows.append(row)
        return copy.deepcopy(row)

    async def update_records(
        self,
        filters: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        updated = []
        for row in self._rows:
            if _matches(row, filters):
                row.update(data)
                updated.append(copy.deepcopy(row))
        return updated

    async def find_records(self, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._rows if _matches(r, filters)]

    async def find_first(
        self,
        filters: Mapping[str, Any],
        *,
        columns: str = "*",
    ) -> dict[str, Any] | None:
        for row in self._rows:
            if _matches(row, filters):
                return _project(row, columns)
        return None
