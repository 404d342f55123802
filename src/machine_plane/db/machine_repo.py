"""Supabase-backed machine record store.

Implements the MachineRecordStore protocol using SupabaseClient for PostgREST
operations against the machines table.

Uniqueness of ``machine_id`` is enforced by a unique index on the table; a
duplicate insert comes back as 409 and surfaces as SupabaseConflictError.
"""

from __future__ import annotations

from typing import Any, Mapping

from .supabase_client import SupabaseClient

DEFAULT_TABLE = "public.machines"


class SupabaseMachineRecordStore:
    """Machine ownership rows backed by Supabase PostgREST.

    Satisfies the ``MachineRecordStore`` protocol from ``protocols.py``.
    """

    def __init__(self, client: SupabaseClient, *, table: str = DEFAULT_TABLE) -> None:
        self._client = client
        self._table = table

    async def create_record(self, data: Mapping[str, Any]) -> dict[str, Any]:
        rows = await self._client.insert(self._table, dict(data))
        return rows[0] if rows else dict(data)

    async def update_records(
        self,
        filters: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        """Patch every row matching ``filters``; returns the updated rows."""
        return await self._client.update(
            self._table,
            filters={col: ("eq", val) for col, val in filters.items()},
            data=data,
        )

    async def find_records(self, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        return await self._client.select(
            self._table,
            filters={col: ("eq", val) for col, val in filters.items()},
            order="created_at.asc",
        )

    async def find_first(
        self,
        filters: Mapping[str, Any],
        *,
        columns: str = "*",
    ) -> dict[str, Any] | None:
        rows = await self._client.select(
            self._table,
            filters={col: ("eq", val) for col, val in filters.items()},
            columns=columns,
            limit=1,
        )
        return rows[0] if rows else None
