"""Collaborator protocols for dependency injection.

Concrete implementations (InMemory for local dev and tests, Supabase for
everything else) must satisfy these contracts. Components receive them in
their constructors; nothing in the package holds a process-global store.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class MachineRecordStore(Protocol):
    """Keyed table of machine ownership records.

    Filters are column -> value equality matches. Implementations raise
    ``RecordStoreError`` subclasses on failure.
    """

    async def create_record(self, data: Mapping[str, Any]) -> dict[str, Any]: ...
    async def update_records(
        self, filters: Mapping[str, Any], data: Mapping[str, Any]
    ) -> list[dict[str, Any]]: ...
    async def find_records(self, filters: Mapping[str, Any]) -> list[dict[str, Any]]: ...
    async def find_first(
        self, filters: Mapping[str, Any], *, columns: str = "*"
    ) -> dict[str, Any] | None: ...


@runtime_checkable
class MachineProvider(Protocol):
    """Remote machine operations used by the lifecycle components."""

    @property
    def app_name(self) -> str: ...

    async def create_machine(self, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def get_machine(self, machine_id: str) -> dict[str, Any]: ...
    async def delete_machine(self, machine_id: str, *, force: bool = True) -> None: ...
    async def list_machines(self) -> list[dict[str, Any]]: ...
    async def list_regions(self) -> list[dict[str, Any]]: ...
