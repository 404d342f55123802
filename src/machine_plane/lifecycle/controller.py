"""Machine destruction, local lookups and live status queries.

Destroy is a two-step saga over the record store and the remote API:

  active --(tombstone)--> pending_remote_delete --(forced DELETE)--> destroyed

The local tombstone is written first. A failed local write aborts the
operation before any irreversible remote call. A failed remote delete leaves
the record in ``pending_remote_delete``, where the reconciler picks it up.
"""

from __future__ import annotations

import logging

from ..db.errors import RecordStoreError
from ..models import (
    LIFECYCLE_DESTROYED,
    LIFECYCLE_PENDING_REMOTE_DELETE,
    NOT_FOUND,
    Machine,
    MachineRecord,
    NotFoundType,
)
from ..observability.metrics import MACHINE_DESTROY_TOTAL
from ..protocols import MachineProvider, MachineRecordStore
from ..providers.fly_client import FlyNotFoundError, TransportError

logger = logging.getLogger(__name__)


class LifecycleController:
    """Destroys machines and answers status queries."""

    def __init__(self, client: MachineProvider, store: MachineRecordStore) -> None:
        self._client = client
        self._store = store

    async def destroy(self, machine_id: str) -> None:
        """Tombstone every local record for ``machine_id``, then force-delete it remotely.

        Raises:
            RecordStoreError: A local write failed. If it was the tombstone
                write, no remote call was made.
            TransportError: The remote delete failed; the record stays
                ``pending_remote_delete``.
        """
        try:
            await self._store.update_records(
                {"machine_id": machine_id},
                {"deleted": True, "lifecycle": LIFECYCLE_PENDING_REMOTE_DELETE},
            )
        except RecordStoreError as e:
            MACHINE_DESTROY_TOTAL.labels(outcome="store_error").inc()
            logger.error(
                "Soft delete failed for machine %s, remote delete skipped: %s",
                machine_id,
                e,
                extra={"machine_id": machine_id},
            )
            raise

        try:
            await self._client.delete_machine(machine_id, force=True)
        except TransportError as e:
            MACHINE_DESTROY_TOTAL.labels(outcome="remote_error").inc()
            logger.error(
                "Remote delete failed for tombstoned machine %s: %s",
                machine_id,
                e,
                extra={
                    "app": self._client.app_name,
                    "machine_id": machine_id,
                    "status_code": e.status_code,
                },
            )
            raise

        try:
            await self._store.update_records(
                {"machine_id": machine_id},
                {"lifecycle": LIFECYCLE_DESTROYED},
            )
        except RecordStoreError as e:
            MACHINE_DESTROY_TOTAL.labels(outcome="store_error").inc()
            logger.error(
                "Machine %s deleted remotely but its record is still pending: %s",
                machine_id,
                e,
                extra={"machine_id": machine_id},
            )
            raise

        MACHINE_DESTROY_TOTAL.labels(outcome="success").inc()

    async def list_active(self) -> list[MachineRecord]:
        """All non-tombstoned records. Local view only."""
        rows = await self._store.find_records({"deleted": False})
        return [MachineRecord.from_row(r) for r in rows]

    async def get_record(self, machine_id: str) -> MachineRecord | NotFoundType:
        row = await self._store.find_first({"machine_id": machine_id, "deleted": False})
        if row is None:
            return NOT_FOUND
        return MachineRecord.from_row(row)

    async def get_address(self, machine_id: str) -> str | NotFoundType:
        row = await self._store.find_first(
            {"machine_id": machine_id, "deleted": False},
            columns="ipv6",
        )
        if row is None:
            return NOT_FOUND
        return row.get("ipv6") or ""

    async def get_remote_status(self, machine_id: str) -> Machine | NotFoundType:
        """Ask the provider directly, bypassing the record store.

        A 404 is a normal answer (NOT_FOUND); any other failure raises.
        """
        try:
            payload = await self._client.get_machine(machine_id)
            return Machine.from_api(payload)
        except FlyNotFoundError:
            return NOT_FOUND
        except TransportError as e:
            logger.error(
                "Status query failed for machine %s: %s",
                machine_id,
                e,
                extra={
                    "app": self._client.app_name,
                    "machine_id": machine_id,
                    "status_code": e.status_code,
                },
            )
            raise
