"""Audit and reconciliation between local records and remote machines.

Local records and remote machines are allowed to diverge. This module makes
the divergence visible and finishes interrupted destroys:

- ``audit()`` is read-only. It reports active records whose machine is gone
  remotely, remote machines nobody recorded, and destroys stuck between
  the local tombstone and the remote delete. Nothing is repaired
  automatically; acting on an audit is an operator decision.
- ``reconcile_pending_deletes()`` completes the destroy saga for records
  left in ``pending_remote_delete``.

Usage::

    reconciler = MachineReconciler(client, store)
    report = await reconciler.audit()
    # report.orphaned_records: local rows with no remote machine
    sweep = await reconciler.reconcile_pending_deletes()
    # sweep.completed: machine ids moved to destroyed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..db.errors import RecordStoreError
from ..models import (
    LIFECYCLE_DESTROYED,
    LIFECYCLE_PENDING_REMOTE_DELETE,
    MachineRecord,
)
from ..protocols import MachineProvider, MachineRecordStore
from ..providers.fly_client import FlyNotFoundError, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconcileFailure:
    """A machine the sweep could not settle, with the reason."""

    machine_id: str
    error: str


@dataclass(frozen=True, slots=True)
class AuditReport:
    """Divergence between the record store and the provider.

    Attributes:
        orphaned_records: Active records whose machine the provider reports as 404.
        unrecorded_machines: Remote machine ids with no local record at all.
        pending_deletes: Records tombstoned but not yet confirmed deleted remotely.
        errors: Lookups that failed, so the machine could not be classified.
        audit_ts: Timestamp of the audit.
    """

    orphaned_records: tuple[MachineRecord, ...]
    unrecorded_machines: tuple[str, ...]
    pending_deletes: tuple[MachineRecord, ...]
    errors: tuple[ReconcileFailure, ...]
    audit_ts: datetime

    @property
    def is_consistent(self) -> bool:
        return not (
            self.orphaned_records
            or self.unrecorded_machines
            or self.pending_deletes
            or self.errors
        )


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    """Result of a pending-delete sweep.

    Attributes:
        completed: Machine ids whose records moved to ``destroyed``.
        already_gone: Subset of ``completed`` that were 404 remotely.
        failed: Machines left pending, with the error that stopped them.
    """

    completed: tuple[str, ...]
    already_gone: tuple[str, ...]
    failed: tuple[ReconcileFailure, ...]
    sweep_ts: datetime

    @property
    def total_scanned(self) -> int:
        return len(self.completed) + len(self.failed)


class MachineReconciler:
    """Audits and repairs record/remote divergence."""

    def __init__(self, client: MachineProvider, store: MachineRecordStore) -> None:
        self._client = client
        self._store = store

    async def _pending_records(self) -> list[MachineRecord]:
        rows = await self._store.find_records({"lifecycle": LIFECYCLE_PENDING_REMOTE_DELETE})
        return [MachineRecord.from_row(r) for r in rows]

    async def audit(self, *, now: datetime | None = None) -> AuditReport:
        """Compare local records with the provider without changing either.

        Raises:
            RecordStoreError: The record store could not be read.
            TransportError: The remote machine list could not be fetched.
        """
        active = [
            MachineRecord.from_row(r)
            for r in await self._store.find_records({"deleted": False})
        ]
        pending = await self._pending_records()
        all_rows = await self._store.find_records({})
        known_ids = {str(r.get("machine_id")) for r in all_rows}

        remote = await self._client.list_machines()
        remote_ids = {str(m["id"]) for m in remote if isinstance(m, dict) and m.get("id")}

        orphaned: list[MachineRecord] = []
        errors: list[ReconcileFailure] = []
        for record in active:
            if record.machine_id in remote_ids:
                continue
            # Not in the listing; confirm before calling it orphaned.
            try:
                await self._client.get_machine(record.machine_id)
            except FlyNotFoundError:
                orphaned.append(record)
            except TransportError as e:
                logger.warning(
                    "Audit could not check machine %s: %s",
                    record.machine_id,
                    e,
                    extra={"machine_id": record.machine_id, "status_code": e.status_code},
                )
                errors.append(ReconcileFailure(record.machine_id, str(e)))

        unrecorded = tuple(sorted(remote_ids - known_ids))

        report = AuditReport(
            orphaned_records=tuple(orphaned),
            unrecorded_machines=unrecorded,
            pending_deletes=tuple(pending),
            errors=tuple(errors),
            audit_ts=now or datetime.now(timezone.utc),
        )
        logger.info(
            "Audit finished: %d orphaned, %d unrecorded, %d pending deletes, %d errors",
            len(report.orphaned_records),
            len(report.unrecorded_machines),
            len(report.pending_deletes),
            len(report.errors),
            extra={"app": self._client.app_name},
        )
        return report

    async def reconcile_pending_deletes(self, *, now: datetime | None = None) -> ReconcileReport:
        """Finish destroys that stopped after the local tombstone.

        Machines already gone remotely are marked destroyed. Machines still
        present are force-deleted again first. Per-machine failures are
        reported and the sweep continues.
        """
        completed: list[str] = []
        already_gone: list[str] = []
        failed: list[ReconcileFailure] = []

        for record in await self._pending_records():
            machine_id = record.machine_id
            try:
                try:
                    await self._client.get_machine(machine_id)
                    await self._client.delete_machine(machine_id, force=True)
                except FlyNotFoundError:
                    # Gone before the lookup or between lookup and delete.
                    already_gone.append(machine_id)

                await self._store.update_records(
                    {"machine_id": machine_id},
                    {"lifecycle": LIFECYCLE_DESTROYED},
                )
            except (TransportError, RecordStoreError) as e:
                if machine_id in already_gone:
                    already_gone.remove(machine_id)
                logger.warning(
                    "Pending delete for machine %s not settled: %s",
                    machine_id,
                    e,
                    extra={"machine_id": machine_id},
                )
                failed.append(ReconcileFailure(machine_id, str(e)))
                continue

            completed.append(machine_id)

        report = ReconcileReport(
            completed=tuple(completed),
            already_gone=tuple(already_gone),
            failed=tuple(failed),
            sweep_ts=now or datetime.now(timezone.utc),
        )
        if report.total_scanned:
            logger.info(
                "Pending-delete sweep: %d completed, %d failed",
                len(report.completed),
                len(report.failed),
                extra={"app": self._client.app_name},
            )
        return report
