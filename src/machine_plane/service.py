"""FlyMachineService: one object exposing the whole machine lifecycle.

Thin facade over the provisioner, the lifecycle controller and the
reconciler, so callers hold a single handle. It owns nothing global; build it
with ``build_machine_service()`` or pass the parts in directly.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from .lifecycle.controller import LifecycleController
from .lifecycle.reconciler import AuditReport, MachineReconciler, ReconcileReport
from .models import CreateMachineOptions, Machine, MachineRecord, NotFoundType
from .provisioning.provisioner import Provisioner
from .providers.regions import RegionCatalog

logger = logging.getLogger(__name__)


class FlyMachineService:
    """Create, destroy, look up and audit machines for one app."""

    def __init__(
        self,
        *,
        catalog: RegionCatalog,
        provisioner: Provisioner,
        controller: LifecycleController,
        reconciler: MachineReconciler,
        image_ref: str | None = None,
        closers: tuple[Callable[[], Awaitable[None]], ...] = (),
    ) -> None:
        self._catalog = catalog
        self._provisioner = provisioner
        self._controller = controller
        self._reconciler = reconciler
        self._image_ref = image_ref or None
        self._closers = closers

    @property
    def catalog(self) -> RegionCatalog:
        return self._catalog

    async def warm(self) -> None:
        """Preload fallback regions so the first failed create doesn't pay for discovery."""
        await self._catalog.ensure_loaded()

    async def create_machine(self, options: CreateMachineOptions, token: str) -> Machine:
        return await self._provisioner.create(options, token)

    async def destroy_machine(self, machine_id: str) -> None:
        await self._controller.destroy(machine_id)

    async def list_machines(self) -> list[MachineRecord]:
        return await self._controller.list_active()

    async def get_machine(self, machine_id: str) -> MachineRecord | NotFoundType:
        return await self._controller.get_record(machine_id)

    async def get_machine_ip(self, machine_id: str) -> str | NotFoundType:
        return await self._controller.get_address(machine_id)

    async def get_machine_status(self, machine_id: str) -> Machine | NotFoundType:
        return await self._controller.get_remote_status(machine_id)

    def get_image_ref(self) -> str | None:
        return self._image_ref

    async def audit(self) -> AuditReport:
        return await self._reconciler.audit()

    async def reconcile(self) -> ReconcileReport:
        return await self._reconciler.reconcile_pending_deletes()

    async def aclose(self) -> None:
        """Close HTTP clients the factory created for this service."""
        for close in self._closers:
            await close()

    async def __aenter__(self) -> FlyMachineService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
