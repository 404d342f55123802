"""Machine service factory.

build_machine_service() is the single entry point for wiring the machine
plane. It validates settings, builds the HTTP clients and the record store,
and injects them into each component.

Usage:
    # Local development (in-memory records)
    service = build_machine_service(
        MachinePlaneSettings(fly_api_token="...", fly_app_name="my-app")
    )

    # Non-local (Supabase records)
    service = build_machine_service(MachinePlaneSettings.from_env())

    # Testing (full DI control)
    service = build_machine_service(settings, http_client=mock_http, record_store=store)
"""

from __future__ import annotations

import logging
import random
from typing import Awaitable, Callable

import httpx

from .db.machine_repo import SupabaseMachineRecordStore
from .db.supabase_client import SupabaseClient
from .inmemory import InMemoryMachineRecordStore
from .lifecycle.controller import LifecycleController
from .lifecycle.reconciler import MachineReconciler
from .protocols import MachineRecordStore
from .providers.fly_client import FlyMachinesClient
from .providers.regions import RegionCatalog
from .provisioning.provisioner import Provisioner
from .service import FlyMachineService
from .settings import MachinePlaneSettings

logger = logging.getLogger(__name__)


def build_machine_service(
    settings: MachinePlaneSettings,
    *,
    http_client: httpx.AsyncClient | None = None,
    record_store: MachineRecordStore | None = None,
    rng: random.Random | None = None,
) -> FlyMachineService:
    """Create a fully wired FlyMachineService.

    Args:
        settings: Machine plane settings.
        http_client: Shared httpx client for the Machines API and Supabase.
            When None, each remote client creates and owns its own, closed
            by ``FlyMachineService.aclose()``.
        record_store: Record store override. When None, local mode uses the
            in-memory store and other environments use Supabase.
        rng: Random source for fallback region selection.

    Raises:
        ValueError: If settings validation fails.
    """
    errors = settings.validate()
    if errors:
        raise ValueError(
            "Machine plane settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    closers: list[Callable[[], Awaitable[None]]] = []

    fly = FlyMachinesClient(
        api_token=settings.fly_api_token,
        app_name=settings.fly_app_name,
        base_url=settings.fly_base_url,
        http_client=http_client,
        timeout_seconds=settings.request_timeout_seconds,
    )
    closers.append(fly.aclose)

    store = record_store
    if store is None:
        if settings.is_local and not settings.supabase_url:
            store = InMemoryMachineRecordStore()
        else:
            supabase = SupabaseClient(
                supabase_url=settings.supabase_url,
                service_role_key=settings.supabase_service_role_key,
                http_client=http_client,
                timeout_seconds=settings.request_timeout_seconds,
            )
            closers.append(supabase.aclose)
            store = SupabaseMachineRecordStore(supabase, table=settings.machines_table)

    catalog = RegionCatalog(fly, min_capacity=settings.min_region_capacity, rng=rng)

    logger.info(
        "Machine service configured: app=%s environment=%s store=%s",
        settings.fly_app_name,
        settings.environment,
        type(store).__name__,
        extra={"app": settings.fly_app_name, "environment": settings.environment},
    )

    return FlyMachineService(
        catalog=catalog,
        provisioner=Provisioner(
            fly,
            catalog,
            store,
            retry_limit=settings.retry_limit,
            retry_delay=settings.retry_delay_seconds,
        ),
        controller=LifecycleController(fly, store),
        reconciler=MachineReconciler(fly, store),
        image_ref=settings.fly_image_ref,
        closers=tuple(closers),
    )
