"""Machine creation with retry and region fallback.

A create request goes to the region the caller asked for. Each non-success
HTTP status is followed by a fixed delay and a retry in a region picked at
random from the fallback catalog. The originally requested region is
dropped on every retry and regions already tried are not excluded. Once the
retry budget is spent the last status is surfaced as a ProvisionError.
With no fallback region to retry in, the failure is immediate (no delay).

On success the machine is recorded locally under the caller's owner token.
Record-store failures are not retried. The remote machine then exists
without a local record, and compensating for that is up to the caller.
"""

from __future__ import annotations

import asyncio
import logging

from ..db.errors import RecordStoreError
from ..models import CreateMachineOptions, Machine, MachineRecord
from ..observability.metrics import MACHINE_CREATE_ATTEMPTS_TOTAL, REGION_FALLBACKS_TOTAL
from ..protocols import MachineProvider, MachineRecordStore
from ..providers.fly_client import (
    FlyAPIError,
    NoFallbackRegionError,
    ProvisionError,
    TransportError,
)
from ..providers.regions import RegionCatalog

logger = logging.getLogger(__name__)

DEFAULT_RETRY_LIMIT = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0


class Provisioner:
    """Creates machines and writes their ownership records.

    Args:
        client: Machines API client scoped to the configured app.
        catalog: Fallback region catalog consulted on failure paths.
        store: Machine record store.
        retry_limit: Retries after the first attempt (total calls = 1 + limit).
        retry_delay: Fixed delay in seconds before each retry.
    """

    def __init__(
        self,
        client: MachineProvider,
        catalog: RegionCatalog,
        store: MachineRecordStore,
        *,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self._store = store
        self._retry_limit = retry_limit
        self._retry_delay = retry_delay

    async def create(self, options: CreateMachineOptions, owner_token: str) -> Machine:
        """Create a machine and record it for ``owner_token``.

        Raises:
            ProvisionError: Every attempt returned a non-success status.
            NoFallbackRegionError: A retry was due but no fallback region exists.
            TransportError: Network failure or unparseable response (not retried).
            RecordStoreError: The machine was created but could not be recorded.
        """
        machine = await self._create_remote(options)
        await self._record(machine, owner_token)
        return machine

    async def _create_remote(self, options: CreateMachineOptions) -> Machine:
        attempt = 0
        while True:
            try:
                payload = await self._client.create_machine(options.to_payload())
            except FlyAPIError as e:
                MACHINE_CREATE_ATTEMPTS_TOTAL.labels(outcome="http_error").inc()
                logger.error(
                    "Machine create failed: %s (attempt %d/%d, region=%s)",
                    e,
                    attempt + 1,
                    self._retry_limit + 1,
                    options.region,
                    extra={
                        "app": self._client.app_name,
                        "attempt": attempt,
                        "region": options.region,
                        "status_code": e.status_code,
                    },
                )
                if attempt >= self._retry_limit:
                    raise ProvisionError(
                        e.status_code, e.reason, attempts=attempt + 1
                    ) from e

                region = await self._fallback_region(e, attempt)
                await asyncio.sleep(self._retry_delay)
                REGION_FALLBACKS_TOTAL.labels(region=region).inc()
                logger.info(
                    "Retrying machine create in fallback region %s",
                    region,
                    extra={"app": self._client.app_name, "attempt": attempt + 1, "region": region},
                )
                options = options.with_region(region)
                attempt += 1
                continue
            except TransportError as e:
                MACHINE_CREATE_ATTEMPTS_TOTAL.labels(outcome="transport_error").inc()
                logger.error(
                    "Machine create transport failure: %s",
                    e,
                    extra={"app": self._client.app_name, "attempt": attempt, "region": options.region},
                )
                raise

            MACHINE_CREATE_ATTEMPTS_TOTAL.labels(outcome="success").inc()
            try:
                return Machine.from_api(payload)
            except TransportError as e:
                logger.error(
                    "Machine create returned an unusable payload: %s",
                    e,
                    extra={"app": self._client.app_name, "region": options.region},
                )
                raise

    async def _fallback_region(self, error: FlyAPIError, attempt: int) -> str:
        await self._catalog.ensure_loaded()
        try:
            return self._catalog.pick_fallback()
        except NoFallbackRegionError as e:
            logger.error(
                "No fallback region available after %s",
                error,
                extra={"app": self._client.app_name, "attempt": attempt},
            )
            raise NoFallbackRegionError(
                error.status_code, error.reason, attempts=attempt + 1
            ) from e

    async def _record(self, machine: Machine, owner_token: str) -> MachineRecord:
        record = MachineRecord.for_machine(machine, owner_token)
        try:
            await self._store.create_record(record.to_row())
        except RecordStoreError as e:
            logger.error(
                "Machine %s created but its record could not be written: %s",
                machine.id,
                e,
                extra={"app": self._client.app_name, "machine_id": machine.id},
            )
            raise
        return record
