"""Fallback region catalog.

Regions come from the platform discovery endpoint and are filtered to the
ones usable without a paid plan and with spare capacity. The list is loaded
lazily, at most once per catalog instance once it is non-empty, and is never
refreshed afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

from ..models import Region
from ..observability.metrics import REGION_CATALOG_LOADS_TOTAL
from .fly_client import FlyMachinesClient, NoFallbackRegionError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_MIN_CAPACITY = 100


class RegionCatalog:
    """Lazily loaded set of eligible fallback regions.

    Args:
        client: Machines API client used for discovery.
        min_capacity: Regions must report strictly more capacity than this.
        rng: Random source for fallback selection (seedable in tests).
    """

    def __init__(
        self,
        client: FlyMachinesClient,
        *,
        min_capacity: int = DEFAULT_MIN_CAPACITY,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._min_capacity = min_capacity
        self._rng = rng or random.Random()
        self._regions: tuple[Region, ...] = ()
        self._lock = asyncio.Lock()

    @property
    def regions(self) -> tuple[Region, ...]:
        return self._regions

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(r.code for r in self._regions)

    def _parse_region(self, entry: Any) -> Region | None:
        """Parse one discovery entry; malformed entries are skipped, not fatal."""
        if not isinstance(entry, dict) or not entry.get("code"):
            return None
        try:
            return Region.from_api(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Skipping malformed region entry %r: %s",
                entry.get("code"),
                e,
                extra={"app": self._client.app_name, "region": entry.get("code")},
            )
            return None

    def _is_eligible(self, region: Region) -> bool:
        return not region.requires_paid_plan and region.capacity > self._min_capacity

    async def ensure_loaded(self) -> None:
        """Fetch the region list if the cache is empty.

        Discovery failures degrade to an empty list; callers treat that as
        "no fallback available".
        """
        if self._regions:
            return

        async with self._lock:
            if self._regions:
                return
            try:
                raw = await self._client.list_regions()
            except TransportError as e:
                REGION_CATALOG_LOADS_TOTAL.labels(outcome="failed").inc()
                logger.warning(
                    "Region discovery failed, no fallback regions available: %s",
                    e,
                    extra={"app": self._client.app_name},
                )
                return

            parsed = [r for r in (self._parse_region(entry) for entry in raw) if r is not None]
            regions = tuple(r for r in parsed if self._is_eligible(r))

            self._regions = regions
            REGION_CATALOG_LOADS_TOTAL.labels(outcome="loaded").inc()
            logger.info(
                "Loaded %d fallback regions",
                len(regions),
                extra={"regions": list(self.codes)},
            )

    def require_fallbacks(self) -> tuple[str, ...]:
        """Return the cached region codes, or raise if there are none."""
        codes = self.codes
        if not codes:
            raise NoFallbackRegionError(0, "no fallback regions available")
        return codes

    def pick_fallback(self) -> str:
        """Pick one fallback region uniformly at random.

        Previously tried regions are not excluded.
        """
        return self._rng.choice(self.require_fallbacks())
