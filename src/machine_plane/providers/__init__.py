"""Machine providers for the machine plane."""

from .fly_client import (
    FlyAPIError,
    FlyMachinesClient,
    FlyNotFoundError,
    FlyTimeoutError,
    MachineParseError,
    NoFallbackRegionError,
    ProvisionError,
    TransportError,
)
from .regions import RegionCatalog

__all__ = [
    "FlyAPIError",
    "FlyMachinesClient",
    "FlyNotFoundError",
    "FlyTimeoutError",
    "MachineParseError",
    "NoFallbackRegionError",
    "ProvisionError",
    "RegionCatalog",
    "TransportError",
]
