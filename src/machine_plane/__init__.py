"""Machine plane: provisioning and lifecycle management for remote machines."""

from .factory import build_machine_service
from .models import (
    NOT_FOUND,
    CreateMachineOptions,
    Machine,
    MachineRecord,
    NotFoundType,
    Region,
)
from .service import FlyMachineService
from .settings import MachinePlaneSettings

__all__ = [
    "NOT_FOUND",
    "CreateMachineOptions",
    "FlyMachineService",
    "Machine",
    "MachinePlaneSettings",
    "MachineRecord",
    "NotFoundType",
    "Region",
    "build_machine_service",
]
