"""Machine lifecycle: destroy saga, lookups, audit and reconciliation."""

from .controller import LifecycleController
from .reconciler import AuditReport, MachineReconciler, ReconcileFailure, ReconcileReport

__all__ = [
    "AuditReport",
    "LifecycleController",
    "MachineReconciler",
    "ReconcileFailure",
    "ReconcileReport",
]
