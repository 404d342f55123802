"""Domain types shared by the provisioner, the lifecycle controller and the stores.

``Machine`` mirrors what the Machines API reports and is remote-authoritative.
``MachineRecord`` is the local ownership row: created once on successful
provisioning, never physically removed, only ever mutated to tombstone it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Literal, Mapping

# Record lifecycle values. ``deleted`` is True for every state except "active".
LIFECYCLE_ACTIVE = "active"
LIFECYCLE_PENDING_REMOTE_DELETE = "pending_remote_delete"
LIFECYCLE_DESTROYED = "destroyed"

RecordLifecycle = Literal["active", "pending_remote_delete", "destroyed"]


class NotFoundType(enum.Enum):
    """Explicit "no such machine" result.

    Returned (never raised) by point lookups and the remote status query.
    Falsy, so ``if not result`` reads naturally at call sites.
    """

    NOT_FOUND = "not_found"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = NotFoundType.NOT_FOUND


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class Region:
    """A deployment location advertised by the platform discovery endpoint."""

    code: str
    name: str = ""
    requires_paid_plan: bool = False
    capacity: int = 0

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Region:
        return cls(
            code=str(payload["code"]),
            name=str(payload.get("name") or ""),
            requires_paid_plan=bool(payload.get("requires_paid_plan", False)),
            capacity=int(payload.get("capacity") or 0),
        )


@dataclass(frozen=True, slots=True)
class CreateMachineOptions:
    """Caller-supplied creation options.

    ``guest`` is the provider's resource guest spec (cpus, memory_mb, ...).
    """

    name: str | None = None
    region: str | None = None
    image: str | None = None
    env: Mapping[str, str] | None = None
    services: tuple[Mapping[str, Any], ...] | None = None
    mounts: tuple[Mapping[str, Any], ...] | None = None
    guest: Mapping[str, Any] | None = None

    def with_region(self, region: str) -> CreateMachineOptions:
        return replace(self, region=region)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body for ``POST /apps/{app}/machines``."""
        config: dict[str, Any] = {}
        if self.image is not None:
            config["image"] = self.image
        if self.env is not None:
            config["env"] = dict(self.env)
        if self.services is not None:
            config["services"] = [dict(s) for s in self.services]
        if self.mounts is not None:
            config["mounts"] = [dict(m) for m in self.mounts]
        if self.guest is not None:
            config["guest"] = dict(self.guest)

        payload: dict[str, Any] = {"config": config}
        if self.name is not None:
            payload["name"] = self.name
        if self.region is not None:
            payload["region"] = self.region
        return payload


@dataclass(frozen=True, slots=True)
class Machine:
    """Remote machine as reported by the provider."""

    id: str
    name: str = ""
    region: str = ""
    private_ip: str | None = None
    created_at: str | None = None
    state: str = "unknown"
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), compare=False)

    @classmethod
    def from_api(cls, payload: Any) -> Machine:
        """Parse an API payload.

        Raises:
            MachineParseError: If the payload is not an object with an ``id``.
        """
        from .providers.fly_client import MachineParseError

        if not isinstance(payload, Mapping) or not payload.get("id"):
            raise MachineParseError(f"machine payload has no id: {str(payload)[:200]}")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or ""),
            region=str(payload.get("region") or ""),
            private_ip=payload.get("private_ip") or None,
            created_at=payload.get("created_at") or None,
            state=str(payload.get("state") or "unknown"),
            raw=MappingProxyType(dict(payload)),
        )


@dataclass(frozen=True, slots=True)
class MachineRecord:
    """Local ownership row for a provisioned machine."""

    token: str
    machine_id: str
    ipv6: str
    deleted: bool
    created_at: str
    lifecycle: RecordLifecycle = LIFECYCLE_ACTIVE

    @classmethod
    def for_machine(cls, machine: Machine, token: str) -> MachineRecord:
        return cls(
            token=token,
            machine_id=machine.id,
            ipv6=machine.private_ip or "",
            deleted=False,
            created_at=machine.created_at or utc_now_iso(),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> MachineRecord:
        deleted = bool(row.get("deleted", False))
        lifecycle = row.get("lifecycle") or (
            LIFECYCLE_DESTROYED if deleted else LIFECYCLE_ACTIVE
        )
        return cls(
            token=str(row.get("token") or ""),
            machine_id=str(row["machine_id"]),
            ipv6=str(row.get("ipv6") or ""),
            deleted=deleted,
            created_at=str(row.get("created_at") or ""),
            lifecycle=lifecycle,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "machine_id": self.machine_id,
            "ipv6": self.ipv6,
            "deleted": self.deleted,
            "created_at": self.created_at,
            "lifecycle": self.lifecycle,
        }
