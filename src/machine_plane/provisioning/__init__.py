"""Machine provisioning."""

from .provisioner import DEFAULT_RETRY_DELAY_SECONDS, DEFAULT_RETRY_LIMIT, Provisioner

__all__ = [
    "DEFAULT_RETRY_DELAY_SECONDS",
    "DEFAULT_RETRY_LIMIT",
    "Provisioner",
]
