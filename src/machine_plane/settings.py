"""Machine plane configuration settings.

MachinePlaneSettings is the single configuration object accepted by
build_machine_service(). It is intentionally a plain dataclass (not
env-coupled) so tests can inject config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .db.machine_repo import DEFAULT_TABLE
from .providers.fly_client import DEFAULT_BASE_URL
from .providers.regions import DEFAULT_MIN_CAPACITY
from .provisioning.provisioner import DEFAULT_RETRY_DELAY_SECONDS, DEFAULT_RETRY_LIMIT


@dataclass(frozen=True, slots=True)
class MachinePlaneSettings:
    """Configuration for the machine plane.

    All fields have sensible defaults for local development except the Fly
    credentials. Non-local environments must also supply Supabase values.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Fly Machines API ───────────────────────────────────────────
    fly_api_token: str = ""
    """Bearer token for the Machines API. Never log this."""

    fly_app_name: str = ""
    """App every machine is created in."""

    fly_base_url: str = DEFAULT_BASE_URL

    fly_image_ref: str = ""
    """Default image reference handed out to callers building create options."""

    request_timeout_seconds: float = 30.0

    # ── Provisioning ───────────────────────────────────────────────
    retry_limit: int = DEFAULT_RETRY_LIMIT
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    min_region_capacity: int = DEFAULT_MIN_CAPACITY

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    """Supabase service-role key for PostgREST calls. Never log this."""

    machines_table: str = DEFAULT_TABLE

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.fly_api_token:
            errors.append(f"{self.environment}: fly_api_token is required")
        if not self.fly_app_name:
            errors.append(f"{self.environment}: fly_app_name is required")
        if self.retry_limit < 0:
            errors.append(f"{self.environment}: retry_limit must be >= 0")
        if self.retry_delay_seconds < 0:
            errors.append(f"{self.environment}: retry_delay_seconds must be >= 0")
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> MachinePlaneSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct MachinePlaneSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            fly_api_token=env.get("FLY_API_TOKEN", ""),
            fly_app_name=env.get("FLY_APP_NAME", ""),
            fly_base_url=env.get("FLY_API_BASE_URL", "") or DEFAULT_BASE_URL,
            fly_image_ref=env.get("FLY_IMAGE_REF", ""),
            request_timeout_seconds=float(env.get("FLY_REQUEST_TIMEOUT", "30")),
            retry_limit=int(env.get("MACHINE_CREATE_RETRY_LIMIT", str(DEFAULT_RETRY_LIMIT))),
            retry_delay_seconds=float(
                env.get("MACHINE_CREATE_RETRY_DELAY", str(DEFAULT_RETRY_DELAY_SECONDS))
            ),
            min_region_capacity=int(
                env.get("FALLBACK_REGION_MIN_CAPACITY", str(DEFAULT_MIN_CAPACITY))
            ),
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            machines_table=env.get("MACHINES_TABLE", "") or DEFAULT_TABLE,
        )
