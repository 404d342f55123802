"""Record store error hierarchy.

Every persistence failure surfaces as a ``RecordStoreError`` so callers can
treat the in-memory and Supabase backends the same way. These errors are
never retried by the provisioner or the lifecycle controller.
"""

from __future__ import annotations

from dataclasses import dataclass


class RecordStoreError(Exception):
    """Base class for machine record persistence failures."""


class RecordStoreConflictError(RecordStoreError):
    """A record with the same machine identifier already exists."""


@dataclass(frozen=True, slots=True)
class SupabaseError(RecordStoreError):
    """Base Supabase error for PostgREST requests.

    ``status_code`` is 0 when the request never produced a response.
    """

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def __str__(self) -> str:
        bits: list[str] = [f"SupabaseError(status={self.status_code})", self.message]
        if self.code:
            bits.append(f"code={self.code}")
        if self.details:
            bits.append(f"details={self.details}")
        return " ".join(bits)


class SupabaseAuthError(SupabaseError):
    """401/403 auth errors (bad key, RLS, expired session, etc.)."""


class SupabaseNotFoundError(SupabaseError):
    """404 errors (missing table/view/route)."""


class SupabaseConflictError(SupabaseError, RecordStoreConflictError):
    """409 conflicts (unique violations on machine_id)."""
