"""DB helpers for the machine record store (Supabase, etc.)."""

from .errors import (
    RecordStoreConflictError,
    RecordStoreError,
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)
from .machine_repo import SupabaseMachineRecordStore
from .supabase_client import PostgrestFilter, SupabaseClient

__all__ = [
    "PostgrestFilter",
    "RecordStoreConflictError",
    "RecordStoreError",
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseMachineRecordStore",
    "SupabaseNotFoundError",
]
