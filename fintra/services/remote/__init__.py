"""
Remote Data Service Package

Abstract interface for the backend plus the Supabase/PostgREST
implementation.
"""

from fintra.services.remote.interface import (
    NotFoundError,
    PermissionDeniedError,
    RemoteConnectionError,
    RemoteDataService,
    RemoteServiceError,
    RemoteTimeoutError,
)
from fintra.services.remote.supabase import (
    SupabaseClient,
    SupabaseDataService,
)

__all__ = [
    # Interface
    "RemoteDataService",
    # Exceptions
    "NotFoundError",
    "PermissionDeniedError",
    "RemoteConnectionError",
    "RemoteServiceError",
    "RemoteTimeoutError",
    # Supabase implementation
    "SupabaseClient",
    "SupabaseDataService",
]
