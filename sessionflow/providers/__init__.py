"""Identity provider contracts and the Supabase implementation."""

from sessionflow.providers.base import (
    IdentityProvider,
    IdentityProviderError,
    ProfileStore,
    ProfileStoreError,
)
from sessionflow.providers.supabase_identity import SupabaseIdentityProvider

__all__ = [
    "IdentityProvider",
    "IdentityProviderError",
    "ProfileStore",
    "ProfileStoreError",
    "SupabaseIdentityProvider",
]
