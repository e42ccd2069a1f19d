"""Data-access layer: Supabase first, local SQLite cache second."""

from sessionflow.repositories.base_repository import BaseRepository, CacheMiss
from sessionflow.repositories.profile_repository import ProfileRepository

__all__ = ["BaseRepository", "CacheMiss", "ProfileRepository"]
