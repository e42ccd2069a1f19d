"""
Profile Service.

Writes the profile record right after an account is created and reads it
back for the landing screen.  Both paths degrade instead of failing: a
lost write is reported as a warning, a missing record as ``NOT_FOUND``,
and the landing screen falls back to a generic name.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sessionflow.config import AppConfig
from sessionflow.logger import StructuredLogger
from sessionflow.models.principal import Principal
from sessionflow.models.profile import ProfileErrorCode, ProfileRecord, ProfileResult
from sessionflow.providers.base import ProfileStore, ProfileStoreError


class ProfileService:
    """Best-effort access to profile records.

    Parameters
    ----------
    store:
        Any ``ProfileStore`` implementation.
    config:
        Application configuration (fallback display name).
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        store: ProfileStore,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        self._store = store
        self._config = config
        self._logger = logger

    def create_profile(
        self,
        principal: Principal,
        email: str,
        username: str,
    ) -> Optional[str]:
        """Save the profile of a freshly created principal.

        Returns ``None`` on success, or a warning for the UI when the
        store rejected the write.  Never raises: the principal is valid
        either way.
        """
        record = ProfileRecord(
            principal_id=principal.id,
            email=email,
            username=username,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self._store.put(principal.id, record)
        except Exception as exc:
            self._logger.warning(
                "Profile save failed for %s: %s", principal.id, exc,
                extra={
                    "event": "PROFILE_SAVE_FAILED",
                    "principal_id": principal.id,
                    "email": email,
                },
                exc_info=not isinstance(exc, ProfileStoreError),
            )
            return "Account created, but your profile could not be saved."
        return None

    def fetch_profile(self, principal_id: str) -> ProfileResult:
        """Look up the profile of *principal_id*."""
        try:
            record = self._store.query_by_principal_id(principal_id)
        except Exception as exc:
            self._logger.warning(
                "Profile lookup failed for %s: %s", principal_id, exc,
                extra={"event": "PROFILE_LOOKUP_FAILED", "principal_id": principal_id},
            )
            return ProfileResult(
                success=False,
                error_code=ProfileErrorCode.STORE_ERROR,
                error_message="Could not load the profile. Please try again later.",
            )

        if record is None:
            return ProfileResult(
                success=False,
                error_code=ProfileErrorCode.NOT_FOUND,
                error_message="No profile exists for this account.",
            )
        return ProfileResult(success=True, profile=record)

    def display_name(self, principal: Optional[Principal]) -> str:
        """Name for the landing screen greeting."""
        if principal is None:
            return self._config.FALLBACK_DISPLAY_NAME
        result = self.fetch_profile(principal.id)
        if result.profile is not None and result.profile.username:
            return result.profile.username
        return self._config.FALLBACK_DISPLAY_NAME
