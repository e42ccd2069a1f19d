"""
Principal and Phone Verification Models.

``Principal`` is the identity reported by the identity provider.
``VerificationHandle`` correlates a sent phone code with the code the
user types in later; it is consumed exactly once.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Principal(BaseModel):
    """An authenticated identity.

    Read-only to the session flow: it is created by the provider on
    registration or sign-in and dropped locally on sign-out.
    """

    id: str
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = {"from_attributes": True, "frozen": True}


class VerificationHandle(BaseModel):
    """Server-issued token for a pending phone verification."""

    verification_id: str
    phone: str
    issued_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        """Seconds elapsed since the code was sent."""
        return ((now or _utcnow()) - self.issued_at).total_seconds()
