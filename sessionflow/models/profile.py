"""
Profile Models.

Denormalised user metadata written once after registration and read by
the landing screen to greet the user by name.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class ProfileRecord(BaseModel):
    """One profile row per principal (one-to-one on ``principal_id``)."""

    principal_id: str
    email: Optional[str] = None
    username: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileErrorCode(StrEnum):
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


class ProfileResult(BaseModel):
    """Result of a profile lookup.

    ``NOT_FOUND`` is expected when the profile write failed at
    registration; callers fall back to a generic display name.
    """

    success: bool
    profile: Optional[ProfileRecord] = None
    error_code: Optional[ProfileErrorCode] = None
    error_message: Optional[str] = None
