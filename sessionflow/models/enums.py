"""
Shared Enumerations for SessionFlow Models.

StrEnum values compare equal to their string equivalents, so
``state == "AUTHENTICATED"`` works in log filters and tests alike.
"""

from __future__ import annotations
from enum import StrEnum


class SessionState(StrEnum):
    """States of the authentication session flow.

    ``REGISTERING``, ``AUTHENTICATING`` and ``VERIFYING`` only exist
    while a provider call is in flight.  ``CODE_PENDING`` means a phone
    verification handle is live and waiting for the user's code.
    """

    ANONYMOUS = "ANONYMOUS"
    REGISTERING = "REGISTERING"
    AUTHENTICATING = "AUTHENTICATING"
    CODE_PENDING = "CODE_PENDING"
    VERIFYING = "VERIFYING"
    AUTHENTICATED = "AUTHENTICATED"


class PhoneOutcomeKind(StrEnum):
    """Tagged outcomes of a phone verification request."""

    AUTO_VERIFIED = "AUTO_VERIFIED"
    CODE_SENT = "CODE_SENT"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
