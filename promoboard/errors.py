"""Domain errors raised by the engagement, trending and feed services.

NotFound and Conflict are expected business outcomes; routers turn them into
4xx responses and they are never logged as errors. TransientStoreFailure is
raised only after the one internal retry has also failed.
"""

from datetime import datetime
from typing import Optional


class PromoBoardError(Exception):
    """Base class for all domain errors."""


class NotFound(PromoBoardError):
    """Raised when a listing (or other referenced entity) does not exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class Conflict(PromoBoardError):
    """Raised when an engagement action is refused (duplicate vote, cooldown)."""

    def __init__(self, reason: str, next_eligible_at: Optional[datetime] = None):
        self.reason = reason
        self.next_eligible_at = next_eligible_at
        super().__init__(reason)


class TransientStoreFailure(PromoBoardError):
    """Raised when the store is unreachable; callers may retry."""


class ValidationFailure(PromoBoardError):
    """Raised for malformed input that slipped past schema validation."""
