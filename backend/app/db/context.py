"""Request context for tenancy enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Request context containing the caller's identity.

    Used to enforce tenancy boundaries in all database and vector index
    operations.
    """

    user_id: UUID
    external_id: str = ""
