"""
Module: billing_kernel.selectors.base
Responsibility: Abstract base class for the read-only query selectors that
    feed the calculation engines.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/dtos.  Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Read-only access: no add/delete/flush/commit on the session.
    - DTO return convention: selectors return frozen DTOs, not ORM rows.
    - Session ownership: the caller owns the session and closes it.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.exceptions import InvalidFilterError

ModelType = TypeVar("ModelType", bound=Base)


def parse_identifier(value: str | UUID, field: str) -> UUID:
    """Parse an identifier filter, raising InvalidFilterError if malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidFilterError(field, value, "not a valid identifier") from None


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _as_uuid(value: str | UUID, field: str) -> UUID:
        return parse_identifier(value, field)
