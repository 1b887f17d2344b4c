"""
Key/value metadata repository.
"""

from typing import Optional

from sqlalchemy.orm import Session

from worktrace.db.repositories.base import BaseRepository
from worktrace.models.db import Metadata


class MetadataRepository(BaseRepository[Metadata]):
    """Repository for free-form store metadata."""

    def __init__(self, session: Session):
        super().__init__(Metadata, session)

    def get_value(self, key: str) -> Optional[str]:
        """Get a metadata value, or None if unset."""
        entry = self.session.get(Metadata, key)
        return entry.value if entry else None

    def set_value(self, key: str, value: str) -> Metadata:
        """Insert or replace a metadata value."""
        entry = self.session.get(Metadata, key)
        if entry is None:
            return self.create(key=key, value=value)
        entry.value = value
        self.session.flush()
        return entry
