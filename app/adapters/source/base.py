from abc import ABC, abstractmethod

from app.schemas.users import UserRecord


class AbstractRecordSource(ABC):
    """Interface for the backing store that the cache fronts."""

    @abstractmethod
    async def fetch(self, key: str) -> UserRecord | None:
        """Look up a record by exact key.

        Args:
            key: Record identifier as received from the client.

        Returns:
            UserRecord if found, or None when the key has no record.

        Raises:
            Exception: Any failure of the underlying store. Callers wrap it
                into ``SourceAppError``.
        """
        ...

    @abstractmethod
    async def create(self, name: str, email: str) -> UserRecord:
        """Insert a new record and return it with its assigned identifier."""
        ...
