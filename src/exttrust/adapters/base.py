"""Abstract base class for extension registry adapters."""

from abc import ABC, abstractmethod

from exttrust.models.schemas import ExtensionRecord


class BaseAdapter(ABC):
    """Base class for extension registry adapters.

    Each adapter normalizes data from a specific registry into an
    ExtensionRecord. Lookups never raise for upstream failures; the
    failure is carried in the record's ``error`` field instead.
    """

    @property
    @abstractmethod
    def registry(self) -> str:
        """Return the name of the registry this adapter handles."""
        ...

    @abstractmethod
    async def fetch_extension(self, extension_id: str) -> ExtensionRecord:
        """Fetch details for a single extension.

        Args:
            extension_id: Registry identifier, e.g. ``publisher.extension``.

        Returns:
            ExtensionRecord, with ``error`` set if the lookup failed.
        """
        ...
