"""Extension registry adapters."""

from exttrust.adapters.base import BaseAdapter
from exttrust.adapters.marketplace import MarketplaceAdapter

__all__ = ["BaseAdapter", "MarketplaceAdapter"]
