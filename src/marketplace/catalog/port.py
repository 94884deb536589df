"""Stock port — abstract interface to the catalog's inventory."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StockLevel:
    product_id: str
    requested: int
    available: int

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.available, 0)


class StockPort(ABC):
    """Inventory operations used by checkout and fulfillment.

    ``items`` is always a list of ``{"product_id": ..., "quantity": ...}``
    dicts with one entry per product.
    """

    @abstractmethod
    def validate_stock(self, items: list[dict]) -> list[StockLevel]:
        """Report availability for every requested product, in input order."""
        ...

    @abstractmethod
    def commit(self, items: list[dict]) -> None:
        """Remove sold quantities from stock once payment is confirmed."""
        ...

    @abstractmethod
    def restock(self, items: list[dict]) -> None:
        """Return quantities of a cancelled order to stock."""
        ...
