"""In-memory stock adapter for development and testing."""

import threading

from marketplace.catalog.port import StockLevel, StockPort


class FakeStock(StockPort):
    """Stock levels held in a dict; unknown products have zero stock."""

    def __init__(self, levels: dict[str, int] | None = None):
        self._lock = threading.Lock()
        self.levels: dict[str, int] = dict(levels or {})
        self.calls: list[tuple[str, list[dict]]] = []
        self.fail_on: set[str] = set()

    def set_level(self, product_id: str, quantity: int):
        with self._lock:
            self.levels[str(product_id)] = quantity

    def configure(self, fail_on: set[str] | None = None):
        """Make the named operations ("validate", "commit", "restock") raise."""
        self.fail_on = set(fail_on or ())

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise ConnectionError(f"Stock service unavailable during {operation}")

    def validate_stock(self, items: list[dict]) -> list[StockLevel]:
        self._check("validate")
        self.calls.append(("validate", list(items)))
        with self._lock:
            return [
                StockLevel(
                    product_id=str(item["product_id"]),
                    requested=item["quantity"],
                    available=self.levels.get(str(item["product_id"]), 0),
                )
                for item in items
            ]

    def commit(self, items: list[dict]) -> None:
        self._check("commit")
        self.calls.append(("commit", list(items)))
        with self._lock:
            for item in items:
                key = str(item["product_id"])
                self.levels[key] = self.levels.get(key, 0) - item["quantity"]

    def restock(self, items: list[dict]) -> None:
        self._check("restock")
        self.calls.append(("restock", list(items)))
        with self._lock:
            for item in items:
                key = str(item["product_id"])
                self.levels[key] = self.levels.get(key, 0) + item["quantity"]

    def calls_for(self, operation: str) -> list[list[dict]]:
        return [items for name, items in self.calls if name == operation]

    def reset(self):
        with self._lock:
            self.levels.clear()
        self.calls.clear()
        self.fail_on = set()
