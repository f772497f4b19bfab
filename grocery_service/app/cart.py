"""
In-memory cart for one user session.

The store owns a mapping of product id to quantity. A quantity of zero is
never stored: it means the product is not in the cart. Every mutation, and
every catalog change, republishes a ``CartSnapshot`` on ``state`` with the
lines joined to their catalog products. When the catalog cannot be reached
the last product seen for a line is used, or the line is left out.
"""
import itertools
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from .errors import StorageError
from .schemas import CartLine, CartSnapshot, Product
from .streams import StateStream

logger = structlog.get_logger(__name__)


class CartStore:
    def __init__(self, catalog, clock: Callable[[], datetime] = datetime.now):
        self.catalog = catalog
        self.clock = clock
        # product id -> (quantity, insertion sequence, added at)
        self._entries: Dict[str, Tuple[int, int, datetime]] = {}
        self._sequence = itertools.count()
        # Last product fetched per id, used while the catalog is unreachable.
        self._known: Dict[str, Product] = {}
        self.state = StateStream(CartSnapshot(), name="cart.state")
        self._unsubscribe = catalog.changes.subscribe(lambda _: self._publish(), replay=False)

    # ---------- Mutations ----------

    def add(self, product_id: str, qty: int = 1):
        """Add ``qty`` units (at least one). Re-adding moves the product to the front."""
        qty = max(1, int(qty))
        current = self._entries.get(product_id, (0, 0, None))[0]
        self._entries[product_id] = (current + qty, next(self._sequence), self.clock())
        logger.debug("cart_add", product_id=product_id, quantity=current + qty)
        self._publish()

    def set_quantity(self, product_id: str, qty: int):
        qty = int(qty)
        if qty <= 0:
            self.remove(product_id)
            return
        if product_id in self._entries:
            _, seq, added_at = self._entries[product_id]
            self._entries[product_id] = (qty, seq, added_at)
        else:
            self._entries[product_id] = (qty, next(self._sequence), self.clock())
        logger.debug("cart_set_quantity", product_id=product_id, quantity=qty)
        self._publish()

    def remove(self, product_id: str):
        self._known.pop(product_id, None)
        if self._entries.pop(product_id, None) is not None:
            logger.debug("cart_remove", product_id=product_id)
        self._publish()

    def clear(self):
        self._entries.clear()
        self._known.clear()
        logger.debug("cart_clear")
        self._publish()

    # ---------- Derived views ----------

    def _publish(self):
        self.state.set(self._snapshot())

    def _lookup(self, product_id: str) -> Optional[Product]:
        try:
            product = self.catalog.get_by_id(product_id)
        except StorageError as e:
            logger.warning("cart_catalog_unavailable", product_id=product_id, reason=e.reason)
            return self._known.get(product_id)
        if product is None:
            self._known.pop(product_id, None)
        else:
            self._known[product_id] = product
        return product

    def _snapshot(self) -> CartSnapshot:
        lines: List[CartLine] = []
        ordered = sorted(self._entries.items(), key=lambda kv: kv[1][1], reverse=True)
        for product_id, (quantity, _, added_at) in ordered:
            product = self._lookup(product_id)
            if product is None:
                # Unknown to the catalog: kept in the mapping, left out of the join.
                continue
            lines.append(CartLine(product=product, quantity=quantity, added_at=added_at))
        return CartSnapshot(
            lines=lines,
            unique_item_count=len(self._entries),
            total_quantity=sum(entry[0] for entry in self._entries.values()),
            total_price=round(sum(line.total_price for line in lines), 2),
            total_savings=round(sum(line.total_savings for line in lines), 2),
        )

    def quantities(self) -> Dict[str, int]:
        """Raw mapping of product id to quantity."""
        return {product_id: entry[0] for product_id, entry in self._entries.items()}

    def quantity_of(self, product_id: str) -> int:
        return self._entries.get(product_id, (0, 0, None))[0]

    def lines(self) -> List[CartLine]:
        return self.state.value.lines

    def unique_item_count(self) -> int:
        return self.state.value.unique_item_count

    def total_quantity(self) -> int:
        return self.state.value.total_quantity

    def total_price(self) -> float:
        return self.state.value.total_price

    def total_savings(self) -> float:
        return self.state.value.total_savings

    def close(self):
        self._unsubscribe()
