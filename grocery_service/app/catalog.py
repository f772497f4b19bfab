"""
Product catalog collaborators.

The cart only needs ``get_by_id`` and the ``changes`` stream. Live listings
come from ``get_all``, ``get_by_category`` and ``search`` and stay updated
until handed back to ``release``; ``find`` is a one-off listing for
request/response callers.
Two implementations are provided: an in-memory catalog (sample data, tests)
and a client for a remote catalog service.
"""
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import requests
import structlog

from . import config
from .errors import StorageError
from .schemas import Category, Product
from .streams import StateStream

logger = structlog.get_logger(__name__)


class InMemoryCatalog:
    def __init__(self, products: Iterable[Product] = (), categories: Iterable[Category] = ()):
        self._products: Dict[str, Product] = {p.id: p for p in products}
        self._categories = list(categories)
        self._lock = threading.Lock()
        self._live_streams: Dict[int, Callable[[], None]] = {}
        # Bumped on every catalog change so joined views can recompute.
        self.changes = StateStream(0, name="catalog.changes")

    def upsert(self, products: Iterable[Product]):
        with self._lock:
            for product in products:
                self._products[product.id] = product
        self.changes.set(self.changes.value + 1)

    def get_by_id(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def categories(self) -> List[Category]:
        return [c for c in self._categories if c.is_active]

    def _query(self, predicate: Callable[[Product], bool]) -> List[Product]:
        return [p for p in self._products.values() if predicate(p)]

    def find(self, category_id: str = None, query: str = None) -> List[Product]:
        """One-off listing: in-stock products, optionally by category and text."""
        needle = (query or "").lower()
        return self._query(
            lambda p: p.in_stock
            and (category_id is None or p.category == category_id)
            and (needle in p.name.lower() or needle in p.description.lower())
        )

    def _live(self, predicate: Callable[[Product], bool], name: str) -> StateStream:
        stream = StateStream(self._query(predicate), name=name)
        self._live_streams[id(stream)] = self.changes.subscribe(
            lambda _: stream.set(self._query(predicate)), replay=False
        )
        return stream

    def release(self, stream: StateStream):
        """Stop updating a stream returned by a live listing."""
        unsubscribe = self._live_streams.pop(id(stream), None)
        if unsubscribe is not None:
            unsubscribe()

    def get_all(self) -> StateStream:
        return self._live(lambda p: p.in_stock, "catalog.all")

    def get_by_category(self, category_id: str) -> StateStream:
        return self._live(lambda p: p.category == category_id and p.in_stock, f"catalog.category.{category_id}")

    def search(self, query: str) -> StateStream:
        needle = query.lower()
        return self._live(
            lambda p: needle in p.name.lower() or needle in p.description.lower(),
            f"catalog.search.{query}",
        )


class HttpCatalog:
    """
    Reads products from a remote catalog service.

    Streams are filled with one fetch when opened; ``refresh()`` fetches
    every open stream again and notifies the cart through ``changes``.
    """

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = (base_url or config.CATALOG_URL).rstrip("/")
        self.timeout = timeout or config.CATALOG_TIMEOUT_SECONDS
        self.changes = StateStream(0, name="catalog.changes")
        self._open: List[Tuple[StateStream, str, dict]] = []

    def _get(self, path: str, params: dict = None) -> requests.Response:
        try:
            response = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("catalog_unreachable", path=path, error=str(e))
            raise StorageError(f"Catalog service communication error: {e}") from e
        return response

    def _fetch_list(self, path: str, params: dict) -> List[Product]:
        response = self._get(path, params)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise StorageError(f"Catalog service returned HTTP {response.status_code}") from e
        return [Product(**item) for item in response.json()]

    def get_by_id(self, product_id: str) -> Optional[Product]:
        response = self._get(f"/api/v1/products/{product_id}")
        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise StorageError(f"Catalog service returned HTTP {response.status_code}") from e
        return Product(**response.json())

    def categories(self) -> List[Category]:
        response = self._get("/api/v1/categories")
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise StorageError(f"Catalog service returned HTTP {response.status_code}") from e
        return [Category(**item) for item in response.json()]

    def find(self, category_id: str = None, query: str = None) -> List[Product]:
        params = {}
        if category_id:
            params["category"] = category_id
        if query:
            params["q"] = query
        return self._fetch_list("/api/v1/products", params)

    def _live(self, path: str, params: dict, name: str) -> StateStream:
        stream = StateStream(self._fetch_list(path, params), name=name)
        self._open.append((stream, path, params))
        return stream

    def release(self, stream: StateStream):
        self._open = [entry for entry in self._open if entry[0] is not stream]

    def get_all(self) -> StateStream:
        return self._live("/api/v1/products", {}, "catalog.all")

    def get_by_category(self, category_id: str) -> StateStream:
        return self._live("/api/v1/products", {"category": category_id}, f"catalog.category.{category_id}")

    def search(self, query: str) -> StateStream:
        return self._live("/api/v1/products", {"q": query}, f"catalog.search.{query}")

    def refresh(self):
        for stream, path, params in self._open:
            stream.set(self._fetch_list(path, params))
        self.changes.set(self.changes.value + 1)


def make_catalog():
    if config.CATALOG_URL:
        return HttpCatalog()
    from .sample_data import sample_categories, sample_products
    return InMemoryCatalog(sample_products(), sample_categories())
