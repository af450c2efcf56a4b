"""Read-only catalog of products, fabrics and fabric eligibility."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from models.catalog import Fabric, Product
from models.taxonomy import SORT_OPTIONS, validate_category
from tailor_app.errors import NotFound, ValidationError
from tailor_app.logging_config import get_logger, log_event
from tools.backend import Backend
from tools.observability import instrument_operation

LOGGER = get_logger(__name__)

T = TypeVar("T")


def _is_active(row: Dict[str, Any]) -> bool:
    return bool(row.get("is_active", True))


def _parse_row(parse: Callable[[Dict[str, Any]], T], row: Dict[str, Any], table: str) -> Optional[T]:
    try:
        return parse(row)
    except (KeyError, TypeError, ValueError) as exc:
        log_event(LOGGER, logging.WARNING, "catalog_row_skipped", table=table, row_id=row.get("id"), reason=str(exc))
        return None


def _parse_active(parse: Callable[[Dict[str, Any]], T], rows: Iterable[Dict[str, Any]], table: str) -> List[T]:
    parsed = (_parse_row(parse, row, table) for row in rows if _is_active(row))
    return [item for item in parsed if item is not None]


class CatalogStore:
    """Queries over the ``products``, ``fabrics`` and ``product_fabrics`` tables.

    Inactive products and fabrics are invisible to every query.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    @instrument_operation("catalog.list_products")
    def list_products(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "name",
    ) -> List[Product]:
        """Return active products, by name unless ``sort`` asks for price order."""

        if sort not in SORT_OPTIONS:
            raise ValidationError("Unsupported sort order", {"sort": f"must be one of {SORT_OPTIONS}"})
        filters: Dict[str, Any] = {}
        if category and category.lower() != "all":
            try:
                filters["category"] = validate_category(category)
            except ValueError as exc:
                raise ValidationError("Unsupported category", {"category": str(exc)}) from exc

        products = _parse_active(Product.from_row, self.backend.select("products", filters), "products")
        if search:
            needle = search.strip().lower()
            products = [product for product in products if needle in product.name.lower()]

        # Secondary keys keep the order stable when prices or names tie.
        if sort == "price-low":
            products.sort(key=lambda p: (p.base_price, p.name, p.id))
        elif sort == "price-high":
            products.sort(key=lambda p: (-p.base_price, p.name, p.id))
        else:
            products.sort(key=lambda p: (p.name.lower(), p.id))
        return products

    def get_product(self, product_id: str) -> Product:
        row = self.backend.select_one("products", {"id": str(product_id)})
        product = _parse_row(Product.from_row, row, "products") if row and _is_active(row) else None
        if product is None:
            raise NotFound(f"Product {product_id} not found")
        return product

    def get_fabric(self, fabric_id: str) -> Fabric:
        row = self.backend.select_one("fabrics", {"id": str(fabric_id)})
        fabric = _parse_row(Fabric.from_row, row, "fabrics") if row and _is_active(row) else None
        if fabric is None:
            raise NotFound(f"Fabric {fabric_id} not found")
        return fabric

    @instrument_operation("catalog.list_fabrics_for")
    def list_fabrics_for(self, product_id: str) -> List[Fabric]:
        """Active fabrics eligible for ``product_id``, ordered by name."""

        product = self.get_product(product_id)
        links = self.backend.select("product_fabrics", {"product_id": product.id})
        fabric_ids = [str(link["fabric_id"]) for link in links]
        if not fabric_ids:
            log_event(LOGGER, logging.WARNING, "product_without_fabrics", product_id=product.id)
            return []
        rows = self.backend.select("fabrics", {"id": fabric_ids})
        fabrics = _parse_active(Fabric.from_row, rows, "fabrics")
        fabrics.sort(key=lambda f: (f.name.lower(), f.id))
        return fabrics

    def is_eligible(self, product_id: str, fabric_id: str) -> bool:
        return any(fabric.id == str(fabric_id) for fabric in self.list_fabrics_for(product_id))


__all__ = ["CatalogStore"]
