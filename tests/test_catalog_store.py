"""Catalog store tests against the seeded demo backend."""

import pytest

from tailor_app.errors import NotFound, ValidationError
from tools.backend import SQLiteBackend
from tools.catalog_store import CatalogStore


def test_list_products_is_active_only_and_sorted_by_name(catalog: CatalogStore, backend: SQLiteBackend) -> None:
    backend.insert(
        "products",
        {"id": "retired", "name": "Aardvark Coat", "category": "jacket", "base_price": 100, "is_active": False},
    )
    names = [product.name for product in catalog.list_products()]

    assert "Aardvark Coat" not in names
    assert names == sorted(names, key=str.lower)
    assert "Heritage Shirt" in names


def test_list_products_filters_searches_and_sorts(catalog: CatalogStore) -> None:
    shirts = catalog.list_products(category="Shirt")
    assert {product.category for product in shirts} == {"shirt"}
    assert catalog.list_products(category="all") == catalog.list_products()

    assert [p.name for p in catalog.list_products(search="DRESS")] == ["Classic Dress Shirt", "Evening Dress"]

    prices = [p.base_price for p in catalog.list_products(sort="price-low")]
    assert prices == sorted(prices)
    prices = [p.base_price for p in catalog.list_products(sort="price-high")]
    assert prices == sorted(prices, reverse=True)

    with pytest.raises(ValidationError):
        catalog.list_products(sort="newest")
    with pytest.raises(ValidationError):
        catalog.list_products(category="hats")


def test_get_product_and_fabric(catalog: CatalogStore) -> None:
    product = catalog.get_product("p-2499")
    assert product.base_price == 2499
    assert catalog.get_fabric("fx-15").price_multiplier == 1.5

    with pytest.raises(NotFound):
        catalog.get_product("missing")
    with pytest.raises(NotFound):
        catalog.get_fabric("fx-old")


def test_list_fabrics_for_returns_active_eligible_only(catalog: CatalogStore) -> None:
    fabric_ids = [fabric.id for fabric in catalog.list_fabrics_for("p-2499")]

    assert fabric_ids == ["fx-15", "fx-10"]  # ordered by name: Fine Wool, Plain Cotton
    assert [f.id for f in catalog.list_fabrics_for("2")] == ["f4", "f3"]
    with pytest.raises(NotFound):
        catalog.list_fabrics_for("missing")


def test_is_eligible(catalog: CatalogStore) -> None:
    assert catalog.is_eligible("p-2499", "fx-10")
    assert not catalog.is_eligible("p-2499", "fx-old")
    assert not catalog.is_eligible("p-2499", "f1")


def test_malformed_catalog_rows_are_skipped(catalog: CatalogStore, backend: SQLiteBackend) -> None:
    backend.insert("products", {"id": "odd", "name": "Odd Cape", "category": "cape", "base_price": 900})
    backend.insert("products", {"id": "free", "name": "Free Vest", "category": "shirt", "base_price": 0})
    backend.insert("fabrics", {"id": "fx-bad", "name": "Broken Linen", "type": "Linen", "price_multiplier": -1})
    backend.insert("product_fabrics", {"product_id": "p-2499", "fabric_id": "fx-bad"})

    names = [product.name for product in catalog.list_products()]
    assert "Odd Cape" not in names and "Free Vest" not in names
    assert "Heritage Shirt" in names
    with pytest.raises(NotFound):
        catalog.get_product("odd")

    assert [fabric.id for fabric in catalog.list_fabrics_for("p-2499")] == ["fx-15", "fx-10"]
    with pytest.raises(NotFound):
        catalog.get_fabric("fx-bad")
