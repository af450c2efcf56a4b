"""Shared fixtures: a seeded SQLite backend, catalog and signed-in principals."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest

from fakes import FakeHTTP
from tools.backend import SQLiteBackend
from tools.catalog_store import CatalogStore
from tools.change_channel import LocalChangeChannel
from tools.identity import AuthUser


@pytest.fixture()
def channel() -> LocalChangeChannel:
    return LocalChangeChannel()


@pytest.fixture()
def backend(tmp_path: Path, channel: LocalChangeChannel) -> SQLiteBackend:
    store = SQLiteBackend(tmp_path / "etailor.db", channel=channel)
    # A product priced so that the 1.5 multiplier lands exactly on a half unit.
    store.insert(
        "products",
        {
            "id": "p-2499",
            "name": "Heritage Shirt",
            "category": "shirt",
            "base_price": 2499,
            "description": "Test shirt",
            "image_url": None,
            "is_active": True,
        },
    )
    store.insert("fabrics", {"id": "fx-10", "name": "Plain Cotton", "type": "Cotton", "price_multiplier": 1.0})
    store.insert("fabrics", {"id": "fx-15", "name": "Fine Wool", "type": "Wool", "price_multiplier": 1.5})
    store.insert(
        "fabrics",
        {"id": "fx-old", "name": "Retired Satin", "type": "Satin", "price_multiplier": 1.4, "is_active": False},
    )
    for fabric_id in ("fx-10", "fx-15", "fx-old"):
        store.insert("product_fabrics", {"product_id": "p-2499", "fabric_id": fabric_id})
    return store


@pytest.fixture()
def catalog(backend: SQLiteBackend) -> CatalogStore:
    return CatalogStore(backend)


@pytest.fixture()
def customer() -> AuthUser:
    return AuthUser(id="user-1", email="asha@example.com", role="customer", full_name="Asha")


@pytest.fixture()
def other_customer() -> AuthUser:
    return AuthUser(id="user-2", email="ravi@example.com", role="customer", full_name="Ravi")


@pytest.fixture()
def admin() -> AuthUser:
    return AuthUser(id="admin-1", email="admin@etailor.com", role="admin", full_name="Admin User")


@pytest.fixture()
def measurement_data() -> Dict[str, Any]:
    return {
        "nickname": "Wedding fit",
        "neck": 38,
        "chest": 98,
        "waist": 84,
        "hips": 96,
        "arm_length": 62,
        "height": 176,
        "shoulder": 45,
    }


@pytest.fixture()
def fake_http() -> FakeHTTP:
    return FakeHTTP()
