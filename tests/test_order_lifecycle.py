"""Order lifecycle tests: creation, totals, status machine, access rules and watching."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from memory.customization_session import CustomizationSession
from models.order import Order, OrderStatus
from tailor_app.config import TailorConfig
from tailor_app.errors import (
    Forbidden,
    InvalidStatusTransition,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from tools.backend import SQLiteBackend
from tools.catalog_store import CatalogStore
from tools.design_uploads import LocalDesignUploadStore
from tools.identity import AuthUser
from tools.measurement_repository import MeasurementRepository
from tools.order_lifecycle import OrderLifecycleManager, OrderNumberGenerator

FIXED_NOW = datetime(2025, 1, 25, 10, 30, tzinfo=timezone.utc)

CUSTOMER_DETAILS = {
    "name": "Asha Rao",
    "email": "asha@example.com",
    "phone": "9876543210",
    "address": "12 MG Road, Pune 411001",
}


@pytest.fixture()
def design_store(tmp_path) -> LocalDesignUploadStore:
    return LocalDesignUploadStore(tmp_path / "designs")


@pytest.fixture()
def manager(backend: SQLiteBackend, design_store: LocalDesignUploadStore) -> OrderLifecycleManager:
    return OrderLifecycleManager(backend, design_store=design_store, clock=lambda: FIXED_NOW)


@pytest.fixture()
def ready_session(
    catalog: CatalogStore, backend: SQLiteBackend, customer: AuthUser, measurement_data: Dict[str, Any]
) -> CustomizationSession:
    profile = MeasurementRepository(backend).create(customer, measurement_data)
    session = CustomizationSession(catalog, owner_id=customer.id)
    session.select_product("p-2499")
    session.select_fabric("fx-15")
    session.set_style_option("collar", "spread")
    session.select_measurement_profile(profile)
    return session


def _place(manager: OrderLifecycleManager, session: CustomizationSession, user: AuthUser) -> Order:
    return manager.create_order(session.snapshot(), CUSTOMER_DETAILS, user, session=session)


def test_create_order_example_scenario(
    manager: OrderLifecycleManager, ready_session: CustomizationSession, customer: AuthUser
) -> None:
    order = _place(manager, ready_session, customer)

    assert order.total_amount == 3749
    assert order.status is OrderStatus.CONFIRMED
    assert order.order_number.startswith("ORD-")
    assert order.estimated_delivery == FIXED_NOW + timedelta(days=10)
    assert order.actual_delivery is None
    assert order.customer_email == "asha@example.com"
    assert len(order.items) == 1
    item = order.items[0]
    assert item.order_id == order.id
    assert item.unit_price == item.total_price == 3749
    assert item.customizations == {"collar": "Spread"}
    assert ready_session.state == "empty"


def test_order_total_is_sum_of_items(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    catalog: CatalogStore,
    customer: AuthUser,
) -> None:
    ready_session.set_quantity(2)
    first = ready_session.snapshot()
    second_session = CustomizationSession(catalog, owner_id=customer.id)
    second_session.select_product("p-2499")
    second_session.select_fabric("fx-10")
    second_session.select_measurement_profile(ready_session.measurement_profile)

    order = manager.create_order([first, second_session.snapshot()], CUSTOMER_DETAILS, customer)

    assert [item.total_price for item in order.items] == [7498, 2499]
    assert order.total_amount == sum(item.total_price for item in order.items) == 9997
    assert manager.items_total(order) == order.total_amount


def test_total_is_frozen_against_catalog_changes(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    backend: SQLiteBackend,
    customer: AuthUser,
) -> None:
    order = _place(manager, ready_session, customer)
    backend.update("products", {"id": "p-2499"}, {"base_price": 9999})

    assert manager.get_order(order.id, customer).total_amount == 3749


def test_create_order_failure_keeps_session(
    manager: OrderLifecycleManager, ready_session: CustomizationSession
) -> None:
    with pytest.raises(Unauthenticated):
        _place(manager, ready_session, None)
    with pytest.raises(ValidationError) as excinfo:
        manager.create_order(
            ready_session.snapshot(), {**CUSTOMER_DETAILS, "phone": "123"}, AuthUser(id="user-1", email="a@b.co")
        )
    assert "phone" in excinfo.value.fields
    assert ready_session.can_submit()


def test_measurement_of_another_user_is_rejected(
    manager: OrderLifecycleManager, ready_session: CustomizationSession, other_customer: AuthUser
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        manager.create_order(ready_session.snapshot(), CUSTOMER_DETAILS, other_customer)
    assert "measurement_profile" in excinfo.value.fields


def test_design_must_be_uploaded_first(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    design_store: LocalDesignUploadStore,
    customer: AuthUser,
) -> None:
    ready_session.attach_design("blob:http://localhost/123")
    with pytest.raises(ValidationError) as excinfo:
        _place(manager, ready_session, customer)
    assert "design_upload" in excinfo.value.fields

    reference = design_store.upload("sketch.png", b"\x89PNG fake", "image/png")
    ready_session.attach_design(reference)
    order = _place(manager, ready_session, customer)
    assert order.items[0].design_upload_url == reference


def test_order_numbers_strictly_increase() -> None:
    generator = OrderNumberGenerator(clock_ms=lambda: 1_700_000_000_000)
    numbers = [generator.next() for _ in range(3)]

    assert numbers == ["ORD-1700000000000", "ORD-1700000000001", "ORD-1700000000002"]


def test_update_status_to_delivered_changes_only_status_fields(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    customer: AuthUser,
    admin: AuthUser,
) -> None:
    order = _place(manager, ready_session, customer)
    for status in ("in-stitching", "shipped"):
        manager.update_status(order.id, status, admin)
    delivered = manager.update_status(order.id, "delivered", admin)

    assert delivered.status is OrderStatus.DELIVERED
    assert delivered.actual_delivery == FIXED_NOW
    before, after = order.to_dict(), delivered.to_dict()
    changed = {key for key in before if before[key] != after[key]}
    assert changed == {"status", "actual_delivery", "updated_at"}


def test_update_status_enforces_transitions_and_roles(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    customer: AuthUser,
    admin: AuthUser,
) -> None:
    order = _place(manager, ready_session, customer)

    with pytest.raises(Unauthenticated):
        manager.update_status(order.id, "in-stitching", None)
    with pytest.raises(Forbidden):
        manager.update_status(order.id, "in-stitching", customer)
    with pytest.raises(NotFound):
        manager.update_status("missing", "in-stitching", admin)
    with pytest.raises(InvalidStatusTransition):
        manager.update_status(order.id, "delivered", admin)
    with pytest.raises(ValidationError):
        manager.update_status(order.id, "lost", admin)

    cancelled = manager.update_status(order.id, "cancelled", admin)
    assert cancelled.status is OrderStatus.CANCELLED
    with pytest.raises(InvalidStatusTransition):
        manager.update_status(order.id, "confirmed", admin)


def test_update_status_rejects_status_changed_after_check(
    manager: OrderLifecycleManager,
    backend: SQLiteBackend,
    ready_session: CustomizationSession,
    customer: AuthUser,
    admin: AuthUser,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    order = _place(manager, ready_session, customer)
    read_order = backend.select_one

    def read_then_cancel_elsewhere(table: str, filters: Dict[str, Any]) -> Any:
        row = read_order(table, filters)
        if row is not None and row["status"] == "confirmed":
            backend.update("orders", {"id": row["id"]}, {"status": "cancelled"})
        return row

    monkeypatch.setattr(backend, "select_one", read_then_cancel_elsewhere)
    with pytest.raises(InvalidStatusTransition) as excinfo:
        manager.update_status(order.id, "in-stitching", admin)
    monkeypatch.undo()

    assert "cancelled" in excinfo.value.fields["status"]
    assert manager.get_order(order.id, admin).status is OrderStatus.CANCELLED


def test_permissive_mode_allows_free_reassignment(
    backend: SQLiteBackend, ready_session: CustomizationSession, customer: AuthUser, admin: AuthUser
) -> None:
    manager = OrderLifecycleManager(backend, config=TailorConfig(strict_status_transitions=False))
    order = _place(manager, ready_session, customer)

    assert manager.update_status(order.id, "delivered", admin).status is OrderStatus.DELIVERED
    assert manager.update_status(order.id, "confirmed", admin).status is OrderStatus.CONFIRMED


def test_list_orders_scoping(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    customer: AuthUser,
    other_customer: AuthUser,
    admin: AuthUser,
) -> None:
    first = manager.create_order(ready_session.snapshot(), CUSTOMER_DETAILS, customer)
    second = manager.create_order(ready_session.snapshot(), CUSTOMER_DETAILS, customer)

    mine = manager.list_orders(customer, user_id=customer.id)
    assert [order.id for order in mine] == [second.id, first.id]
    assert all(order.items for order in mine)
    assert len(manager.list_orders(admin)) == 2
    assert manager.list_orders(admin, user_id=other_customer.id) == []

    with pytest.raises(Forbidden):
        manager.list_orders(customer)
    with pytest.raises(Forbidden):
        manager.list_orders(other_customer, user_id=customer.id)
    with pytest.raises(NotFound):
        manager.get_order(first.id, other_customer)


def test_admin_stats(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    backend: SQLiteBackend,
    customer: AuthUser,
    admin: AuthUser,
) -> None:
    backend.insert("profiles", {"id": customer.id, "email": customer.email, "role": "customer"})
    first = manager.create_order(ready_session.snapshot(), CUSTOMER_DETAILS, customer)
    manager.create_order(ready_session.snapshot(), CUSTOMER_DETAILS, customer)
    for status in ("in-stitching", "shipped", "delivered"):
        manager.update_status(first.id, status, admin)

    stats = manager.admin_stats(admin)
    assert stats == {
        "total_orders": 2,
        "pending_orders": 1,
        "completed_orders": 1,
        "total_customers": 1,
        "total_revenue": 3749,
    }
    with pytest.raises(Forbidden):
        manager.admin_stats(customer)


def test_watch_orders_refetches_on_every_change(
    manager: OrderLifecycleManager,
    ready_session: CustomizationSession,
    customer: AuthUser,
    admin: AuthUser,
) -> None:
    seen: List[List[Order]] = []
    unsubscribe = manager.watch_orders(seen.append, customer, user_id=customer.id)

    order = _place(manager, ready_session, customer)
    assert seen, "creating an order should trigger a refresh"
    assert seen[-1][0].id == order.id and seen[-1][0].items

    manager.update_status(order.id, "in-stitching", admin)
    assert seen[-1][0].status is OrderStatus.IN_STITCHING

    calls = len(seen)
    unsubscribe()
    manager.update_status(order.id, "shipped", admin)
    assert len(seen) == calls


def test_progress_percent_helper() -> None:
    assert OrderLifecycleManager.progress_percent("shipped") == 75
    assert OrderLifecycleManager.progress_percent(OrderStatus.CANCELLED) == 0
