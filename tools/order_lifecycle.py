"""Order creation from customization snapshots and the delivery-status lifecycle."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from logic.order_status import check_transition, progress_percent
from logic.pricing import order_total
from logic.validation import CustomerDetails, validate_payload
from memory.customization_session import CustomizationSession, SessionSnapshot
from models.order import Order, OrderItem, OrderStatus
from models.timestamps import format_timestamp, utc_now
from tailor_app.config import TailorConfig
from tailor_app.errors import (
    Forbidden,
    IncompleteSession,
    InvalidStatusTransition,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from tailor_app.logging_config import get_logger, log_event
from tools.backend import Backend
from tools.change_channel import ChangeChannel, ChangeEvent, Subscription
from tools.design_uploads import DesignUploadStore
from tools.identity import AuthUser
from tools.observability import instrument_operation

LOGGER = get_logger(__name__)

ORDERS = "orders"
ORDER_ITEMS = "order_items"
PENDING_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.IN_STITCHING)

OrdersCallback = Callable[[List[Order]], None]


class OrderNumberGenerator:
    """Issues ``ORD-<epoch-ms>`` numbers that strictly increase within a process."""

    def __init__(self, clock_ms: Callable[[], int] = lambda: int(time.time() * 1000)) -> None:
        self._clock_ms = clock_ms
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            value = max(self._clock_ms(), self._last + 1)
            self._last = value
        return f"ORD-{value}"


def _require_user(actor: Optional[AuthUser]) -> AuthUser:
    if actor is None:
        raise Unauthenticated("Sign in to continue")
    return actor


def _require_admin(actor: Optional[AuthUser]) -> AuthUser:
    user = _require_user(actor)
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


class OrderLifecycleManager:
    """Creates immutable orders and moves them through the status machine.

    Only ``status``, ``updated_at`` and ``actual_delivery`` ever change after an
    order is written; orders are never deleted.
    """

    def __init__(
        self,
        backend: Backend,
        channel: Optional[ChangeChannel] = None,
        config: Optional[TailorConfig] = None,
        design_store: Optional[DesignUploadStore] = None,
        clock: Callable[[], datetime] = utc_now,
        order_numbers: Optional[OrderNumberGenerator] = None,
    ) -> None:
        self.backend = backend
        self.channel = channel or backend.channel
        self.config = config or TailorConfig()
        self.design_store = design_store
        self.clock = clock
        self.order_numbers = order_numbers or OrderNumberGenerator()

    def _check_design(self, reference: Optional[str]) -> None:
        if reference is None:
            return
        if self.design_store is None or not self.design_store.exists(reference):
            raise ValidationError(
                "Design must be uploaded before the order is placed",
                {"design_upload": "Design file was not found in storage"},
            )

    @staticmethod
    def _item_row(snapshot: SessionSnapshot) -> Dict[str, Any]:
        return {
            "product_id": snapshot.product.id,
            "fabric_id": snapshot.fabric.id,
            "measurement_id": snapshot.measurement_profile.id,
            "quantity": snapshot.quantity,
            "unit_price": snapshot.unit_price,
            "total_price": snapshot.total_price,
            "customizations": snapshot.customizations(),
            "design_upload_url": snapshot.design_reference,
        }

    @instrument_operation("orders.create")
    def create_order(
        self,
        snapshot: Union[SessionSnapshot, Sequence[SessionSnapshot]],
        customer: Union[CustomerDetails, Mapping[str, Any]],
        user: Optional[AuthUser],
        session: Optional[CustomizationSession] = None,
    ) -> Order:
        """Persist one order with an item per snapshot, then reset ``session``.

        The total is the sum of the snapshots' frozen prices. The session is
        only reset after the order and all of its items have been written.
        """

        owner = _require_user(user)
        if isinstance(customer, CustomerDetails):
            details = customer
        else:
            details = validate_payload(CustomerDetails, customer, "Customer details are invalid")

        snapshots = [snapshot] if isinstance(snapshot, SessionSnapshot) else list(snapshot)
        if not snapshots:
            raise IncompleteSession(["product", "fabric", "measurement_profile"])
        for item in snapshots:
            if item.measurement_profile.user_id != owner.id:
                raise ValidationError(
                    "Measurement profile belongs to another account",
                    {"measurement_profile": "Profile is not available"},
                )
            self._check_design(item.design_reference)

        order_date = self.clock()
        item_rows = [self._item_row(item) for item in snapshots]
        order_row = {
            "user_id": owner.id,
            "order_number": self.order_numbers.next(),
            "status": OrderStatus.CONFIRMED.value,
            "total_amount": sum(row["total_price"] for row in item_rows),
            "customer_name": details.name,
            "customer_email": details.email,
            "customer_phone": details.phone,
            "shipping_address": details.address,
            "notes": details.notes,
            "order_date": format_timestamp(order_date),
            "estimated_delivery": format_timestamp(
                order_date + timedelta(days=self.config.lead_time_days)
            ),
            "actual_delivery": None,
        }
        parent, children = self.backend.insert_with_children(
            ORDERS, order_row, ORDER_ITEMS, item_rows, "order_id"
        )
        order = Order.from_row(parent, tuple(OrderItem.from_row(row) for row in children))
        log_event(
            LOGGER,
            logging.INFO,
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            user_id=owner.id,
            total_amount=order.total_amount,
            items=len(order.items),
        )
        if session is not None:
            session.reset()
        return order

    def _items_by_order(self, order_ids: Iterable[str]) -> Dict[str, List[OrderItem]]:
        ids = list(order_ids)
        grouped: Dict[str, List[OrderItem]] = {order_id: [] for order_id in ids}
        if not ids:
            return grouped
        for row in self.backend.select(ORDER_ITEMS, {"order_id": ids}, order_by="created_at"):
            item = OrderItem.from_row(row)
            grouped.setdefault(item.order_id, []).append(item)
        return grouped

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[Order]:
        items = self._items_by_order(str(row["id"]) for row in rows)
        return [Order.from_row(row, tuple(items.get(str(row["id"]), []))) for row in rows]

    def get_order(self, order_id: str, actor: Optional[AuthUser]) -> Order:
        user = _require_user(actor)
        filters: Dict[str, Any] = {"id": str(order_id)}
        if not user.is_admin:
            filters["user_id"] = user.id
        row = self.backend.select_one(ORDERS, filters)
        if row is None:
            raise NotFound(f"Order {order_id} not found")
        return self._hydrate([row])[0]

    @instrument_operation("orders.list")
    def list_orders(self, actor: Optional[AuthUser], user_id: Optional[str] = None) -> List[Order]:
        """Newest-first orders with items; all orders when ``user_id`` is omitted (admin only)."""

        user = _require_user(actor)
        if user_id is None or str(user_id) != user.id:
            _require_admin(user)
        filters = {"user_id": str(user_id)} if user_id is not None else None
        rows = self.backend.select(ORDERS, filters, order_by="order_date", descending=True)
        return self._hydrate(rows)

    @instrument_operation("orders.update_status")
    def update_status(
        self, order_id: str, new_status: Union[str, OrderStatus], actor: Optional[AuthUser]
    ) -> Order:
        admin = _require_admin(actor)
        try:
            target = OrderStatus.parse(new_status)
        except ValueError as exc:
            raise ValidationError(str(exc), {"status": "Unknown status"}) from exc

        row = self.backend.select_one(ORDERS, {"id": str(order_id)})
        if row is None:
            raise NotFound(f"Order {order_id} not found")
        current = OrderStatus.parse(row["status"])
        check_transition(current, target, strict=self.config.strict_status_transitions)

        now = format_timestamp(self.clock())
        changes: Dict[str, Any] = {"status": target.value, "updated_at": now}
        if target is OrderStatus.DELIVERED:
            changes["actual_delivery"] = now
        # Only applies while the order still holds the status checked above.
        updated = self.backend.update(ORDERS, {"id": str(order_id), "status": current.value}, changes)
        if not updated:
            latest = self.backend.select_one(ORDERS, {"id": str(order_id)})
            if latest is None:
                raise NotFound(f"Order {order_id} not found")
            raise InvalidStatusTransition(
                f"Order {order_id} moved to {latest['status']} while updating to {target.value}",
                {"status": f"order is now {latest['status']}"},
            )
        log_event(
            LOGGER,
            logging.INFO,
            "order_status_changed",
            order_id=str(order_id),
            from_status=current.value,
            to_status=target.value,
            actor_id=admin.id,
        )
        return self._hydrate([updated[0]])[0]

    @instrument_operation("orders.admin_stats")
    def admin_stats(self, actor: Optional[AuthUser]) -> Dict[str, int]:
        _require_admin(actor)
        orders = [Order.from_row(row) for row in self.backend.select(ORDERS)]
        delivered = [order for order in orders if order.status is OrderStatus.DELIVERED]
        customers = self.backend.select("profiles", {"role": "customer"})
        return {
            "total_orders": len(orders),
            "pending_orders": sum(1 for order in orders if order.status in PENDING_STATUSES),
            "completed_orders": len(delivered),
            "total_customers": len(customers),
            "total_revenue": sum(order.total_amount for order in delivered),
        }

    @staticmethod
    def progress_percent(status: Union[str, OrderStatus]) -> int:
        return progress_percent(OrderStatus.parse(status))

    @staticmethod
    def items_total(order: Order) -> int:
        return order_total(order.items)

    def watch_orders(
        self,
        callback: OrdersCallback,
        actor: Optional[AuthUser],
        user_id: Optional[str] = None,
    ) -> Callable[[], None]:
        """Call ``callback`` with a freshly listed order set after every order change.

        Change events are treated purely as invalidation signals: their payload
        is ignored and the whole list is fetched again. Returns an unsubscribe
        function.
        """

        user = _require_user(actor)
        if user_id is None or str(user_id) != user.id:
            _require_admin(user)
        if self.channel is None:
            raise ValueError("No change channel configured for order updates")

        def refresh(event: ChangeEvent) -> None:
            log_event(LOGGER, logging.DEBUG, "orders_invalidated", table=event.table, event_type=event.event_type)
            callback(self.list_orders(user, user_id))

        subscriptions: List[Subscription] = [
            self.channel.subscribe(ORDERS, refresh),
            self.channel.subscribe(ORDER_ITEMS, refresh),
        ]

        def unsubscribe() -> None:
            for subscription in subscriptions:
                subscription.unsubscribe()

        return unsubscribe


__all__ = ["OrderLifecycleManager", "OrderNumberGenerator", "PENDING_STATUSES"]
