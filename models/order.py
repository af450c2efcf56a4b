"""Order and order item data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from models.timestamps import format_timestamp, parse_timestamp


class OrderStatus(str, Enum):
    """Delivery lifecycle of a submitted order."""

    CONFIRMED = "confirmed"
    IN_STITCHING = "in-stitching"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: "str | OrderStatus") -> "OrderStatus":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(key)
        except ValueError:
            allowed = [status.value for status in cls]
            raise ValueError(f"Unknown order status '{value}'. Allowed: {allowed}") from None


@dataclass(frozen=True)
class OrderItem:
    """One tailored garment within an order, frozen at submission."""

    id: str
    order_id: str
    product_id: str
    fabric_id: str
    measurement_id: str
    quantity: int
    unit_price: int
    total_price: int
    customizations: Dict[str, str] = field(default_factory=dict)
    design_upload_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "OrderItem":
        return cls(
            id=str(row["id"]),
            order_id=str(row["order_id"]),
            product_id=str(row["product_id"]),
            fabric_id=str(row["fabric_id"]),
            measurement_id=str(row["measurement_id"]),
            quantity=int(row.get("quantity") or 1),
            unit_price=int(row["unit_price"]),
            total_price=int(row["total_price"]),
            customizations=dict(row.get("customizations") or {}),
            design_upload_url=row.get("design_upload_url"),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "fabric_id": self.fabric_id,
            "measurement_id": self.measurement_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "customizations": dict(self.customizations),
            "design_upload_url": self.design_upload_url,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class Order:
    """A submitted order. Only the status fields change after creation."""

    id: str
    user_id: str
    order_number: str
    status: OrderStatus
    total_amount: int
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    order_date: datetime
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: Tuple[OrderItem, ...] = ()

    @classmethod
    def from_row(cls, row: Dict[str, Any], items: Tuple[OrderItem, ...] = ()) -> "Order":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            order_number=str(row["order_number"]),
            status=OrderStatus.parse(row.get("status") or OrderStatus.CONFIRMED),
            total_amount=int(row["total_amount"]),
            customer_name=str(row.get("customer_name") or ""),
            customer_email=str(row.get("customer_email") or ""),
            customer_phone=str(row.get("customer_phone") or ""),
            shipping_address=str(row.get("shipping_address") or ""),
            order_date=parse_timestamp(row.get("order_date") or row.get("created_at")),
            estimated_delivery=parse_timestamp(row.get("estimated_delivery")),
            actual_delivery=parse_timestamp(row.get("actual_delivery")),
            notes=row.get("notes"),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
            items=tuple(items),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "status": self.status.value,
            "total_amount": self.total_amount,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "shipping_address": self.shipping_address,
            "notes": self.notes,
            "order_date": format_timestamp(self.order_date),
            "estimated_delivery": format_timestamp(self.estimated_delivery),
            "actual_delivery": format_timestamp(self.actual_delivery),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "items": [item.to_dict() for item in self.items],
        }


__all__ = ["OrderStatus", "OrderItem", "Order"]
