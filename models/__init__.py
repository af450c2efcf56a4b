"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.catalog import Fabric, Product
from models.measurement import MeasurementProfile
from models.order import Order, OrderItem, OrderStatus

__all__ = ["Fabric", "Product", "MeasurementProfile", "Order", "OrderItem", "OrderStatus"]
