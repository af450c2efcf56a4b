"""Catalog reference data: products and fabrics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.taxonomy import validate_category


@dataclass(frozen=True)
class Fabric:
    """A fabric a garment can be cut from."""

    id: str
    name: str
    type: str
    price_multiplier: float
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if float(self.price_multiplier) <= 0:
            raise ValueError(f"Fabric {self.id} must have a positive price multiplier")
        object.__setattr__(self, "price_multiplier", float(self.price_multiplier))

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Fabric":
        return cls(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            type=str(row.get("type") or ""),
            price_multiplier=row.get("price_multiplier", 1.0),
            description=row.get("description"),
            image_url=row.get("image_url"),
            is_active=bool(row.get("is_active", True)),
        )


@dataclass(frozen=True)
class Product:
    """A garment offered for tailoring."""

    id: str
    name: str
    category: str
    base_price: int
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", validate_category(self.category))
        if int(self.base_price) <= 0:
            raise ValueError(f"Product {self.id} must have a positive base price")
        object.__setattr__(self, "base_price", int(self.base_price))

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Product":
        return cls(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            category=str(row["category"]),
            base_price=row["base_price"],
            description=row.get("description"),
            image_url=row.get("image_url"),
            is_active=bool(row.get("is_active", True)),
        )


__all__ = ["Fabric", "Product"]
