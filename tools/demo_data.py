"""Static catalog used by the demo backend when no hosted backend is configured."""

from __future__ import annotations

from typing import Dict, List

_FABRIC_IMAGE = "https://images.pexels.com/photos/1040945/pexels-photo-1040945.jpeg?auto=compress&cs=tinysrgb&w=300"

DEMO_PRODUCTS: List[Dict[str, object]] = [
    {
        "id": "1",
        "name": "Classic Dress Shirt",
        "category": "shirt",
        "base_price": 1299,
        "image_url": "https://images.pexels.com/photos/996329/pexels-photo-996329.jpeg?auto=compress&cs=tinysrgb&w=600",
        "description": "Premium cotton dress shirt with classic fit and professional styling.",
        "is_active": True,
    },
    {
        "id": "2",
        "name": "Business Suit",
        "category": "suit",
        "base_price": 4999,
        "image_url": "https://images.pexels.com/photos/1043474/pexels-photo-1043474.jpeg?auto=compress&cs=tinysrgb&w=600",
        "description": "Tailored business suit with modern cut and premium finish.",
        "is_active": True,
    },
    {
        "id": "3",
        "name": "Evening Dress",
        "category": "dress",
        "base_price": 2999,
        "image_url": "https://images.pexels.com/photos/1021693/pexels-photo-1021693.jpeg?auto=compress&cs=tinysrgb&w=600",
        "description": "Elegant evening dress perfect for special occasions.",
        "is_active": True,
    },
    {
        "id": "4",
        "name": "Formal Trousers",
        "category": "pants",
        "base_price": 1599,
        "image_url": "https://images.pexels.com/photos/1598505/pexels-photo-1598505.jpeg?auto=compress&cs=tinysrgb&w=600",
        "description": "Perfectly tailored formal trousers for professional wear.",
        "is_active": True,
    },
    {
        "id": "5",
        "name": "Blazer Jacket",
        "category": "jacket",
        "base_price": 3499,
        "image_url": "https://images.pexels.com/photos/1043474/pexels-photo-1043474.jpeg?auto=compress&cs=tinysrgb&w=600",
        "description": "Stylish blazer jacket for business and casual occasions.",
        "is_active": True,
    },
    {
        "id": "6",
        "name": "Casual Shirt",
        "category": "shirt",
        "base_price": 999,
        "image_url": "https://images.pexels.com/photos/996329/pexels-photo-996329.jpeg?auto=compress&cs=tinysrgb&w=600",
        "description": "Comfortable casual shirt for everyday wear.",
        "is_active": True,
    },
]

DEMO_FABRICS: List[Dict[str, object]] = [
    {"id": "f1", "name": "Premium Cotton", "type": "Cotton", "price_multiplier": 1.0, "description": "Soft, breathable cotton fabric"},
    {"id": "f2", "name": "Egyptian Cotton", "type": "Cotton", "price_multiplier": 1.3, "description": "Luxurious Egyptian cotton with superior quality"},
    {"id": "f3", "name": "Wool Blend", "type": "Wool", "price_multiplier": 1.2, "description": "Durable wool blend for professional wear"},
    {"id": "f4", "name": "Pure Wool", "type": "Wool", "price_multiplier": 1.5, "description": "Premium pure wool for luxury suits"},
    {"id": "f5", "name": "Silk", "type": "Silk", "price_multiplier": 1.8, "description": "Luxurious silk fabric with natural sheen"},
    {"id": "f6", "name": "Satin", "type": "Satin", "price_multiplier": 1.4, "description": "Smooth satin with elegant drape"},
    {"id": "f7", "name": "Cotton Blend", "type": "Cotton", "price_multiplier": 1.0, "description": "Comfortable cotton blend for daily wear"},
    {"id": "f8", "name": "Linen", "type": "Linen", "price_multiplier": 1.2, "description": "Breathable linen for summer comfort"},
    {"id": "f9", "name": "Tweed", "type": "Wool", "price_multiplier": 1.3, "description": "Classic tweed for timeless style"},
    {"id": "f10", "name": "Cashmere", "type": "Cashmere", "price_multiplier": 2.0, "description": "Luxurious cashmere for ultimate comfort"},
    {"id": "f11", "name": "Denim", "type": "Cotton", "price_multiplier": 1.1, "description": "Durable denim fabric for casual wear"},
    {"id": "f12", "name": "Flannel", "type": "Cotton", "price_multiplier": 1.2, "description": "Soft flannel for cozy comfort"},
]

DEMO_PRODUCT_FABRICS: Dict[str, List[str]] = {
    "1": ["f1", "f2"],
    "2": ["f3", "f4"],
    "3": ["f5", "f6"],
    "4": ["f7", "f8"],
    "5": ["f9", "f10"],
    "6": ["f11", "f12"],
}


def demo_rows() -> Dict[str, List[Dict[str, object]]]:
    """Rows per table for seeding an empty demo store."""

    fabrics = [{**fabric, "image_url": _FABRIC_IMAGE, "is_active": True} for fabric in DEMO_FABRICS]
    links = [
        {"id": f"pf-{product_id}-{fabric_id}", "product_id": product_id, "fabric_id": fabric_id}
        for product_id, fabric_ids in DEMO_PRODUCT_FABRICS.items()
        for fabric_id in fabric_ids
    ]
    return {
        "products": [dict(product) for product in DEMO_PRODUCTS],
        "fabrics": fabrics,
        "product_fabrics": links,
    }


__all__ = ["DEMO_PRODUCTS", "DEMO_FABRICS", "DEMO_PRODUCT_FABRICS", "demo_rows"]
