"""In-progress customization state for one wizard instance, and the registry that owns it."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional
from uuid import uuid4

from logic.pricing import line_total, quote_price
from logic.validation import MeasurementInput, validate_payload
from models.catalog import Fabric, Product
from models.measurement import MeasurementProfile
from models.taxonomy import STYLE_OPTIONS, match_style_value, validate_style_category
from tailor_app.errors import (
    IncompleteSession,
    IneligibleFabric,
    InvalidMeasurements,
    InvalidOption,
    InvalidProduct,
    NotFound,
    ValidationError,
)
from tailor_app.logging_config import get_logger, log_event
from tools.catalog_store import CatalogStore

LOGGER = get_logger(__name__)

SESSION_STATES = (
    "empty",
    "product_selected",
    "fabric_selected",
    "measurement_attached",
    "submittable",
)


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything an order needs, captured once at submission time.

    ``unit_price`` is quoted when the snapshot is taken and never re-derived
    from catalog rows afterwards.
    """

    product: Product
    fabric: Fabric
    measurement_profile: MeasurementProfile
    unit_price: int
    quantity: int = 1
    style_options: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    design_reference: Optional[str] = None

    @property
    def total_price(self) -> int:
        return line_total(self.unit_price, self.quantity)

    def customizations(self) -> Dict[str, str]:
        return dict(self.style_options)


class CustomizationSession:
    """Accumulates the selections of one prospective order.

    Fields may be set in any order. The only coupling is between product and
    fabric: choosing a product for which the current fabric is ineligible
    clears the fabric.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        owner_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.catalog = catalog
        self.owner_id = owner_id
        self.session_id = session_id or uuid4().hex
        self.product: Optional[Product] = None
        self.fabric: Optional[Fabric] = None
        self.style_options: Dict[str, str] = {}
        self.design_reference: Optional[str] = None
        self.measurement_profile: Optional[MeasurementProfile] = None
        self.quantity = 1

    def select_product(self, product_id: str) -> Product:
        try:
            product = self.catalog.get_product(product_id)
        except NotFound as exc:
            raise InvalidProduct(
                f"Product {product_id} is not available", {"product": "Product is not available"}
            ) from exc

        if self.fabric is not None and not self.catalog.is_eligible(product.id, self.fabric.id):
            log_event(
                LOGGER,
                logging.INFO,
                "session_fabric_cleared",
                session_id=self.session_id,
                product_id=product.id,
                fabric_id=self.fabric.id,
            )
            self.fabric = None
        self.product = product
        return product

    def select_fabric(self, fabric_id: str) -> Fabric:
        if self.product is None:
            raise IneligibleFabric(
                "Choose a product before choosing a fabric", {"fabric": "Select a product first"}
            )
        try:
            eligible = self.catalog.list_fabrics_for(self.product.id)
        except NotFound as exc:
            raise InvalidProduct(
                f"Product {self.product.id} is no longer available",
                {"product": "Product is not available"},
            ) from exc
        for fabric in eligible:
            if fabric.id == str(fabric_id):
                self.fabric = fabric
                return fabric
        raise IneligibleFabric(
            f"Fabric {fabric_id} is not offered for {self.product.name}",
            {"fabric": "Fabric is not available for this product"},
        )

    def set_style_option(self, category: str, value: str) -> str:
        try:
            key = validate_style_category(category)
        except ValueError as exc:
            raise InvalidOption(str(exc), {str(category): "Unknown style category"}) from exc
        label = match_style_value(key, value)
        if label is None:
            raise InvalidOption(
                f"'{value}' is not a {key} option",
                {key: f"must be one of {STYLE_OPTIONS[key]}"},
            )
        self.style_options[key] = label
        return label

    def clear_style_option(self, category: str) -> None:
        try:
            key = validate_style_category(category)
        except ValueError as exc:
            raise InvalidOption(str(exc), {str(category): "Unknown style category"}) from exc
        self.style_options.pop(key, None)

    def attach_design(self, reference: str) -> None:
        if not reference or not str(reference).strip():
            raise ValidationError("Design reference is empty", {"design_upload": "Reference is required"})
        self.design_reference = str(reference).strip()

    def detach_design(self) -> None:
        self.design_reference = None

    def select_measurement_profile(self, profile: MeasurementProfile) -> MeasurementProfile:
        if self.owner_id is not None and profile.user_id != self.owner_id:
            raise InvalidMeasurements(
                "Measurement profile belongs to another account",
                {"measurement_profile": "Profile is not available"},
            )
        validate_payload(
            MeasurementInput,
            profile.as_input(),
            "Measurement profile is out of range",
            error_cls=InvalidMeasurements,
        )
        self.measurement_profile = profile
        return profile

    def set_quantity(self, quantity: int) -> int:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be a positive whole number", {"quantity": "must be at least 1"})
        self.quantity = quantity
        return quantity

    def current_price(self) -> Optional[int]:
        return quote_price(self.product, self.fabric)

    def current_total(self) -> Optional[int]:
        price = self.current_price()
        if price is None:
            return None
        return line_total(price, self.quantity)

    def missing(self) -> List[str]:
        required = {
            "product": self.product,
            "fabric": self.fabric,
            "measurement_profile": self.measurement_profile,
        }
        return [name for name, value in required.items() if value is None]

    def can_submit(self) -> bool:
        return not self.missing()

    @property
    def state(self) -> str:
        """Furthest wizard step reached by the current selections."""

        if self.can_submit():
            return "submittable"
        if self.measurement_profile is not None:
            return "measurement_attached"
        if self.product is None:
            return "empty"
        if self.fabric is None:
            return "product_selected"
        return "fabric_selected"

    def snapshot(self) -> SessionSnapshot:
        product, fabric, profile = self.product, self.fabric, self.measurement_profile
        if product is None or fabric is None or profile is None:
            raise IncompleteSession(self.missing())
        return SessionSnapshot(
            product=product,
            fabric=fabric,
            measurement_profile=profile,
            unit_price=quote_price(product, fabric),
            quantity=self.quantity,
            style_options=MappingProxyType(dict(self.style_options)),
            design_reference=self.design_reference,
        )

    def reset(self) -> None:
        self.product = None
        self.fabric = None
        self.style_options = {}
        self.design_reference = None
        self.measurement_profile = None
        self.quantity = 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "state": self.state,
            "product_id": self.product.id if self.product else None,
            "fabric_id": self.fabric.id if self.fabric else None,
            "style_options": dict(self.style_options),
            "design_reference": self.design_reference,
            "measurement_id": self.measurement_profile.id if self.measurement_profile else None,
            "quantity": self.quantity,
            "unit_price": self.current_price(),
            "total_price": self.current_total(),
            "can_submit": self.can_submit(),
            "missing": self.missing(),
        }


class CustomizationSessionManager:
    """Owns live customization sessions, one per wizard instance."""

    def __init__(self, catalog: CatalogStore) -> None:
        self.catalog = catalog
        self._sessions: Dict[str, CustomizationSession] = {}
        self._lock = threading.Lock()

    def start(self, owner_id: Optional[str] = None) -> CustomizationSession:
        session = CustomizationSession(self.catalog, owner_id=owner_id)
        with self._lock:
            self._sessions[session.session_id] = session
        log_event(LOGGER, logging.INFO, "customization_started", session_id=session.session_id)
        return session

    def get(self, session_id: str, owner_id: Optional[str] = None) -> CustomizationSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.owner_id != owner_id:
            raise NotFound(f"Customization session {session_id} not found")
        return session

    def claim(self, session_id: str, owner_id: str) -> CustomizationSession:
        """Return the session for ``owner_id``, adopting it if it was started anonymously."""

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.owner_id not in (None, owner_id):
                raise NotFound(f"Customization session {session_id} not found")
            adopted = session.owner_id is None
            session.owner_id = owner_id
        if adopted:
            log_event(LOGGER, logging.INFO, "customization_claimed", session_id=session_id)
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            log_event(LOGGER, logging.INFO, "customization_discarded", session_id=session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = [
    "SESSION_STATES",
    "SessionSnapshot",
    "CustomizationSession",
    "CustomizationSessionManager",
]
