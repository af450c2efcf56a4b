"""FastAPI server exposing the storefront core for deployment."""

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from memory.customization_session import CustomizationSession
from models.catalog import Fabric, Product
from models.measurement import MeasurementProfile
from models.taxonomy import STYLE_OPTIONS
from models.timestamps import format_timestamp
from tailor_app.app import TailorApp
from tailor_app.errors import (
    CollaboratorUnavailable,
    Forbidden,
    NotFound,
    TailorError,
    Unauthenticated,
    ValidationError,
)
from tailor_app.logging_config import configure_logging, correlation_context
from tools.identity import AuthSession, AuthUser

_STATUS_CODES = (
    (ValidationError, 422),
    (NotFound, 404),
    (Unauthenticated, 401),
    (Forbidden, 403),
    (CollaboratorUnavailable, 503),
)


class CredentialsRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(CredentialsRequest):
    full_name: str = Field(..., min_length=1)


class ProductChoice(BaseModel):
    product_id: str


class FabricChoice(BaseModel):
    fabric_id: str


class StyleChoice(BaseModel):
    value: str


class MeasurementChoice(BaseModel):
    measurement_id: str


class QuantityChoice(BaseModel):
    quantity: int


class StatusUpdateRequest(BaseModel):
    """Admin request moving an order to its next status."""

    status: str


class CheckoutRequest(BaseModel):
    """Customer contact details snapshotted onto the order."""

    name: str
    email: str
    phone: str
    address: str
    notes: Optional[str] = None


def _status_for(exc: TailorError) -> int:
    for error_cls, status in _STATUS_CODES:
        if isinstance(exc, error_cls):
            return status
    return 500


def _product_dict(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "category": product.category,
        "base_price": product.base_price,
        "description": product.description,
        "image_url": product.image_url,
    }


def _fabric_dict(fabric: Fabric) -> Dict[str, Any]:
    return {
        "id": fabric.id,
        "name": fabric.name,
        "type": fabric.type,
        "price_multiplier": fabric.price_multiplier,
        "description": fabric.description,
        "image_url": fabric.image_url,
    }


def _measurement_dict(profile: MeasurementProfile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "nickname": profile.nickname,
        **profile.values(),
        "created_at": format_timestamp(profile.created_at),
        "updated_at": format_timestamp(profile.updated_at),
    }


def _session_dict(session: AuthSession) -> Dict[str, Any]:
    user = session.user
    return {
        "access_token": session.access_token,
        "user": {"id": user.id, "email": user.email, "role": user.role, "full_name": user.full_name},
    }


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def create_app(tailor: TailorApp | None = None) -> FastAPI:
    """Build the FastAPI app around ``tailor`` (or a freshly configured one)."""

    configure_logging()
    tailor_app = tailor or TailorApp()
    app = FastAPI(title="eTailor", version="0.1.0")
    app.state.tailor = tailor_app

    @app.exception_handler(TailorError)
    async def handle_tailor_error(request: Request, exc: TailorError) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        with correlation_context(request.headers.get("x-correlation-id")) as correlation_id:
            response = await call_next(request)
            response.headers["x-correlation-id"] = correlation_id
            return response

    def optional_user(authorization: Optional[str] = Header(None)) -> Optional[AuthUser]:
        token = _bearer_token(authorization)
        if token is None:
            return None
        return tailor_app.identity.user_for_token(token)

    def required_user(user: Optional[AuthUser] = Depends(optional_user)) -> AuthUser:
        if user is None:
            raise Unauthenticated("Sign in to continue")
        return user

    def session_for(session_id: str, user: Optional[AuthUser]) -> CustomizationSession:
        if user is None:
            return tailor_app.sessions.get(session_id)
        return tailor_app.sessions.claim(session_id, user.id)

    @app.get("/healthz")
    async def healthcheck() -> dict:
        """Lightweight readiness probe."""

        return {
            "status": "ok",
            "service": "etailor",
            "environment": tailor_app.config.environment or "local",
            "data_mode": tailor_app.config.data_mode,
        }

    @app.get("/products")
    async def list_products(
        category: Optional[str] = None, search: Optional[str] = None, sort: str = "name"
    ) -> List[dict]:
        products = tailor_app.catalog.list_products(category=category, search=search, sort=sort)
        return [_product_dict(product) for product in products]

    @app.get("/products/{product_id}")
    async def get_product(product_id: str) -> dict:
        return _product_dict(tailor_app.catalog.get_product(product_id))

    @app.get("/products/{product_id}/fabrics")
    async def list_fabrics(product_id: str) -> List[dict]:
        return [_fabric_dict(fabric) for fabric in tailor_app.catalog.list_fabrics_for(product_id)]

    @app.get("/style-options")
    async def style_options() -> Dict[str, List[str]]:
        return {category: list(values) for category, values in STYLE_OPTIONS.items()}

    @app.post("/auth/sign-in")
    async def sign_in(request: CredentialsRequest) -> dict:
        return _session_dict(tailor_app.identity.sign_in(request.email, request.password))

    @app.post("/auth/sign-up")
    async def sign_up(request: SignUpRequest) -> dict:
        session = tailor_app.identity.sign_up(request.email, request.password, request.full_name)
        return _session_dict(session)

    @app.post("/auth/sign-out")
    async def sign_out(authorization: Optional[str] = Header(None)) -> dict:
        token = _bearer_token(authorization)
        if token is None:
            raise Unauthenticated("Sign in to continue")
        tailor_app.identity.sign_out(token)
        return {"status": "signed_out"}

    @app.get("/me")
    async def me(user: AuthUser = Depends(required_user)) -> dict:
        return {"id": user.id, "email": user.email, "role": user.role, "full_name": user.full_name}

    @app.post("/customizations")
    async def start_customization(user: Optional[AuthUser] = Depends(optional_user)) -> dict:
        return tailor_app.start_customization(user).to_dict()

    @app.get("/customizations/{session_id}")
    async def get_customization(
        session_id: str, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        return session_for(session_id, user).to_dict()

    @app.put("/customizations/{session_id}/product")
    async def choose_product(
        session_id: str, choice: ProductChoice, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        session = session_for(session_id, user)
        session.select_product(choice.product_id)
        return session.to_dict()

    @app.put("/customizations/{session_id}/fabric")
    async def choose_fabric(
        session_id: str, choice: FabricChoice, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        session = session_for(session_id, user)
        session.select_fabric(choice.fabric_id)
        return session.to_dict()

    @app.put("/customizations/{session_id}/style-options/{category}")
    async def choose_style(
        session_id: str,
        category: str,
        choice: StyleChoice,
        user: Optional[AuthUser] = Depends(optional_user),
    ) -> dict:
        session = session_for(session_id, user)
        session.set_style_option(category, choice.value)
        return session.to_dict()

    @app.delete("/customizations/{session_id}/style-options/{category}")
    async def clear_style(
        session_id: str, category: str, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        session = session_for(session_id, user)
        session.clear_style_option(category)
        return session.to_dict()

    @app.put("/customizations/{session_id}/design")
    async def upload_design(
        session_id: str,
        request: Request,
        filename: str = "design",
        user: Optional[AuthUser] = Depends(optional_user),
    ) -> dict:
        """Store the raw request body as a design image and attach its reference."""

        session = session_for(session_id, user)
        content = await request.body()
        content_type = request.headers.get("content-type", "")
        reference = tailor_app.design_store.upload(filename, content, content_type)
        session.attach_design(reference)
        return session.to_dict()

    @app.delete("/customizations/{session_id}/design")
    async def remove_design(
        session_id: str, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        session = session_for(session_id, user)
        session.detach_design()
        return session.to_dict()

    @app.put("/customizations/{session_id}/measurement")
    async def choose_measurement(
        session_id: str, choice: MeasurementChoice, user: AuthUser = Depends(required_user)
    ) -> dict:
        session = session_for(session_id, user)
        session.select_measurement_profile(tailor_app.measurements.get(choice.measurement_id, user))
        return session.to_dict()

    @app.put("/customizations/{session_id}/quantity")
    async def choose_quantity(
        session_id: str, choice: QuantityChoice, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        session = session_for(session_id, user)
        session.set_quantity(choice.quantity)
        return session.to_dict()

    @app.delete("/customizations/{session_id}")
    async def discard_customization(
        session_id: str, user: Optional[AuthUser] = Depends(optional_user)
    ) -> dict:
        session_for(session_id, user)
        tailor_app.sessions.discard(session_id)
        return {"status": "discarded"}

    @app.post("/customizations/{session_id}/checkout", status_code=201)
    async def checkout(
        session_id: str, request: CheckoutRequest, user: AuthUser = Depends(required_user)
    ) -> dict:
        session = session_for(session_id, user)
        order = tailor_app.checkout(session, request.model_dump(), user)
        return order.to_dict()

    @app.get("/measurements")
    async def list_measurements(user: AuthUser = Depends(required_user)) -> List[dict]:
        return [_measurement_dict(profile) for profile in tailor_app.measurements.list(user)]

    @app.post("/measurements", status_code=201)
    async def create_measurement(
        payload: Dict[str, Any], user: AuthUser = Depends(required_user)
    ) -> dict:
        return _measurement_dict(tailor_app.measurements.create(user, payload))

    @app.get("/measurements/{profile_id}")
    async def get_measurement(profile_id: str, user: AuthUser = Depends(required_user)) -> dict:
        return _measurement_dict(tailor_app.measurements.get(profile_id, user))

    @app.patch("/measurements/{profile_id}")
    async def update_measurement(
        profile_id: str, payload: Dict[str, Any], user: AuthUser = Depends(required_user)
    ) -> dict:
        return _measurement_dict(tailor_app.measurements.update(profile_id, payload, user))

    @app.delete("/measurements/{profile_id}", status_code=204)
    async def delete_measurement(profile_id: str, user: AuthUser = Depends(required_user)) -> None:
        tailor_app.measurements.delete(profile_id, user)

    @app.get("/orders")
    async def my_orders(user: AuthUser = Depends(required_user)) -> List[dict]:
        orders = tailor_app.orders.list_orders(user, user_id=user.id)
        return [
            {**order.to_dict(), "progress": tailor_app.orders.progress_percent(order.status)}
            for order in orders
        ]

    @app.get("/orders/{order_id}")
    async def get_order(order_id: str, user: AuthUser = Depends(required_user)) -> dict:
        order = tailor_app.orders.get_order(order_id, user)
        return {**order.to_dict(), "progress": tailor_app.orders.progress_percent(order.status)}

    @app.get("/admin/orders")
    async def all_orders(
        user_id: Optional[str] = None, user: AuthUser = Depends(required_user)
    ) -> List[dict]:
        return [order.to_dict() for order in tailor_app.orders.list_orders(user, user_id=user_id)]

    @app.patch("/admin/orders/{order_id}/status")
    async def update_order_status(
        order_id: str, request: StatusUpdateRequest, user: AuthUser = Depends(required_user)
    ) -> dict:
        return tailor_app.orders.update_status(order_id, request.status, user).to_dict()

    @app.get("/admin/stats")
    async def admin_stats(user: AuthUser = Depends(required_user)) -> dict:
        return tailor_app.orders.admin_stats(user)

    return app


def get_app() -> FastAPI:
    """Expose a configured FastAPI instance for ASGI servers."""

    return create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:get_app", host="0.0.0.0", port=int("8080"), reload=False, factory=True)
