"""Storefront bootstrap: selects collaborators once and wires the core services."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from memory.customization_session import CustomizationSession, CustomizationSessionManager
from models.order import Order
from tailor_app.config import TailorConfig
from tailor_app.logging_config import configure_logging, get_logger, log_event, operation_context
from tools.backend import Backend, ResilientBackend, RestBackend, SQLiteBackend
from tools.catalog_store import CatalogStore
from tools.change_channel import LocalChangeChannel
from tools.design_uploads import DesignUploadStore, LocalDesignUploadStore, RestDesignUploadStore
from tools.identity import AuthUser, DemoIdentityProvider, IdentityProvider, RestIdentityProvider
from tools.measurement_repository import MeasurementRepository
from tools.order_lifecycle import OrderLifecycleManager

LOGGER = get_logger(__name__)


class TailorApp:
    """Wires together the backend, identity, catalog, sessions and orders.

    Live or demo collaborators are chosen here once, from the configuration;
    nothing downstream checks which mode is active.
    """

    def __init__(self, config: TailorConfig | None = None) -> None:
        self.config = config or TailorConfig.from_env()
        configure_logging()

        self.channel = LocalChangeChannel()
        self.backend = self._build_backend()
        self.identity = self._build_identity()
        self.design_store = self._build_design_store()

        self.catalog = CatalogStore(self.backend)
        self.measurements = MeasurementRepository(self.backend)
        self.sessions = CustomizationSessionManager(self.catalog)
        self.orders = OrderLifecycleManager(
            self.backend,
            channel=self.channel,
            config=self.config,
            design_store=self.design_store,
        )
        log_event(
            LOGGER,
            logging.INFO,
            "tailor_app_ready",
            data_mode=self.config.data_mode,
            backend=self.backend.mode,
            environment=self.config.environment or "local",
        )

    def _build_backend(self) -> Backend:
        if self.config.data_mode == "demo":
            log_event(LOGGER, logging.WARNING, "demo_mode_enabled", database=self.config.demo_db_path)
            return SQLiteBackend(self.config.demo_db_path, channel=self.channel)

        live = RestBackend(
            self.config.backend_url or "",
            self.config.backend_api_key or "",
            timeout_seconds=self.config.request_timeout_seconds,
            channel=self.channel,
        )
        if not self.config.offline_fallback:
            return live
        fallback = SQLiteBackend(self.config.demo_db_path, channel=self.channel)
        return ResilientBackend(live, fallback)

    def _build_identity(self) -> IdentityProvider:
        if self.config.data_mode == "demo":
            return DemoIdentityProvider(self.backend)
        return RestIdentityProvider(
            self.config.backend_url or "",
            self.config.backend_api_key or "",
            backend=self.backend,
            timeout_seconds=self.config.request_timeout_seconds,
        )

    def _build_design_store(self) -> DesignUploadStore:
        if self.config.data_mode == "demo":
            return LocalDesignUploadStore(self.config.design_upload_dir)
        return RestDesignUploadStore(
            self.config.backend_url or "",
            self.config.backend_api_key or "",
            bucket=self.config.design_bucket,
            timeout_seconds=self.config.request_timeout_seconds,
        )

    def start_customization(self, user: Optional[AuthUser] = None) -> CustomizationSession:
        return self.sessions.start(owner_id=user.id if user else None)

    def checkout(
        self,
        session: CustomizationSession,
        customer: Mapping[str, Any],
        user: Optional[AuthUser],
    ) -> Order:
        """Submit ``session`` as an order and drop it from the registry once committed."""

        with operation_context("checkout", session_id=session.session_id):
            order = self.orders.create_order(session.snapshot(), customer, user, session=session)
            self.sessions.discard(session.session_id)
            return order


__all__ = ["TailorApp"]
