"""
Wiring and ambient-stack tests for the eTailor storefront core: configuration,
collaborator selection, structured logging, instrumentation and change events.
"""

import json
import logging
from importlib import import_module
from pathlib import Path
from typing import List, Tuple

import pytest

from tailor_app.app import TailorApp
from tailor_app.config import TailorConfig
from tailor_app.errors import NotFound
from tailor_app.logging_config import JsonFormatter, correlation_context, log_event, redact_for_log
from tools.backend import ResilientBackend, RestBackend, SQLiteBackend
from tools.change_channel import ChangeEvent, LocalChangeChannel
from tools.design_uploads import LocalDesignUploadStore, RestDesignUploadStore
from tools.identity import DemoIdentityProvider, RestIdentityProvider
from tools.observability import instrument_operation


def _demo_config(tmp_path: Path, **overrides) -> TailorConfig:
    return TailorConfig(
        demo_db_path=str(tmp_path / "demo.db"),
        design_upload_dir=str(tmp_path / "designs"),
        **overrides,
    )


def test_config_defaults_to_demo_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("BACKEND_URL", "BACKEND_API_KEY", "APP_ENV", "APP_CONFIG_PATH", "LEAD_TIME_DAYS"):
        monkeypatch.delenv(key, raising=False)

    config = TailorConfig.from_env()
    assert config.data_mode == "demo"
    assert config.lead_time_days == 10
    assert config.strict_status_transitions is True


def test_config_reads_environment_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "staging.yaml").write_text(
        "# staging\nbackend_url: \"https://backend.example.com\"\nlead_time_days: 14\n"
        "strict_status_transitions: false\noffline_fallback: yes\n"
    )
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("TAILOR_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("BACKEND_API_KEY", "from-env")
    monkeypatch.delenv("APP_CONFIG_PATH", raising=False)
    for key in ("BACKEND_URL", "LEAD_TIME_DAYS", "STRICT_STATUS_TRANSITIONS", "OFFLINE_FALLBACK"):
        monkeypatch.delenv(key, raising=False)

    config = TailorConfig.from_env()
    assert config.environment == "staging"
    assert config.backend_url == "https://backend.example.com"
    assert config.backend_api_key == "from-env"
    assert config.data_mode == "live"
    assert config.lead_time_days == 14
    assert config.strict_status_transitions is False
    assert config.offline_fallback is True


def test_demo_app_selects_local_collaborators(tmp_path: Path) -> None:
    app = TailorApp(_demo_config(tmp_path))

    assert isinstance(app.backend, SQLiteBackend)
    assert isinstance(app.identity, DemoIdentityProvider)
    assert isinstance(app.design_store, LocalDesignUploadStore)
    assert app.orders.channel is app.channel
    assert len(app.catalog.list_products()) == 6


def test_live_app_selects_hosted_collaborators(tmp_path: Path) -> None:
    config = _demo_config(tmp_path, backend_url="https://backend.example.com", backend_api_key="key")
    app = TailorApp(config)
    assert isinstance(app.backend, RestBackend)
    assert isinstance(app.identity, RestIdentityProvider)
    assert isinstance(app.design_store, RestDesignUploadStore)

    resilient = TailorApp(_demo_config(tmp_path, backend_url="https://backend.example.com",
                                       backend_api_key="key", offline_fallback=True))
    assert isinstance(resilient.backend, ResilientBackend)


def test_checkout_discards_session(tmp_path: Path) -> None:
    app = TailorApp(_demo_config(tmp_path))
    user = app.identity.sign_in("asha@example.com", "pw").user
    profile = app.measurements.create(
        user,
        {"nickname": "Daily", "neck": 38, "chest": 98, "waist": 84, "hips": 96,
         "arm_length": 62, "height": 176, "shoulder": 45},
    )
    session = app.start_customization(user)
    session.select_product("2")
    session.select_fabric("f4")
    session.select_measurement_profile(profile)

    order = app.checkout(
        session,
        {"name": "Asha", "email": "asha@example.com", "phone": "9876543210", "address": "12 MG Road, Pune"},
        user,
    )
    assert order.total_amount == 7499  # 4999 x 1.5, half rounded up
    with pytest.raises(NotFound):
        app.sessions.get(session.session_id, user.id)


def test_redaction_masks_contact_details() -> None:
    scrubbed = redact_for_log(
        {"customer_email": "a@b.com", "note": "mail me at a@b.com", "link": "https://x.test", "qty": 2}
    )
    assert scrubbed == {
        "customer_email": "[redacted]",
        "note": "mail me at [redacted-email]",
        "link": "[redacted-url]",
        "qty": 2,
    }


def test_json_formatter_includes_event_and_correlation(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.logging")
    with caplog.at_level(logging.INFO, logger="tests.logging"):
        with correlation_context("corr-123"):
            log_event(logger, logging.INFO, "order_created", customer_phone="9876543210", items=1)

    payload = json.loads(JsonFormatter().format(caplog.records[-1]))
    assert payload["event"] == "order_created"
    assert payload["correlation_id"] == "corr-123"
    assert payload["customer_phone"] == "[redacted]"
    assert payload["items"] == 1


def test_instrument_operation_logs_outcomes(caplog: pytest.LogCaptureFixture) -> None:
    @instrument_operation("demo.divide")
    def divide(a: int, b: int) -> float:
        return a / b

    with caplog.at_level(logging.INFO, logger="tools.observability"):
        assert divide(4, b=2) == 2
        with pytest.raises(ZeroDivisionError):
            divide(1, b=0)

    events = [getattr(record, "event", None) for record in caplog.records]
    assert events.count("operation_started") == 2
    assert "operation_completed" in events
    assert "operation_failed" in events


def test_change_channel_isolates_failing_listeners() -> None:
    channel = LocalChangeChannel()
    received: List[ChangeEvent] = []

    def broken(_: ChangeEvent) -> None:
        raise RuntimeError("listener bug")

    channel.subscribe("orders", broken)
    subscription = channel.subscribe("orders", received.append)
    channel.publish(ChangeEvent(table="orders", event_type="UPDATE"))
    assert len(received) == 1

    subscription.unsubscribe()
    channel.publish(ChangeEvent(table="orders", event_type="UPDATE"))
    assert len(received) == 1
    assert channel.subscriber_count("orders") == 1


@pytest.mark.parametrize(
    "module_path, public_members",
    [
        ("tools.backend", ("Backend", "SQLiteBackend", "RestBackend", "ResilientBackend")),
        ("tools.identity", ("IdentityProvider", "DemoIdentityProvider", "RestIdentityProvider")),
        ("tools.design_uploads", ("DesignUploadStore", "LocalDesignUploadStore", "RestDesignUploadStore")),
        ("tools.catalog_store", ("CatalogStore",)),
        ("tools.measurement_repository", ("MeasurementRepository",)),
        ("tools.order_lifecycle", ("OrderLifecycleManager",)),
        ("memory.customization_session", ("CustomizationSession", "CustomizationSessionManager")),
    ],
)
def test_modules_export_expected_members(module_path: str, public_members: Tuple[str, ...]) -> None:
    """Modules should import cleanly and expose expected members."""

    module = import_module(module_path)
    for member in public_members:
        assert hasattr(module, member), f"{module_path} is missing {member}"
