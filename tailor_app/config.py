"""Configuration helpers for the eTailor storefront core."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_LEAD_TIME_DAYS = 10
DEFAULT_TIMEOUT_SECONDS = 5.0


def _as_bool(value: object, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class TailorConfig:
    """Configuration values for the storefront core.

    When either ``backend_url`` or ``backend_api_key`` is missing the app runs
    in demo mode against a local SQLite store seeded with the static catalog,
    instead of failing at startup.
    """

    backend_url: Optional[str] = None
    backend_api_key: Optional[str] = None
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    demo_db_path: str = "data/etailor_demo.db"
    design_upload_dir: str = "data/designs"
    design_bucket: str = "designs"
    lead_time_days: int = DEFAULT_LEAD_TIME_DAYS
    offline_fallback: bool = False
    strict_status_transitions: bool = True
    environment: str | None = None

    @property
    def data_mode(self) -> str:
        return "live" if self.backend_url and self.backend_api_key else "demo"

    @classmethod
    def from_env(cls) -> "TailorConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that the backend
        key can be injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("TAILOR_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        timeout = get_value("request_timeout_seconds")
        lead_time = get_value("lead_time_days")

        return cls(
            backend_url=get_value("backend_url") or None,
            backend_api_key=get_value("backend_api_key") or None,
            request_timeout_seconds=float(timeout) if timeout else DEFAULT_TIMEOUT_SECONDS,
            demo_db_path=str(get_value("demo_db_path", "data/etailor_demo.db")),
            design_upload_dir=str(get_value("design_upload_dir", "data/designs")),
            design_bucket=str(get_value("design_bucket", "designs")),
            lead_time_days=int(lead_time) if lead_time else DEFAULT_LEAD_TIME_DAYS,
            offline_fallback=_as_bool(get_value("offline_fallback"), False),
            strict_status_transitions=_as_bool(get_value("strict_status_transitions"), True),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
