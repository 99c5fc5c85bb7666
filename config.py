import os
import logging
from dataclasses import dataclass, field, replace

import yaml
import keyring

from settings_schema import SettingsSchema, validate_settings

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class YamlConfig:
    """Load and save settings to a YAML file with optional encryption."""

    SENSITIVE_KEYS = {
        "sanity_token",
        "exercisedb_key",
    }

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.service = "fitlog"

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if self.encrypt:
            for key in list(data.keys()):
                if key in self.SENSITIVE_KEYS:
                    secret = keyring.get_password(self.service, key)
                    if secret is not None:
                        data[key] = secret
                    else:
                        data.pop(key, None)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            for key in self.SENSITIVE_KEYS:
                if key in out:
                    keyring.set_password(self.service, key, str(out[key]))
                    out[key] = True
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)


# environment variable -> settings key
ENV_OVERRIDES = {
    "FITLOG_BACKEND": "backend",
    "FITLOG_DB_PATH": "db_path",
    "FITLOG_USER_ID": "user_id",
    "SANITY_PROJECT_ID": "sanity_project_id",
    "SANITY_DATASET": "sanity_dataset",
    "SANITY_API_VERSION": "sanity_api_version",
    "SANITY_TOKEN": "sanity_token",
    "EXERCISEDB_KEY": "exercisedb_key",
    "EXERCISEDB_BASE_URL": "exercisedb_base_url",
    "EXERCISEDB_HOST": "exercisedb_host",
}


def _secret(value: str | bool) -> str:
    # an encrypted placeholder without a keyring entry counts as missing
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class AppConfig:
    """Resolved settings: defaults, then YAML file, then environment."""

    backend: str = "relational"
    db_path: str = "fitlog.db"
    user_id: str = "demo-user"
    theme: str = "light"
    weight_unit: str = "kg"
    mirror_plan: bool = False
    sanity_project_id: str = ""
    sanity_dataset: str = "production"
    sanity_api_version: str = "2023-10-12"
    sanity_token: str = ""
    exercisedb_key: str = ""
    exercisedb_base_url: str = "https://exercisedb-api1.p.rapidapi.com/api/v1"
    exercisedb_host: str = "exercisedb-api1.p.rapidapi.com"

    @classmethod
    def from_settings(cls, settings: SettingsSchema) -> "AppConfig":
        data = settings.model_dump()
        for key in YamlConfig.SENSITIVE_KEYS:
            data[key] = _secret(data[key])
        return cls(**data)

    @classmethod
    def load(
        cls, yaml_path: str = "settings.yaml", environ: dict | None = None
    ) -> "AppConfig":
        env = os.environ if environ is None else environ
        data = YamlConfig(yaml_path).load()
        for var, key in ENV_OVERRIDES.items():
            if env.get(var):
                data[key] = env[var]
        config = cls.from_settings(validate_settings(data))
        missing = config.missing_credentials()
        if missing:
            logger.warning(
                "%s backend is read-only, missing settings: %s",
                config.backend,
                ", ".join(missing),
            )
        return config

    def missing_credentials(self) -> list[str]:
        if self.backend == "document":
            required = {
                "sanity_project_id": self.sanity_project_id,
                "sanity_token": self.sanity_token,
            }
        else:
            required = {"db_path": self.db_path}
        return [name for name, value in required.items() if not value]

    @property
    def can_write(self) -> bool:
        return not self.missing_credentials()

    def with_overrides(self, **changes) -> "AppConfig":
        return replace(self, **changes)


@dataclass
class AppContext:
    """Application state handed to services instead of module globals."""

    config: AppConfig = field(default_factory=AppConfig)
    theme: str = "light"
    user_id: str | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "AppContext":
        return cls(config=config, theme=config.theme, user_id=config.user_id)

    def toggle_theme(self) -> str:
        self.theme = "dark" if self.theme == "light" else "light"
        return self.theme

    @property
    def signed_in(self) -> bool:
        return bool(self.user_id)
