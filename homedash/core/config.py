"""Settings for the dashboard, read from config.yaml and APP_* variables"""

import os
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class BaseConfigSection(BaseSettings):
    """Config section whose environment variables win over YAML values.

    ConfigService passes the YAML section as init kwargs, which pydantic-settings
    would otherwise rank above the environment.
    """

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Order sources as environment, then YAML, then defaults."""
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


class ServerConfig(BaseConfigSection):
    """Server configuration"""

    host: str = "0.0.0.0"  # nosec B104 - dashboard is reached from the LAN
    port: int = 3001

    model_config = SettingsConfigDict(env_prefix="APP_SERVER_")


class StorageConfig(BaseConfigSection):
    """Filesystem roots used by the file browser, media library and registry.

    Both roots are optional at load time. Operations that need an unset root
    fail with an UNCONFIGURED error instead of falling back to "/".
    """

    browser_root: Optional[str] = None
    media_root: Optional[str] = None
    registry_path: str = "data/services.json"

    model_config = SettingsConfigDict(env_prefix="APP_STORAGE_")

    @field_validator("browser_root", "media_root")
    @classmethod
    def validate_root(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not os.path.isabs(v):
            raise ValueError("root directories must be absolute paths")
        return v


class JobsConfig(BaseConfigSection):
    """Acquisition job configuration"""

    command: List[str] = Field(default_factory=lambda: ["spotdl"])
    timeout_seconds: Optional[float] = None
    subscriber_queue_size: int = 1000

    model_config = SettingsConfigDict(env_prefix="APP_JOBS_")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: List[str]) -> List[str]:
        if not v or not v[0]:
            raise ValueError("command must name an executable")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    @field_validator("subscriber_queue_size")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("subscriber_queue_size must be at least 1")
        return v


class LoggingConfig(BaseConfigSection):
    """Logging configuration"""

    level: str = "INFO"
    format: str = "json"

    model_config = SettingsConfigDict(env_prefix="APP_LOGGING_")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return v_upper


class SecurityConfig(BaseConfigSection):
    """Security configuration"""

    api_keys: List[str] = Field(default_factory=list)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_prefix="APP_SECURITY_")


class MonitoringConfig(BaseConfigSection):
    """Monitoring configuration"""

    metrics_enabled: bool = True
    stats_disk_path: str = "/"
    status_check_timeout: float = 5.0  # seconds
    status_cache_ttl: int = 30  # seconds

    model_config = SettingsConfigDict(env_prefix="APP_MONITORING_")


class Config(BaseSettings):
    """All sections, as handed to the lifespan"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="APP_")


# Environment variable honoured by earlier deployments of the dashboard
LEGACY_MEDIA_ROOT_ENV = "SPOTDL_OUTPUT_PATH"


class ConfigService:
    """Loads Config once per process start"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.environ.get("APP_CONFIG_PATH", "config.yaml")
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Build a Config from the YAML file, if any, and the environment.

        A missing file is not an error; every section then comes from the
        environment and defaults. SPOTDL_OUTPUT_PATH is used as the media
        root when neither APP_STORAGE_MEDIA_ROOT nor the YAML file set one.
        """
        config_data: Dict[str, Any] = {}

        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
                if yaml_data:
                    config_data = yaml_data

        storage_data = dict(config_data.get("storage") or {})
        legacy_media_root = os.environ.get(LEGACY_MEDIA_ROOT_ENV)
        if legacy_media_root and not storage_data.get("media_root"):
            storage_data["media_root"] = legacy_media_root

        self._config = Config(
            server=ServerConfig(**config_data.get("server", {})),
            storage=StorageConfig(**storage_data),
            jobs=JobsConfig(**config_data.get("jobs", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
            security=SecurityConfig(**config_data.get("security", {})),
            monitoring=MonitoringConfig(**config_data.get("monitoring", {})),
        )

        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")
        return self._config
