"""
Configuration management for the image bouncer webhook using Pydantic v2.
"""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("/etc/image-bouncer/config.json")
DEFAULT_TLS_FILES = {
    "tls_cert_path": Path("/etc/admission-controller/tls/cert.pem"),
    "tls_key_path": Path("/etc/admission-controller/tls/key.pem"),
}


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma separated setting, dropping blank entries."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class PolicyConfig(BaseModel):
    """Image policy shared read-only by every admission request."""

    model_config = ConfigDict(frozen=True)

    whitelisted_namespaces: Tuple[str, ...] = ()
    whitelisted_registries: Tuple[str, ...] = ()

    @field_validator("whitelisted_namespaces", "whitelisted_registries", mode="before")
    @classmethod
    def drop_blank_entries(cls, v):
        if isinstance(v, str):
            return tuple(split_csv(v))
        return tuple(item.strip() for item in v if item and item.strip())

    @property
    def registry_restricted(self) -> bool:
        return bool(self.whitelisted_registries)


class ServerConfig(BaseSettings):
    # Server configuration
    bind_address: str = Field(default="0.0.0.0", alias="BIND_ADDRESS")
    port: int = Field(default=8443, ge=1, le=65535, alias="PORT")

    # TLS configuration
    tls_cert_path: Optional[Path] = Field(default=None, alias="TLS_CERT_PATH", validate_default=True)
    tls_key_path: Optional[Path] = Field(default=None, alias="TLS_KEY_PATH", validate_default=True)
    require_tls: bool = Field(default=True, alias="REQUIRE_TLS")

    # Debug mode
    debug: bool = Field(default=False, alias="DEBUG")

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("tls_cert_path", "tls_key_path", mode="before")
    @classmethod
    def default_mounted_tls_files(cls, v, info):
        """Fall back to the conventional mount location when it holds the file."""
        if v is None:
            default = DEFAULT_TLS_FILES[info.field_name]
            if default.exists():
                return default
        return v

    @field_validator("tls_cert_path", "tls_key_path", mode="after")
    @classmethod
    def validate_paths(cls, v: Optional[Path]) -> Optional[Path]:
        """Validate that paths exist if specified."""
        if v and not v.exists():
            raise ValueError(f"Path does not exist: {v}")
        return v


class AdmissionConfig(ServerConfig):
    """Main configuration for the image bouncer webhook."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Comma separated, e.g. "kube-system,monitoring"
    namespace_whitelist_str: str = Field(default="", alias="WHITELIST_NAMESPACES")
    registry_whitelist_str: str = Field(default="", alias="WHITELIST_REGISTRIES")

    # Rejection notifications
    notifier_url: Optional[str] = Field(default=None, alias="WEBHOOK_URL")
    notifier_timeout: float = Field(default=5.0, alias="NOTIFIER_TIMEOUT", gt=0)
    notify_budget: float = Field(default=8.0, alias="NOTIFY_BUDGET", gt=0)

    # Metrics configuration
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    # Config file support
    config_file: Optional[Path] = Field(default=None, alias="CONFIG_FILE")

    @field_validator("notifier_url", mode="before")
    @classmethod
    def blank_url_is_unset(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def __init__(self, **kwargs):
        """Initialize config with support for config file."""
        config_file_path = (
            kwargs.get("config_file") or kwargs.get("CONFIG_FILE") or os.environ.get("CONFIG_FILE")
        )
        if not config_file_path:
            config_file_path = DEFAULT_CONFIG_FILE

        file_config = {}
        if config_file_path and Path(config_file_path).exists():
            with open(config_file_path, "r") as f:
                file_config = json.load(f)
            logger.info("Loaded configuration file %s", config_file_path)

        # kwargs take precedence over file
        merged_config = {**file_config, **kwargs}

        super().__init__(**merged_config)

    @property
    def namespace_whitelist(self) -> List[str]:
        return split_csv(self.namespace_whitelist_str)

    @property
    def registry_whitelist(self) -> List[str]:
        return split_csv(self.registry_whitelist_str)

    @property
    def policy(self) -> PolicyConfig:
        """Immutable policy view handed to the decision engine."""
        return PolicyConfig(
            whitelisted_namespaces=self.namespace_whitelist,
            whitelisted_registries=self.registry_whitelist,
        )

    def export_json(self) -> str:
        """Export configuration as JSON."""
        return self.model_dump_json(indent=2, exclude_unset=False)

    def export_dict(self) -> dict:
        """Export configuration as dictionary."""
        return self.model_dump(exclude_unset=False)


def load_config(**kwargs) -> AdmissionConfig:
    """Load configuration with environment variables and optional overrides."""
    return AdmissionConfig(**kwargs)
