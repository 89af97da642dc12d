"""
================================================================================
FILE: catalogue/config/settings.py
================================================================================

PURPOSE:
    Application settings and configuration loaded from environment variables.
    Uses Pydantic BaseSettings for automatic validation and type hints.
    Single source of truth for all application configuration, including the
    resolution of the MongoDB connection profile.

WORKFLOW:
    1. At startup, load from environment variables (.env file or system env)
    2. Validate all settings (type checking, range validation)
    3. Resolve the connection profile (PLAIN / SECURED) into ConnectionConfig
    4. Fail fast if neither profile toggle is enabled (ConfigurationError)
    5. ConnectionConfig is immutable after resolution

INPUTS:
    - Environment variables (from .env file or system env)
    - Examples:
        MONGO=true           (only "true" enables a profile)
        MONGO_URL=mongodb://localhost:27017/catalogue
        MONGO_RETRY_INTERVAL_MS=2000
        GO_SLOW=250
        CATALOGUE_SERVER_PORT=8080

OUTPUTS:
    - Settings object with validated configuration
    - ConnectionConfig via settings.resolve_connection_config()

CONFIGURATION CATEGORIES:
    1. Connection Profile
       - mongo: PLAIN toggle (unauthenticated local endpoint)
       - documentdb: SECURED toggle (credentials, TLS, replica set)
       - mongo_url: explicit URL override for either profile

    2. Store Layout
       - mongo_database, mongo_collection

    3. Retry / Health Watch
       - mongo_retry_interval_ms: fixed delay between attempts
       - mongo_connect_timeout_ms: server selection timeout per attempt
       - mongo_health_check_interval_ms: ping cadence (0 = latch)

    4. Handlers
       - go_slow_ms: artificial delay before the by-SKU query

    5. Server
       - server_host, server_port

    6. Logging
       - log_level: DEBUG/INFO/WARNING/ERROR
       - log_format: json/text

RESOLUTION POLICY:
    - MONGO enabled      -> PLAIN,   MONGO_URL or DEFAULT_PLAIN_MONGO_URL
    - DOCUMENTDB enabled -> SECURED, MONGO_URL or DEFAULT_SECURED_MONGO_URL
    - neither            -> ConfigurationError (no retry)
    - both               -> PLAIN wins, warning logged

TESTING ENVIRONMENT:
    - Override settings in tests: Settings(mongo=True, _env_file=None)
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalogue.config.constants import (
    DEFAULT_COLLECTION_NAME,
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_DATABASE_NAME,
    DEFAULT_HEALTH_CHECK_INTERVAL_MS,
    DEFAULT_PLAIN_MONGO_URL,
    DEFAULT_RETRY_INTERVAL_MS,
    DEFAULT_SECURED_MONGO_URL,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    NO_DATABASE_CONFIGURATION_MESSAGE,
)
from catalogue.core.exceptions import ConfigurationError
from catalogue.utils import redact_url

logger = logging.getLogger(__name__)

# .env path resolution: working directory first, then repo root
_CWD_ENV = Path(os.getcwd()) / ".env"
_REPO_ROOT_ENV = Path(__file__).resolve().parents[2] / ".env"
_ENV_PATH = _CWD_ENV if _CWD_ENV.exists() else _REPO_ROOT_ENV

load_dotenv(dotenv_path=_ENV_PATH, override=False)


# ================================================================================
# CONNECTION CONFIG (resolved once, immutable)
# ================================================================================

class ConnectionMode(str, Enum):
    """Connection profile selected by the mode toggles."""
    PLAIN = "plain"
    SECURED = "secured"


class ConnectionConfig(BaseModel):
    """
    Resolved MongoDB connection profile.

    Produced once by Settings.resolve_connection_config() and handed to the
    ConnectionSupervisor. Frozen: nothing may change it after startup.
    """

    model_config = ConfigDict(frozen=True)

    mode: ConnectionMode
    url: str
    retry_interval_ms: int = Field(default=DEFAULT_RETRY_INTERVAL_MS, ge=1)
    database: str = DEFAULT_DATABASE_NAME
    collection: str = DEFAULT_COLLECTION_NAME
    connect_timeout_ms: int = Field(default=DEFAULT_CONNECT_TIMEOUT_MS, ge=1)
    health_check_interval_ms: int = Field(default=DEFAULT_HEALTH_CHECK_INTERVAL_MS, ge=0)

    @property
    def retry_interval_seconds(self) -> float:
        return self.retry_interval_ms / 1000

    @property
    def health_check_interval_seconds(self) -> float:
        return self.health_check_interval_ms / 1000

    @property
    def redacted_url(self) -> str:
        return redact_url(self.url)


# ================================================================================
# SETTINGS
# ================================================================================

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables + .env.

    All fields have aliases to match the environment variable names the
    service has always used (MONGO, DOCUMENTDB, MONGO_URL, GO_SLOW, ...).
    """

    model_config = SettingsConfigDict(
        env_file=str(_ENV_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # ========================================================================
    # CONNECTION PROFILE
    # ========================================================================

    mongo: bool = Field(
        default=False,
        alias="MONGO",
        description="Enable PLAIN profile (unauthenticated local MongoDB)",
    )

    documentdb: bool = Field(
        default=False,
        alias="DOCUMENTDB",
        description="Enable SECURED profile (credentials, TLS, replica set)",
    )

    mongo_url: Optional[str] = Field(
        default=None,
        alias="MONGO_URL",
        description="Connection URL override for either profile",
    )

    # ========================================================================
    # STORE LAYOUT
    # ========================================================================

    mongo_database: str = Field(
        default=DEFAULT_DATABASE_NAME,
        min_length=1,
        alias="MONGO_DATABASE",
        description="Logical database name",
    )

    mongo_collection: str = Field(
        default=DEFAULT_COLLECTION_NAME,
        min_length=1,
        alias="MONGO_COLLECTION",
        description="Products collection name",
    )

    # ========================================================================
    # RETRY / HEALTH WATCH
    # ========================================================================

    mongo_retry_interval_ms: int = Field(
        default=DEFAULT_RETRY_INTERVAL_MS,
        ge=1,
        le=600000,
        alias="MONGO_RETRY_INTERVAL_MS",
        description="Fixed delay between connection attempts (ms)",
    )

    mongo_connect_timeout_ms: int = Field(
        default=DEFAULT_CONNECT_TIMEOUT_MS,
        ge=100,
        le=120000,
        alias="MONGO_CONNECT_TIMEOUT_MS",
        description="Server selection timeout for one connection attempt (ms)",
    )

    mongo_health_check_interval_ms: int = Field(
        default=DEFAULT_HEALTH_CHECK_INTERVAL_MS,
        ge=0,
        le=3600000,
        alias="MONGO_HEALTH_CHECK_INTERVAL_MS",
        description="Ping cadence once connected (ms); 0 disables the watch",
    )

    # ========================================================================
    # HANDLERS
    # ========================================================================

    go_slow_ms: int = Field(
        default=0,
        ge=0,
        le=60000,
        alias="GO_SLOW",
        description="Artificial delay before the by-SKU query (ms)",
    )

    # ========================================================================
    # SERVER
    # ========================================================================

    server_host: str = Field(
        default=DEFAULT_SERVER_HOST,
        alias="CATALOGUE_SERVER_HOST",
        description="Server host",
    )

    server_port: int = Field(
        default=DEFAULT_SERVER_PORT,
        ge=1,
        le=65535,
        alias="CATALOGUE_SERVER_PORT",
        description="Server port",
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    log_format: Literal["json", "text"] = Field(
        default="json",
        alias="LOG_FORMAT",
        description="Logging format: json or text",
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator("mongo", "documentdb", mode="before")
    @classmethod
    def parse_toggle(cls, value: Any) -> bool:
        """A profile toggle is on only when set to "true"; anything else is off."""
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() == "true"

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def resolve_connection_config(self) -> ConnectionConfig:
        """
        Resolve the connection profile from the two mode toggles.

        Returns:
            ConnectionConfig for the selected profile

        Raises:
            ConfigurationError: If neither toggle is enabled (not retried)
        """
        if self.mongo:
            if self.documentdb:
                logger.warning(
                    "Both MONGO and DOCUMENTDB are enabled; using the plain MONGO profile"
                )
            mode = ConnectionMode.PLAIN
            url = self.mongo_url or DEFAULT_PLAIN_MONGO_URL
        elif self.documentdb:
            mode = ConnectionMode.SECURED
            url = self.mongo_url or DEFAULT_SECURED_MONGO_URL
        else:
            raise ConfigurationError(
                NO_DATABASE_CONFIGURATION_MESSAGE,
                context={"toggles": ["MONGO", "DOCUMENTDB"]},
            )

        return ConnectionConfig(
            mode=mode,
            url=url,
            retry_interval_ms=self.mongo_retry_interval_ms,
            database=self.mongo_database,
            collection=self.mongo_collection,
            connect_timeout_ms=self.mongo_connect_timeout_ms,
            health_check_interval_ms=self.mongo_health_check_interval_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert settings to dictionary with credentials redacted.

        Returns:
            Settings dictionary with any URL password masked
        """
        d = self.model_dump()
        if d.get("mongo_url"):
            d["mongo_url"] = redact_url(d["mongo_url"])
        return d
