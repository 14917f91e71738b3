"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables. All config comes from the environment (or a local
.env file), never hardcoded in source code.

In production, the identity provider's extension endpoint is reached through
the gateway on EXT_PORT. Plain PORT is accepted as well because that is what
most container platforms inject.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Service configuration with environment variable bindings.

    Each field maps to an environment variable with the EXT_ prefix.
    For example, `entitlements_path` reads from EXT_ENTITLEMENTS_PATH.
    """

    # --- Server settings ---

    # "0.0.0.0" is required inside containers so the gateway can reach us.
    host: str = "0.0.0.0"

    port: int = Field(default=8090, validation_alias=AliasChoices("EXT_PORT", "PORT"))

    # Logging verbosity. Maps to Python's logging levels.
    log_level: str = "info"

    # Dump method, URL, headers and raw body of every callback at DEBUG.
    # Bodies carry token claims, so keep this off outside development.
    log_request_details: bool = False

    # --- Entitlement policy ---

    # JSON document holding the partner entitlements. Relative paths resolve
    # against the working directory of the process.
    entitlements_path: Path = Path("entitlements.json")

    model_config = {
        "env_prefix": "EXT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }


# Singleton instance: import this from other modules.
settings = Settings()
