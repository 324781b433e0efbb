"""Configuration loading and Pydantic models for APIAuth."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Verification server binding and logging configuration."""

    host: str = "0.0.0.0"
    port: int = 9000
    log_level: str = "INFO"
    log_format: str = "text"


class AuthConfig(BaseModel):
    """Server-side verification configuration."""

    enabled: bool = True
    accept_legacy: bool = True
    credentials: dict[str, str] = Field(default_factory=dict)


class ClientConfig(BaseModel):
    """Credentials used when signing requests from the CLI."""

    access_id: str = ""
    secret_key: str = ""
    include_method: bool = True


class ObservabilityConfig(BaseModel):
    """Metrics configuration."""

    metrics: bool = True


class APIAuthConfig(BaseModel):
    """Top-level APIAuth configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "host": data.get("host", "0.0.0.0"),
        "port": data.get("port", 9000),
        "log_level": data.get("log_level", "INFO"),
        "log_format": data.get("log_format", "text"),
    }


def _parse_auth(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the auth section from YAML data.

    Access IDs and secrets are coerced to strings so numeric-looking YAML
    scalars still work as credentials.
    """
    if data is None:
        return {}
    credentials = data.get("credentials") or {}
    return {
        "enabled": data.get("enabled", True),
        "accept_legacy": data.get("accept_legacy", True),
        "credentials": {str(k): str(v) for k, v in credentials.items()},
    }


def _parse_client(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the client section from YAML data."""
    if data is None:
        return {}
    return {
        "access_id": str(data.get("access_id", "")),
        "secret_key": str(data.get("secret_key", "")),
        "include_method": data.get("include_method", True),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    if data is None:
        return {}
    return {"metrics": data.get("metrics", True)}


def load_config(path: Path) -> APIAuthConfig:
    """Load an APIAuthConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated APIAuthConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return APIAuthConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        auth=AuthConfig(**_parse_auth(raw.get("auth"))),
        client=ClientConfig(**_parse_client(raw.get("client"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
