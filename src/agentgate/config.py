"""Configuration contract for the agentgate service.

Pydantic-validated settings shared by the core, the logging setup and the
gRPC transport. Direct os.environ/os.getenv usage is FORBIDDEN outside
:func:`load_gate_config_from_env`.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_UNASSIGNED_ORGANIZATIONS = ("unassigned", "pending-assignment")


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TransportConfig(BaseModel):
    """gRPC transport settings.

    Environment variables:
        AGENTGATE_GRPC_PORT   — listen port
        GRPC_TLS_ENABLED      — enable TLS on the server port
        GRPC_TLS_CA_CERT      — CA certificate path (mTLS client verification)
        GRPC_TLS_SERVER_CERT  — server certificate path
        GRPC_TLS_SERVER_KEY   — server private key path
    """

    model_config = {"extra": "ignore"}

    port: int = Field(default=50070, description="Port the gRPC server binds to")
    tls_enabled: bool = Field(default=False, description="Serve over TLS instead of plaintext")
    ca_cert_path: str = Field(default="", description="CA certificate for client verification")
    server_cert_path: str = Field(default="", description="Server certificate chain path")
    server_key_path: str = Field(default="", description="Server private key path")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"Port out of range: {v}")
        return v


class GateConfig(BaseModel):
    """Configuration for the agent access engine.

    RULE: every setting below MUST come through this object.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the service",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )
    service_name: Optional[str] = Field(
        default=None,
        description="Service name used as the root logger name",
    )

    # Tenancy
    unassigned_organization_ids: list[str] = Field(
        default_factory=lambda: list(DEFAULT_UNASSIGNED_ORGANIZATIONS),
        description="Organization ids meaning 'no organization scope'",
    )

    # Grants
    default_grant_ttl_seconds: Optional[int] = Field(
        default=None,
        description="Expiry applied to grants created by approval. None = never expires",
    )

    # Notifications
    notifications_enabled: bool = Field(
        default=True,
        description="Deliver workflow events to the notification sink",
    )

    transport: TransportConfig = Field(
        default_factory=TransportConfig,
        description="gRPC transport settings",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("default_grant_ttl_seconds")
    @classmethod
    def validate_grant_ttl(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Grant TTL must be positive or None")
        return v

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",
    }


def _truthy(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def load_gate_config_from_env() -> GateConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - SERVICE_NAME: Service name for logging
    - AGENTGATE_UNASSIGNED_ORGS: Comma-separated sentinel organization ids
    - AGENTGATE_GRANT_TTL_SECONDS: Default TTL for approved grants
    - AGENTGATE_NOTIFICATIONS: Enable the notification sink (default: true)
    - AGENTGATE_GRPC_PORT, GRPC_TLS_*: transport settings

    Returns:
        GateConfig instance with values from environment or defaults.
    """
    import os

    sentinels_raw = os.getenv("AGENTGATE_UNASSIGNED_ORGS", "")
    sentinels = [s.strip() for s in sentinels_raw.split(",") if s.strip()]

    ttl_raw = os.getenv("AGENTGATE_GRANT_TTL_SECONDS", "")

    transport = TransportConfig(
        port=int(os.getenv("AGENTGATE_GRPC_PORT", "50070")),
        tls_enabled=_truthy(os.getenv("GRPC_TLS_ENABLED", "false")),
        ca_cert_path=os.getenv("GRPC_TLS_CA_CERT", ""),
        server_cert_path=os.getenv("GRPC_TLS_SERVER_CERT", ""),
        server_key_path=os.getenv("GRPC_TLS_SERVER_KEY", ""),
    )

    return GateConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_truthy(os.getenv("LOG_JSON", "false")),
        service_name=os.getenv("SERVICE_NAME"),
        unassigned_organization_ids=sentinels or list(DEFAULT_UNASSIGNED_ORGANIZATIONS),
        default_grant_ttl_seconds=int(ttl_raw) if ttl_raw else None,
        notifications_enabled=_truthy(os.getenv("AGENTGATE_NOTIFICATIONS", "true")),
        transport=transport,
    )


__all__ = [
    "DEFAULT_UNASSIGNED_ORGANIZATIONS",
    "GateConfig",
    "LogLevel",
    "TransportConfig",
    "load_gate_config_from_env",
]
