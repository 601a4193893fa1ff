"""gRPC transport for :class:`AgentAccessService`.

No generated stubs: each operation is a unary method on the
``agentgate.v1.AgentAccess`` service, registered through a generic handler
with a JSON request/response codec. Typed errors are mapped to gRPC status
codes by :func:`grpc_error_handler` and the ``error-code`` trailer.

Request bodies are JSON objects whose keys match the service method
arguments, e.g. ``SubmitRequest``::

    {"subject_id": "u1", "agent_id": "prem-1",
     "scope": {"organization_id": "acme"}, "reason": "need it"}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import grpc
import grpc.aio
from pydantic import ValidationError

from .config import GateConfig, TransportConfig
from .exceptions import ConfigurationError, InvalidArgumentError, grpc_error_handler
from .models import GrantRestrictions
from .service import AgentAccessService

__all__ = [
    "METHODS",
    "SERVICE_NAME",
    "AgentAccessServicer",
    "build_generic_handler",
    "create_server_credentials",
    "decode_message",
    "encode_message",
    "serve",
]

logger = logging.getLogger(__name__)

SERVICE_NAME = "agentgate.v1.AgentAccess"

METHODS = (
    "EvaluateAssignment",
    "SubmitRequest",
    "ResolveRequest",
    "RecordUsage",
    "RevokeGrant",
    "GetPermissionSummary",
    "GrantDirect",
    "GrantToNetwork",
    "GrantToCompany",
    "SuspendGrant",
    "ReinstateGrant",
    "ReviewQueue",
    "ApprovalStats",
)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def decode_message(data: bytes) -> dict[str, Any]:
    """Deserialize a request body. Empty bodies decode to ``{}``."""
    if not data:
        return {}
    message = json.loads(data.decode("utf-8"))
    if not isinstance(message, dict):
        raise ValueError("Request body must be a JSON object")
    return message


def encode_message(message: dict[str, Any]) -> bytes:
    return json.dumps(message, default=str, ensure_ascii=False).encode("utf-8")


def _require(message: dict[str, Any], key: str) -> Any:
    value = message.get(key)
    if value is None or value == "":
        raise InvalidArgumentError(f"Missing field: {key}", field=key)
    return value


def _restrictions(message: dict[str, Any]) -> Optional[GrantRestrictions]:
    value = message.get("restrictions")
    if value is None:
        return None
    try:
        return GrantRestrictions.model_validate(value)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid restrictions: {e}", field="restrictions") from e


# ---------------------------------------------------------------------------
# Servicer
# ---------------------------------------------------------------------------


class AgentAccessServicer:
    """Async unary handlers delegating to an :class:`AgentAccessService`."""

    def __init__(self, service: AgentAccessService) -> None:
        self._service = service

    @grpc_error_handler
    async def EvaluateAssignment(self, request, context):
        decision = self._service.evaluate_assignment(
            _require(request, "subject_id"),
            _require(request, "agent_id"),
            _require(request, "scope"),
        )
        return decision.model_dump(mode="json")

    @grpc_error_handler
    async def SubmitRequest(self, request, context):
        agent_request = self._service.submit_request(
            _require(request, "subject_id"),
            _require(request, "agent_id"),
            _require(request, "scope"),
            request.get("reason", ""),
            priority=request.get("priority", "normal"),
            supersedes=request.get("supersedes"),
        )
        return agent_request.model_dump(mode="json")

    @grpc_error_handler
    async def ResolveRequest(self, request, context):
        agent_request = self._service.resolve_request(
            _require(request, "reviewer_id"),
            _require(request, "request_id"),
            _require(request, "decision"),
            request.get("notes"),
        )
        return agent_request.model_dump(mode="json")

    @grpc_error_handler
    async def RecordUsage(self, request, context):
        grant = self._service.record_usage(
            _require(request, "grant_id"),
            network_id=request.get("network_id"),
        )
        return grant.model_dump(mode="json")

    @grpc_error_handler
    async def RevokeGrant(self, request, context):
        self._service.revoke_grant(_require(request, "grant_id"), _require(request, "by_id"))
        return {}

    @grpc_error_handler
    async def GetPermissionSummary(self, request, context):
        summary = self._service.get_permission_summary(_require(request, "subject_id"))
        return summary.model_dump(mode="json")

    @grpc_error_handler
    async def GrantDirect(self, request, context):
        grant = self._service.grant_direct(
            _require(request, "subject_id"),
            _require(request, "agent_id"),
            _require(request, "scope"),
            _restrictions(request),
        )
        return grant.model_dump(mode="json")

    @grpc_error_handler
    async def GrantToNetwork(self, request, context):
        grant = self._service.grant_to_network(
            _require(request, "admin_id"),
            _require(request, "agent_id"),
            _require(request, "organization_id"),
            _require(request, "network_id"),
            _restrictions(request),
        )
        return grant.model_dump(mode="json")

    @grpc_error_handler
    async def GrantToCompany(self, request, context):
        grant = self._service.grant_to_company(
            _require(request, "admin_id"),
            _require(request, "agent_id"),
            _require(request, "organization_id"),
            _restrictions(request),
        )
        return grant.model_dump(mode="json")

    @grpc_error_handler
    async def SuspendGrant(self, request, context):
        grant = self._service.suspend_grant(_require(request, "grant_id"), _require(request, "by_id"))
        return grant.model_dump(mode="json")

    @grpc_error_handler
    async def ReinstateGrant(self, request, context):
        grant = self._service.reinstate_grant(_require(request, "grant_id"), _require(request, "by_id"))
        return grant.model_dump(mode="json")

    @grpc_error_handler
    async def ReviewQueue(self, request, context):
        queue = self._service.review_queue(_require(request, "reviewer_id"))
        return {"requests": [r.model_dump(mode="json") for r in queue]}

    @grpc_error_handler
    async def ApprovalStats(self, request, context):
        stats = self._service.approval_stats(request.get("organization_id"))
        return stats.model_dump(mode="json")


def build_generic_handler(servicer: AgentAccessServicer) -> grpc.GenericRpcHandler:
    """Register every method of the servicer under :data:`SERVICE_NAME`."""
    handlers = {
        name: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, name),
            request_deserializer=decode_message,
            response_serializer=encode_message,
        )
        for name in METHODS
    }
    return grpc.method_handlers_generic_handler(SERVICE_NAME, handlers)


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


def _read_file(path: str) -> bytes:
    """Read a file as bytes, raising a clear error on failure."""
    if not path:
        raise ConfigurationError("TLS is enabled but a certificate path is not set")
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"TLS file not found: {path}", path=path)
    return p.read_bytes()


def create_server_credentials(transport: TransportConfig) -> grpc.ServerCredentials | None:
    """Create server TLS credentials from configuration.

    Returns ``None`` if TLS is not enabled — caller should fall back to
    ``server.add_insecure_port()``. When a CA certificate is configured,
    clients must present a certificate signed by it (mTLS).
    """
    if not transport.tls_enabled:
        return None

    server_cert = _read_file(transport.server_cert_path)
    server_key = _read_file(transport.server_key_path)
    ca_cert = _read_file(transport.ca_cert_path) if transport.ca_cert_path else None

    logger.info("TLS server credentials loaded (mTLS=%s)", ca_cert is not None)

    return grpc.ssl_server_credentials(
        [(server_key, server_cert)],
        root_certificates=ca_cert,
        require_client_auth=ca_cert is not None,
    )


async def serve(
    service: AgentAccessService,
    config: Optional[GateConfig] = None,
    *,
    host: str = "[::]",
) -> grpc.aio.Server:
    """Start an async gRPC server exposing the service.

    The caller owns the returned server (``await server.wait_for_termination()``
    / ``await server.stop(grace)``).
    """
    config = config or service.config
    server = grpc.aio.server()
    server.add_generic_rpc_handlers((build_generic_handler(AgentAccessServicer(service)),))

    address = f"{host}:{config.transport.port}"
    credentials = create_server_credentials(config.transport)
    if credentials is None:
        server.add_insecure_port(address)
    else:
        server.add_secure_port(address, credentials)

    await server.start()
    logger.info("%s listening on %s (tls=%s)", SERVICE_NAME, address, credentials is not None)
    return server
