"""
Request gating for the MCP endpoint.

Checks run in a fixed order before any JSON-RPC handling:

1. Host header (DNS rebinding protection): loopback, private IPv4 ranges
   and mDNS ``.local`` names only. The server is meant for a single machine
   or a LAN, never a public hostname.
2. Origin header, only when present: exact match or ``scheme://host:*``
   wildcard-port match against the allow-list.
3. Bearer token, only when a server token is configured, compared in
   constant time.

Rejections carry a fixed body and log only the offending header value.
The Authorization header is never logged.
"""

import hmac
import logging
import re
from dataclasses import dataclass, field
from ipaddress import IPv4Address, ip_address, ip_network
from typing import Optional
from urllib.parse import urlsplit

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from config.settings import DEFAULT_ALLOWED_ORIGINS

logger = logging.getLogger(__name__)

HEALTH_PATH = "/healthz"

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0"})

_PRIVATE_NETWORKS = (
    ip_network("10.0.0.0/8"),
    ip_network("172.16.0.0/12"),
    ip_network("192.168.0.0/16"),
)

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def _split_host(host: str) -> tuple[str, Optional[str]]:
    hostname, sep, port = host.rpartition(":")
    if not sep:
        return host, None
    return hostname, port


def _is_private_ipv4(hostname: str) -> bool:
    try:
        address = ip_address(hostname)
    except ValueError:
        return False
    if not isinstance(address, IPv4Address):
        return False
    return any(address in network for network in _PRIVATE_NETWORKS)


def validate_host(host: Optional[str], port: Optional[int] = None) -> bool:
    """
    Check a Host header value.

    Args:
        host: Raw Host header, possibly with a port
        port: The server's listen port; ``.local`` names must use it if
            they carry a port at all
    """
    if not host:
        return False

    hostname, host_port = _split_host(host.strip().lower())
    if host_port is not None and not host_port.isdigit():
        return False

    if hostname in _LOOPBACK_HOSTS:
        return True

    if _is_private_ipv4(hostname):
        return True

    if hostname.endswith(".local"):
        return host_port is None or (port is not None and host_port == str(port))

    return False


def validate_origin(origin: Optional[str], allowed_origins) -> bool:
    """
    Check an Origin header against the allow-list.

    Requests without an Origin (non-browser clients) are allowed.
    """
    if not origin:
        return True

    try:
        parsed = urlsplit(origin)
        hostname = parsed.hostname
    except ValueError:
        return False

    for allowed in allowed_origins:
        if allowed.endswith(":*"):
            if hostname and f"{parsed.scheme}://{hostname}" == allowed[:-2].lower():
                return True
        elif origin == allowed:
            return True

    return False


def check_bearer(authorization: Optional[str], expected_token: str) -> bool:
    """
    Check an Authorization header against the configured server token.

    Lengths are compared before contents so a mismatched length never
    reaches the comparison.
    """
    if not expected_token:
        return True
    if not authorization:
        return False

    match = _BEARER.match(authorization.strip())
    if not match:
        return False

    provided = match.group(1).strip().encode("utf-8")
    expected = expected_token.encode("utf-8")
    if len(provided) != len(expected):
        return False
    return hmac.compare_digest(provided, expected)


@dataclass(frozen=True)
class Rejection:
    """A failed security check: HTTP status and fixed JSON body."""
    status_code: int
    body: dict


FORBIDDEN_HOST = Rejection(403, {"error": "Forbidden: Invalid Host header"})
FORBIDDEN_ORIGIN = Rejection(403, {"error": "Forbidden: Invalid Origin"})
UNAUTHORIZED = Rejection(401, {"error": "unauthorized"})


@dataclass(frozen=True)
class SecurityGate:
    """
    Host, Origin and bearer checks for one server configuration.

    Usage:
        gate = SecurityGate(allowed_origins=("http://localhost:*",), auth_token="s3cret", port=8080)
        rejection = gate.check(host="localhost:8080", origin=None, authorization="Bearer s3cret")
    """
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    auth_token: str = field(default="", repr=False)
    port: Optional[int] = None

    def check(
        self,
        host: Optional[str],
        origin: Optional[str],
        authorization: Optional[str],
    ) -> Optional[Rejection]:
        """Run all checks in order; return the first failure, or None."""
        if not validate_host(host, self.port):
            logger.warning(f"Rejected request with invalid Host: {host}")
            return FORBIDDEN_HOST

        if origin and not validate_origin(origin, self.allowed_origins):
            logger.warning(f"Rejected request with invalid Origin: {origin}")
            return FORBIDDEN_ORIGIN

        if not check_bearer(authorization, self.auth_token):
            logger.warning("Rejected request with missing or invalid bearer token")
            return UNAUTHORIZED

        return None


class SecurityMiddleware(BaseHTTPMiddleware):
    """Applies a SecurityGate to every request under the MCP base path."""

    def __init__(self, app, gate: SecurityGate, base_path: str):
        super().__init__(app)
        self.gate = gate
        self.base_path = base_path.rstrip("/") or "/"

    def _is_protected(self, path: str) -> bool:
        if path == HEALTH_PATH:
            return False
        if self.base_path == "/":
            return True
        return path == self.base_path or path.startswith(self.base_path + "/")

    async def dispatch(self, request: Request, call_next):
        if not self._is_protected(request.url.path):
            return await call_next(request)

        rejection = self.gate.check(
            host=request.headers.get("host"),
            origin=request.headers.get("origin"),
            authorization=request.headers.get("authorization"),
        )
        if rejection is not None:
            return JSONResponse(rejection.body, status_code=rejection.status_code)

        return await call_next(request)
