"""
Endpoint plan resolution.

Turns the topology mode and the endpoint-related user options
(base-port, bind-address, use-sockets, skip-tcp, socketsdir) into an
EndpointPlan. Resolution is deterministic and does no network I/O.
"""

import ipaddress
import re
from pathlib import Path
from typing import Mapping

from router_bootstrap.exceptions import ConfigurationError
from router_bootstrap.types import Endpoint, EndpointPlan, RoutingRole

MAX_TCP_PORT = 65535
MAX_BASE_PORT = MAX_TCP_PORT - len(RoutingRole) + 1
MAX_SOCKET_PATH = 107

# ASCII digits only
DIGITS = re.compile(r"[0-9]+")

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_DOTTED_NUMBERS = re.compile(r"^[0-9.]+$")


def parse_base_port(value: str) -> int:
    """Parse base-port; all four derived ports must fit in 1..65535."""
    if DIGITS.fullmatch(value):
        port = int(value)
        if 1 <= port <= MAX_BASE_PORT:
            return port
    raise ConfigurationError(
        f"Invalid base-port number {value}; please pick a value between 1 and {MAX_BASE_PORT}",
        option="base-port",
        value=value,
    )


def is_valid_hostname(value: str) -> bool:
    """RFC 1123 hostname syntax; all-numeric dotted names are rejected."""
    if not value or len(value) > 253 or _DOTTED_NUMBERS.match(value):
        return False
    name = value[:-1] if value.endswith(".") else value
    return all(_HOSTNAME_LABEL.match(label) for label in name.split("."))


def is_valid_bind_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return is_valid_hostname(value)


def _socket_path(sockets_dir: str, name: str) -> str:
    path = str(Path(sockets_dir) / name) if sockets_dir else name
    if len(path) > MAX_SOCKET_PATH:
        raise ConfigurationError(
            f"Socket file path can be at most {MAX_SOCKET_PATH} characters "
            f"(was {len(path)}): {path}",
            option="socketsdir",
            value=sockets_dir,
        )
    return path


def resolve_endpoint_plan(multi_master: bool, overrides: Mapping[str, str]) -> EndpointPlan:
    """
    Compute the listening endpoints of the router.

    Args:
        multi_master: In multi-master groups the read-only roles are never
            enabled
        overrides: User options; recognised keys are base-port,
            bind-address, use-sockets, skip-tcp and socketsdir (presence
            of the flag keys enables them)

    Raises:
        ConfigurationError: Invalid base-port, bind-address or sockets
            directory
    """
    base_port = 0
    if "base-port" in overrides:
        base_port = parse_base_port(overrides["base-port"])

    bind_address = ""
    if "bind-address" in overrides:
        bind_address = overrides["bind-address"]
        if not is_valid_bind_address(bind_address):
            raise ConfigurationError(
                f"Invalid --bind-address value {bind_address}",
                option="bind-address",
                value=bind_address,
            )

    use_sockets = "use-sockets" in overrides
    skip_tcp = "skip-tcp" in overrides
    sockets_dir = overrides.get("socketsdir", "")
    if use_sockets and sockets_dir and not Path(sockets_dir).is_dir():
        raise ConfigurationError(
            f"Sockets directory '{sockets_dir}' does not exist",
            option="socketsdir",
            value=sockets_dir,
        )

    endpoints = []
    for role in RoutingRole:
        if multi_master and role.read_only:
            endpoints.append(Endpoint(role=role))
            continue
        port = 0
        if not skip_tcp:
            port = base_port + role.port_offset if base_port else role.default_port
        socket_path = _socket_path(sockets_dir, role.socket_name) if use_sockets else ""
        endpoints.append(Endpoint(role=role, port=port, socket_path=socket_path))

    return EndpointPlan(endpoints=tuple(endpoints), bind_address=bind_address)
