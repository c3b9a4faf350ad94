"""
Router configuration file rendering and inspection.

The rendered layout is a contract with the router runtime: section order,
key order and blank lines are fixed. Existing files are read back with
configparser to find the identity (router id, name, cluster) of a
previous deployment.
"""

import configparser
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from router_bootstrap.exceptions import DeploymentIOError
from router_bootstrap.options import BootstrapOptions
from router_bootstrap.types import Endpoint, EndpointPlan

logger = logging.getLogger(__name__)

HEADER = "# File automatically generated during MySQL Router bootstrap"
DEFAULT_BIND_ADDRESS = "0.0.0.0"
CONNECT_TIMEOUT = 30
READ_TIMEOUT = 30
METADATA_TTL = 5
METADATA_CACHE_PREFIX = "metadata_cache:"


@dataclass(frozen=True)
class ExistingConfig:
    """Identity of a previously written configuration."""

    router_id: int = 0
    name: str = ""
    cluster_name: str = ""
    account_user: str = ""


def _endpoint_lines(endpoint: Endpoint, plan: EndpointPlan) -> list[str]:
    lines = []
    if endpoint.port > 0:
        lines.append(f"bind_address={plan.bind_address or DEFAULT_BIND_ADDRESS}")
        lines.append(f"bind_port={endpoint.port}")
    if endpoint.socket_path:
        lines.append(f"socket={endpoint.socket_path}")
    return lines


def render_config(
    options: BootstrapOptions,
    router_id: int,
    cluster_name: str,
    replicaset_name: str,
    bootstrap_servers: str,
    account_user: str,
) -> str:
    """Render the complete configuration file text."""
    lines = [HEADER, "[DEFAULT]"]
    for key, value in (
        ("name", options.name),
        ("user", options.system_user),
        ("logging_folder", options.override_logdir),
        ("runtime_folder", options.override_rundir),
        ("data_folder", options.override_datadir),
        ("keyring_path", options.keyring_file_path),
        ("master_key_path", options.master_key_file_path),
    ):
        if value:
            lines.append(f"{key}={value}")
    lines += [
        f"connect_timeout={CONNECT_TIMEOUT}",
        f"read_timeout={READ_TIMEOUT}",
        "",
        "[logger]",
        "level = INFO",
        "",
        f"[{METADATA_CACHE_PREFIX}{cluster_name}]",
        f"router_id={router_id}",
        f"bootstrap_server_addresses={bootstrap_servers}",
        f"user={account_user}",
        f"metadata_cluster={cluster_name}",
        f"ttl={METADATA_TTL}",
    ]
    lines += [f"{key}={value}" for key, value in options.ssl.config_items()]
    lines.append("")

    plan = options.endpoints
    for endpoint in plan.enabled():
        role = endpoint.role
        lines.append(f"[routing:{cluster_name}_{replicaset_name}_{role.value}]")
        lines += _endpoint_lines(endpoint, plan)
        lines += [
            f"destinations=metadata-cache://{cluster_name}/{replicaset_name}"
            f"?role={role.destination_role}",
            "routing_strategy=round-robin",
            f"protocol={role.protocol}",
            "",
        ]

    return "\n".join(lines) + "\n"


def read_existing_config(path: Union[str, Path]) -> Optional[ExistingConfig]:
    """
    Read the identity of an existing configuration file.

    Returns:
        None if the file does not exist; an ExistingConfig with router_id 0
        if it has no metadata cache section

    Raises:
        DeploymentIOError: The file exists but can't be read or parsed
    """
    path = Path(path)
    if not path.exists():
        return None

    # [DEFAULT] is read as a plain section so its keys don't leak into others
    parser = configparser.ConfigParser(
        interpolation=None, strict=False, default_section="__no_defaults__"
    )
    try:
        with path.open(encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as e:
        raise DeploymentIOError(f"Could not read existing configuration {path}: {e}", path=path) from e

    name = parser.get("DEFAULT", "name", fallback="")
    for section in parser.sections():
        if not section.startswith(METADATA_CACHE_PREFIX):
            continue
        cluster = section[len(METADATA_CACHE_PREFIX):]
        raw_id = parser.get(section, "router_id", fallback="0")
        try:
            router_id = int(raw_id)
        except ValueError:
            logger.warning(f"Ignoring invalid router_id '{raw_id}' in {path}")
            router_id = 0
        account_user = parser.get(section, "user", fallback="")
        return ExistingConfig(
            router_id=router_id, name=name, cluster_name=cluster, account_user=account_user
        )
    return ExistingConfig(name=name)
