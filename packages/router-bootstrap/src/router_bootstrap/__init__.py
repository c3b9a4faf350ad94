"""
Router bootstrap - provisions a connection router for an InnoDB cluster.

This package provides:
- MySQLSession: mysql-connector-python adapter for the metadata server
- MetadataValidator / classify_members: pre-flight checks and topology
- AccountProvisioner / RouterRegistrar: changes made on the cluster
- resolve_endpoint_plan / render_config: the local router configuration
- BootstrapOrchestrator: runs a complete bootstrap into a directory
"""

from router_bootstrap.accounts import AccountProvisioner, compute_password_hash
from router_bootstrap.config_writer import read_existing_config, render_config
from router_bootstrap.deployment import BootstrapOrchestrator, DeploymentMode, DeploymentResult
from router_bootstrap.endpoints import resolve_endpoint_plan
from router_bootstrap.exceptions import (
    AccountProvisioningError,
    ConfigurationError,
    DeploymentConflictError,
    DeploymentIOError,
    HealthError,
    KeyringError,
    MetadataError,
    MetadataShapeError,
    QuorumError,
    RouterBootstrapError,
    UnsupportedMetadataError,
)
from router_bootstrap.membership import classify_members, fetch_group_members
from router_bootstrap.metadata import MetadataValidator, fetch_cluster_info, warn_on_no_ssl
from router_bootstrap.options import BootstrapOptions, SslOptions
from router_bootstrap.registry import RouterRegistrar
from router_bootstrap.session import MySQLSession
from router_bootstrap.types import (
    ClusterInfo,
    ClusterMember,
    Endpoint,
    EndpointPlan,
    GroupTopology,
    KeyringInfo,
    MemberRole,
    MemberState,
    RoutingRole,
)

__all__ = [
    # Orchestration
    "BootstrapOrchestrator",
    "DeploymentMode",
    "DeploymentResult",
    "MySQLSession",
    # Components
    "AccountProvisioner",
    "MetadataValidator",
    "RouterRegistrar",
    "classify_members",
    "compute_password_hash",
    "fetch_cluster_info",
    "fetch_group_members",
    "read_existing_config",
    "render_config",
    "resolve_endpoint_plan",
    "warn_on_no_ssl",
    # Options and types
    "BootstrapOptions",
    "SslOptions",
    "ClusterInfo",
    "ClusterMember",
    "Endpoint",
    "EndpointPlan",
    "GroupTopology",
    "KeyringInfo",
    "MemberRole",
    "MemberState",
    "RoutingRole",
    # Errors
    "RouterBootstrapError",
    "ConfigurationError",
    "MetadataError",
    "MetadataShapeError",
    "UnsupportedMetadataError",
    "HealthError",
    "QuorumError",
    "AccountProvisioningError",
    "DeploymentConflictError",
    "DeploymentIOError",
    "KeyringError",
]
