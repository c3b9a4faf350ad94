"""
Core types for router bootstrap.

Internal types are dataclasses; pydantic models are reserved for the
option and file formats in operator-facing code (see options.py and
keyring.py).

Types:
- MemberState / MemberRole: classification of a Group Replication member
- ClusterMember: one member of the replication group
- GroupTopology: classified member list for one observation
- ClusterInfo: cluster identity read from the InnoDB cluster metadata
- RoutingRole / Endpoint / EndpointPlan: listening endpoints of the router
- KeyringInfo: keyring and master key file names
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MemberState(str, Enum):
    """Group Replication member state as reported by the server."""

    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    UNREACHABLE = "UNREACHABLE"
    RECOVERING = "RECOVERING"
    OTHER = "OTHER"

    @classmethod
    def from_server(cls, value: str) -> Optional["MemberState"]:
        """Map a server state string (case-sensitive); None when unknown."""
        if value == cls.OTHER.value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class MemberRole(str, Enum):
    """Role of a member in the replication group."""

    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"


@dataclass(frozen=True)
class ClusterMember:
    """
    A member of the replication group.

    Members are compared by id only; the other fields describe one
    observation of that member.
    """

    id: str
    host: str
    port: int
    state: MemberState = field(compare=False)
    role: MemberRole = field(compare=False)


@dataclass(frozen=True)
class GroupTopology:
    """
    Classified result of one membership observation.

    Attributes:
        members: Members keyed by member id
        single_primary_mode: True when the group runs in single-primary mode
        primary_member_id: Id of the primary, empty when unset or when the
            group runs in multi-primary mode
    """

    members: dict[str, ClusterMember]
    single_primary_mode: bool
    primary_member_id: str = ""

    def primary(self) -> Optional[ClusterMember]:
        """Return the primary in single-primary mode, else None."""
        if not self.single_primary_mode:
            return None
        return self.members.get(self.primary_member_id)

    def online_count(self) -> int:
        return sum(1 for m in self.members.values() if m.state == MemberState.ONLINE)


@dataclass(frozen=True)
class ClusterInfo:
    """Cluster identity and bootstrap servers read from the metadata schema."""

    cluster_name: str
    replicaset_name: str
    multi_master: bool
    bootstrap_servers: str


class RoutingRole(str, Enum):
    """
    Listening endpoint kinds.

    Each role has a fixed configuration section suffix, protocol,
    destination role, default port, base-port offset and socket name.
    """

    CLASSIC_RW = "rw"
    CLASSIC_RO = "ro"
    X_RW = "x_rw"
    X_RO = "x_ro"

    @property
    def protocol(self) -> str:
        return "x" if self in (RoutingRole.X_RW, RoutingRole.X_RO) else "classic"

    @property
    def destination_role(self) -> str:
        if self in (RoutingRole.CLASSIC_RW, RoutingRole.X_RW):
            return "PRIMARY"
        return "SECONDARY"

    @property
    def read_only(self) -> bool:
        return self.destination_role == "SECONDARY"

    @property
    def default_port(self) -> int:
        return _ROLE_DEFAULTS[self][0]

    @property
    def port_offset(self) -> int:
        return _ROLE_DEFAULTS[self][1]

    @property
    def socket_name(self) -> str:
        return _ROLE_DEFAULTS[self][2]


# role -> (default port, base-port offset, socket file name)
_ROLE_DEFAULTS: dict[RoutingRole, tuple[int, int, str]] = {
    RoutingRole.CLASSIC_RW: (6446, 0, "mysql.sock"),
    RoutingRole.CLASSIC_RO: (6447, 1, "mysqlro.sock"),
    RoutingRole.X_RW: (64460, 2, "mysqlx.sock"),
    RoutingRole.X_RO: (64470, 3, "mysqlxro.sock"),
}


@dataclass(frozen=True)
class Endpoint:
    """
    One listening endpoint of the router.

    Attributes:
        role: Endpoint kind
        port: TCP port, 0 when TCP is disabled
        socket_path: Unix socket path, empty when sockets are disabled
    """

    role: RoutingRole
    port: int = 0
    socket_path: str = ""

    @property
    def enabled(self) -> bool:
        return self.port > 0 or bool(self.socket_path)


@dataclass(frozen=True)
class EndpointPlan:
    """
    The four endpoints in fixed role order plus the shared bind address.

    An empty bind_address means the default (0.0.0.0).
    """

    endpoints: tuple[Endpoint, ...]
    bind_address: str = ""

    def get(self, role: RoutingRole) -> Endpoint:
        for endpoint in self.endpoints:
            if endpoint.role == role:
                return endpoint
        return Endpoint(role=role)

    def enabled(self) -> list[Endpoint]:
        return [e for e in self.endpoints if e.enabled]


@dataclass(frozen=True)
class KeyringInfo:
    """Keyring and master key file names, relative to the deployment."""

    keyring_file: str = "keyring"
    master_key_file: str = "mysqlrouter.key"
