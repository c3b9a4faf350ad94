"""
Metadata server pre-flight checks and cluster discovery.

MetadataValidator runs four strictly ordered stages against the server
given to bootstrap; the first failure stops the sequence:

1. Schema version is readable and supported
2. Exactly one cluster/replicaset is defined and it is this group
3. The server itself is an ONLINE group member
4. The group has quorum (more than half the members ONLINE)

fetch_cluster_info() reads the cluster identity and bootstrap server list
from the metadata schema. warn_on_no_ssl() warns when the bootstrap
connection is not encrypted.
"""

import logging
from typing import Optional

from router_protocols import MetadataSessionProtocol, Row, SessionError
from router_bootstrap.exceptions import (
    HealthError,
    MetadataError,
    MetadataShapeError,
    QuorumError,
    UnsupportedMetadataError,
)
from router_bootstrap.types import ClusterInfo

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMA_MAJOR = 1

SCHEMA_VERSION_QUERY = "SELECT * FROM mysql_innodb_cluster_metadata.schema_version"

METADATA_SUPPORT_QUERY = (
    "SELECT  ((SELECT count(*) FROM mysql_innodb_cluster_metadata.clusters) <= 1 "
    " AND (SELECT count(*) FROM mysql_innodb_cluster_metadata.replicasets) <= 1) "
    "as has_one_replicaset, "
    "(SELECT attributes->>'$.group_replication_group_name' "
    "FROM mysql_innodb_cluster_metadata.replicasets) "
    " = @@group_replication_group_name as replicaset_is_ours"
)

MEMBER_STATE_QUERY = (
    "SELECT member_state FROM performance_schema.replication_group_members "
    "WHERE member_id = @@server_uuid"
)

QUORUM_QUERY = (
    "SELECT SUM(IF(member_state = 'ONLINE', 1, 0)) as num_onlines, "
    "COUNT(*) as num_total FROM performance_schema.replication_group_members"
)

CLUSTER_INFO_QUERY = (
    "SELECT F.cluster_name, R.replicaset_name, R.topology_type, "
    "JSON_UNQUOTE(JSON_EXTRACT(I.addresses, '$.mysqlClassic')) "
    "FROM mysql_innodb_cluster_metadata.clusters AS F, "
    "mysql_innodb_cluster_metadata.replicasets AS R, "
    "mysql_innodb_cluster_metadata.instances AS I "
    "WHERE R.cluster_id = F.cluster_id AND I.replicaset_id = R.replicaset_id"
)

SSL_CIPHER_QUERY = "show status like 'ssl_cipher'"

TOPOLOGY_TYPES = {"pm": False, "mm": True}


def _parse_count(value: Optional[str], what: str) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise MetadataShapeError(f"Invalid value for {what}: '{value}'") from e


class MetadataValidator:
    """
    Runs the pre-flight stages against a connected session.

    Example:
        validator = MetadataValidator(session)
        validator.check()  # raises MetadataError subclasses on failure
    """

    def __init__(self, session: MetadataSessionProtocol) -> None:
        self._session = session

    def _query_one(self, sql: str) -> Row:
        try:
            row = self._session.query_one(sql)
        except SessionError as e:
            raise MetadataError(e.message) from e
        if row is None:
            raise MetadataShapeError("No result returned for metadata query")
        return row

    def check(self) -> None:
        """Run all stages in order."""
        self.check_schema_version()
        self.check_metadata_supported()
        self.check_member_online()
        self.check_quorum()
        logger.info("Metadata server passed all pre-flight checks")

    def check_schema_version(self) -> tuple[int, int, int]:
        row = self._query_one(SCHEMA_VERSION_QUERY)
        if len(row) not in (2, 3):
            raise MetadataShapeError(
                f"Invalid number of values returned from "
                f"mysql_innodb_cluster_metadata.schema_version: "
                f"expected 2 or 3 got {len(row)}",
                expected="2 or 3",
                actual=len(row),
            )
        parts = [_parse_count(v, "schema_version") for v in row]
        version = (parts[0], parts[1], parts[2] if len(parts) == 3 else 0)
        if version[0] != SUPPORTED_SCHEMA_MAJOR:
            raise UnsupportedMetadataError(
                f"This version of MySQL Router is not compatible with the "
                f"provided MySQL InnoDB cluster metadata "
                f"(schema version {'.'.join(str(v) for v in version)})."
            )
        logger.debug(f"Metadata schema version {version}")
        return version

    def check_metadata_supported(self) -> None:
        row = self._query_one(METADATA_SUPPORT_QUERY)
        if len(row) != 2:
            raise MetadataShapeError(
                f"Invalid number of values returned from query for metadata "
                f"support: expected 2 got {len(row)}",
                expected="2",
                actual=len(row),
            )
        has_one_replicaset, replicaset_is_ours = row
        if _parse_count(has_one_replicaset, "has_one_replicaset") != 1:
            raise UnsupportedMetadataError(
                "The provided server contains an unsupported InnoDB cluster "
                "metadata: more than one cluster or replicaset is defined."
            )
        if _parse_count(replicaset_is_ours, "replicaset_is_ours") != 1:
            raise UnsupportedMetadataError(
                "The provided server contains an unsupported InnoDB cluster "
                "metadata: the replicaset it describes is not the group this "
                "server belongs to."
            )

    def check_member_online(self) -> None:
        row = self._query_one(MEMBER_STATE_QUERY)
        if len(row) != 1:
            raise MetadataShapeError(
                f"Invalid number of values returned from "
                f"performance_schema.replication_group_members: "
                f"expected 1 got {len(row)}",
                expected="1",
                actual=len(row),
            )
        state = row[0] or ""
        if state != "ONLINE":
            raise HealthError(state)

    def check_quorum(self) -> None:
        row = self._query_one(QUORUM_QUERY)
        if len(row) != 2:
            raise MetadataShapeError(
                f"Invalid number of values returned from "
                f"performance_schema.replication_group_members: "
                f"expected 2 got {len(row)}",
                expected="2",
                actual=len(row),
            )
        online = _parse_count(row[0], "num_onlines")
        total = _parse_count(row[1], "num_total")
        if not online * 2 > total:
            raise QuorumError(online, total)
        logger.info(f"Group has quorum ({online} of {total} members ONLINE)")


def fetch_cluster_info(session: MetadataSessionProtocol) -> ClusterInfo:
    """
    Read cluster name, replicaset name, topology and servers from metadata.

    Raises:
        UnsupportedMetadataError: No cluster, more than one cluster or
            replicaset, or an unknown topology type
    """
    try:
        rows = session.query(CLUSTER_INFO_QUERY)
    except SessionError as e:
        raise MetadataError(f"Error querying metadata: {e.message}") from e

    cluster_name = ""
    replicaset_name = ""
    multi_master = False
    servers: list[str] = []

    for row in rows:
        if len(row) != 4:
            raise MetadataShapeError(
                f"Invalid number of values returned from metadata query: "
                f"expected 4 got {len(row)}",
                expected="4",
                actual=len(row),
            )
        cluster, replicaset, topology, address = row
        cluster = cluster or ""
        replicaset = replicaset or ""
        if cluster_name and cluster != cluster_name:
            raise UnsupportedMetadataError(
                "Metadata contains more than one cluster, which is not supported"
            )
        if replicaset_name and replicaset != replicaset_name:
            raise UnsupportedMetadataError(
                "Metadata contains more than one replica-set, which is not supported"
            )
        cluster_name = cluster
        replicaset_name = replicaset

        if topology not in TOPOLOGY_TYPES:
            raise UnsupportedMetadataError(
                f"Unknown topology type in metadata: {topology}"
            )
        multi_master = TOPOLOGY_TYPES[topology]
        if address:
            servers.append(f"mysql://{address}")

    if not cluster_name:
        raise UnsupportedMetadataError("No clusters defined in metadata server")

    info = ClusterInfo(
        cluster_name=cluster_name,
        replicaset_name=replicaset_name,
        multi_master=multi_master,
        bootstrap_servers=",".join(servers),
    )
    logger.info(
        f"Found cluster '{cluster_name}' replicaset '{replicaset_name}' "
        f"({'multi' if multi_master else 'single'}-master, {len(servers)} servers)"
    )
    return info


def warn_on_no_ssl(session: MetadataSessionProtocol, ssl_mode: str = "") -> bool:
    """
    Check whether the bootstrap connection is encrypted.

    Only checked when the SSL mode is unspecified or PREFERRED; any other
    mode either forbids or enforces encryption already.

    Returns:
        False (and logs a warning) when the connection is not encrypted
    """
    if ssl_mode and ssl_mode.upper() != "PREFERRED":
        return True
    try:
        row = session.query_one(SSL_CIPHER_QUERY)
    except SessionError as e:
        raise MetadataError(f"Error reading 'ssl_cipher' status variable: {e.message}") from e
    if row is None or len(row) != 2 or row[0] != "ssl_cipher":
        raise MetadataShapeError("Error reading 'ssl_cipher' status variable")
    if not row[1]:
        logger.warning(
            "WARNING: The MySQL server does not have SSL configured and "
            "metadata used by the router may be transmitted unencrypted."
        )
        return False
    return True
