"""
Group Replication membership classification.

Two queries are issued (they are not atomic with respect to each other):
the primary member lookup and the member listing. classify_members()
turns their raw rows into a GroupTopology and is pure, so it can be
tested without a session.
"""

import logging
from typing import Optional, Sequence

from router_protocols import MetadataSessionProtocol, Row, SessionError
from router_bootstrap.exceptions import MetadataError, MetadataShapeError
from router_bootstrap.types import ClusterMember, GroupTopology, MemberRole, MemberState

logger = logging.getLogger(__name__)

PRIMARY_MEMBER_QUERY = "show status like 'group_replication_primary_member'"

MEMBERS_QUERY = (
    "SELECT member_id, member_host, member_port, member_state, "
    "@@group_replication_single_primary_mode "
    "FROM performance_schema.replication_group_members "
    "WHERE channel_name = 'group_replication_applier'"
)

SINGLE_PRIMARY_VALUES = ("1", "ON")


def find_primary_member(session: MetadataSessionProtocol) -> str:
    """
    Return the id of the primary member, or "" if none is reported.

    Only the first row of the status output is used.
    """
    try:
        rows = session.query(PRIMARY_MEMBER_QUERY)
    except SessionError as e:
        raise MetadataError(e.message) from e
    if not rows:
        return ""
    row = rows[0]
    if len(row) != 2:
        raise MetadataShapeError(
            f"Unexpected number of fields in the status response. "
            f"Expected = 2, got = {len(row)}",
            expected="2",
            actual=len(row),
        )
    return row[1] or ""


def classify_members(rows: Sequence[Row], primary_member_id: str) -> GroupTopology:
    """
    Classify member rows into a GroupTopology.

    Each row is (id, host, port, state, single_primary_mode). The
    single-primary flag is taken from the last row seen.
    """
    single_primary = True
    members: dict[str, ClusterMember] = {}
    parsed: list[tuple[str, str, int, MemberState]] = []

    for row in rows:
        if len(row) != 5:
            raise MetadataShapeError(
                f"Unexpected number of fields in resultset from group_replication "
                f"query. Expected = 5, got = {len(row)}",
                expected="5",
                actual=len(row),
            )
        member_id, host, port, state_value, mode = row
        if member_id is None or host is None or port is None or state_value is None:
            logger.warning(
                f"Query for group replication members returned NULL values: {row!r}"
            )
            raise MetadataShapeError(
                "Unexpected value in group_replication_metadata query results"
            )
        try:
            port_number = int(port)
        except ValueError as e:
            raise MetadataShapeError(
                f"Unexpected value in group_replication_metadata query results: "
                f"port '{port}'"
            ) from e

        state = MemberState.from_server(state_value)
        if state is None:
            logger.info(f"Unknown state {state_value} in replication_group_members table for {member_id}")
            state = MemberState.OTHER

        single_primary = mode in SINGLE_PRIMARY_VALUES
        parsed.append((member_id, host, port_number, state))

    for member_id, host, port_number, state in parsed:
        if not single_primary or member_id == primary_member_id:
            role = MemberRole.PRIMARY
        else:
            role = MemberRole.SECONDARY
        members[member_id] = ClusterMember(
            id=member_id, host=host, port=port_number, state=state, role=role
        )

    return GroupTopology(
        members=members,
        single_primary_mode=single_primary,
        primary_member_id=primary_member_id if single_primary else "",
    )


def fetch_group_members(
    session: MetadataSessionProtocol, primary_member_id: Optional[str] = None
) -> GroupTopology:
    """Query the server for the group members and classify them."""
    if primary_member_id is None:
        primary_member_id = find_primary_member(session)
    try:
        rows = session.query(MEMBERS_QUERY)
    except SessionError as e:
        raise MetadataError(e.message) from e
    topology = classify_members(rows, primary_member_id)
    logger.debug(
        f"Group has {len(topology.members)} members, "
        f"single_primary_mode={topology.single_primary_mode}"
    )
    return topology
