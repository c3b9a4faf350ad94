"""
Router registration in the InnoDB cluster metadata.

A router is a row in mysql_innodb_cluster_metadata.routers attached to a
row in mysql_innodb_cluster_metadata.hosts. Re-bootstrapping the same
deployment reuses its router id when the metadata still has it for this
host.
"""

import logging

from router_protocols import MetadataSessionProtocol
from router_bootstrap.session import quote
from router_bootstrap.types import EndpointPlan, RoutingRole

logger = logging.getLogger(__name__)

FIND_HOST_TEMPLATE = (
    "SELECT host_id, host_name FROM mysql_innodb_cluster_metadata.hosts "
    "WHERE host_name = {host} LIMIT 1"
)
INSERT_HOST_TEMPLATE = (
    "INSERT INTO mysql_innodb_cluster_metadata.hosts (host_name, location, attributes) "
    "VALUES ({host}, '', JSON_OBJECT('registeredFrom', 'mysql-router'))"
)
INSERT_ROUTER_TEMPLATE = (
    "INSERT INTO mysql_innodb_cluster_metadata.routers (host_id, router_name) "
    "VALUES ({host_id}, {name})"
)
FIND_ROUTER_TEMPLATE = (
    "SELECT h.host_name FROM mysql_innodb_cluster_metadata.routers r "
    "JOIN mysql_innodb_cluster_metadata.hosts h ON r.host_id = h.host_id "
    "WHERE r.router_id = {router_id}"
)
UPDATE_ROUTER_TEMPLATE = (
    "UPDATE mysql_innodb_cluster_metadata.routers SET attributes = "
    "JSON_SET(JSON_SET(JSON_SET(JSON_SET(JSON_SET(IF(attributes IS NULL, '{{}}', attributes), "
    "'$.RWEndpoint', {rw}), '$.ROEndpoint', {ro}), '$.RWXEndpoint', {rwx}), "
    "'$.ROXEndpoint', {rox}), '$.MetadataUser', {user}) "
    "WHERE router_id = {router_id}"
)


def _endpoint_value(plan: EndpointPlan, role: RoutingRole) -> str:
    endpoint = plan.get(role)
    if endpoint.port > 0:
        return quote(str(endpoint.port))
    if endpoint.socket_path:
        return quote(endpoint.socket_path)
    return "NULL"


class RouterRegistrar:
    """Registers a router instance and records its endpoints."""

    def __init__(self, session: MetadataSessionProtocol, hostname: str) -> None:
        self._session = session
        self._hostname = hostname

    def register_router(self, name: str) -> int:
        """Insert a router row for this host; return the new router id."""
        row = self._session.query_one(FIND_HOST_TEMPLATE.format(host=quote(self._hostname)))
        if row is None:
            self._session.execute(INSERT_HOST_TEMPLATE.format(host=quote(self._hostname)))
            host_id = self._session.last_insert_id()
            logger.debug(f"Registered host {self._hostname} with id {host_id}")
        else:
            host_id = int(row[0] or 0)

        self._session.execute(INSERT_ROUTER_TEMPLATE.format(host_id=host_id, name=quote(name)))
        router_id = self._session.last_insert_id()
        logger.info(f"Registered router '{name}' on {self._hostname} with id {router_id}")
        return router_id

    def ensure_registered(self, router_id: int, name: str) -> int:
        """
        Reuse `router_id` if the metadata has it for this host, else register.
        """
        if router_id > 0:
            row = self._session.query_one(FIND_ROUTER_TEMPLATE.format(router_id=router_id))
            if row is not None and row[0] == self._hostname:
                logger.info(f"Reusing router id {router_id}")
                return router_id
            logger.warning(
                f"Router id {router_id} is not registered for host {self._hostname}, "
                f"registering a new one"
            )
        return self.register_router(name)

    def update_router_info(self, router_id: int, plan: EndpointPlan, account_user: str) -> None:
        self._session.execute(
            UPDATE_ROUTER_TEMPLATE.format(
                rw=_endpoint_value(plan, RoutingRole.CLASSIC_RW),
                ro=_endpoint_value(plan, RoutingRole.CLASSIC_RO),
                rwx=_endpoint_value(plan, RoutingRole.X_RW),
                rox=_endpoint_value(plan, RoutingRole.X_RO),
                user=quote(account_user),
                router_id=router_id,
            )
        )
