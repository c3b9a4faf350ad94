"""Scripted fakes shared by the test modules."""

from collections import deque
from typing import Optional, Sequence

from router_protocols import Row, SessionError


class _Expectation:
    def __init__(self, kind: str, sql: str) -> None:
        self.kind = kind
        self.sql = sql
        self.rows: list[Row] = []
        self.error: Optional[SessionError] = None
        self.insert_id: Optional[int] = None

    def then_return(self, rows: list[Row]) -> "_Expectation":
        self.rows = rows
        return self

    def then_ok(self, last_insert_id: Optional[int] = None) -> "_Expectation":
        self.insert_id = last_insert_id
        return self

    def then_error(self, message: str, code: int = 0) -> "_Expectation":
        self.error = SessionError(code, message)
        return self


class SessionReplayer:
    """
    MetadataSessionProtocol fake that replays scripted statements.

    Statements must arrive in the scripted order; an expectation matches
    when the issued SQL starts with the expected text.

    Example:
        session = SessionReplayer()
        session.expect_query_one("SELECT * FROM").then_return([("1", "0")])
        session.expect_execute("ROLLBACK")
    """

    def __init__(self) -> None:
        self._expected: deque[_Expectation] = deque()
        self.statements: list[str] = []
        self.connect_args: Optional[dict] = None
        self.ssl: dict[str, str] = {}
        self._last_insert_id = 0

    def expect_query(self, sql: str) -> _Expectation:
        return self._add("query", sql)

    def expect_query_one(self, sql: str) -> _Expectation:
        return self._add("query_one", sql)

    def expect_execute(self, sql: str) -> _Expectation:
        return self._add("execute", sql)

    def _add(self, kind: str, sql: str) -> _Expectation:
        expectation = _Expectation(kind, sql)
        self._expected.append(expectation)
        return expectation

    def empty(self) -> bool:
        return not self._expected

    def _next(self, kind: str, sql: str) -> _Expectation:
        self.statements.append(sql)
        if not self._expected:
            raise AssertionError(f"Unexpected {kind}: {sql}")
        expectation = self._expected.popleft()
        if expectation.kind != kind or not sql.startswith(expectation.sql):
            raise AssertionError(
                f"Expected {expectation.kind} '{expectation.sql}', got {kind} '{sql}'"
            )
        if expectation.error is not None:
            raise expectation.error
        if expectation.insert_id is not None:
            self._last_insert_id = expectation.insert_id
        return expectation

    # MetadataSessionProtocol

    def set_ssl_options(self, mode="", tls_version="", cipher="", ca="", capath="", crl="", crlpath=""):
        self.ssl.update(mode=mode, tls_version=tls_version, cipher=cipher, ca=ca,
                        capath=capath, crl=crl, crlpath=crlpath)

    def set_ssl_cert(self, cert="", key=""):
        self.ssl.update(cert=cert, key=key)

    def connect(self, host, port, username, password, unix_socket="", connect_timeout=30):
        self.connect_args = {
            "host": host,
            "port": port,
            "username": username,
            "password": password,
            "unix_socket": unix_socket,
        }

    def disconnect(self):
        self.connect_args = None

    def query(self, sql):
        return list(self._next("query", sql).rows)

    def query_one(self, sql):
        rows = self._next("query_one", sql).rows
        return rows[0] if rows else None

    def execute(self, sql):
        self._next("execute", sql)

    def last_insert_id(self):
        return self._last_insert_id


class FakeRandomGenerator:
    """RandomGeneratorProtocol implementation with scripted identifiers."""

    def __init__(self, password: str = "secretpassword", identifiers: Sequence[str] = ()) -> None:
        self.password = password
        self.passwords_generated = 0
        self._identifiers = list(identifiers)

    def generate_identifier(self, length: int) -> str:
        if self._identifiers:
            return self._identifiers.pop(0)[:length]
        return ("0123456789" * (length // 10 + 1))[:length]

    def generate_strong_password(self, length: int) -> str:
        self.passwords_generated += 1
        return self.password


def script_preflight(session: SessionReplayer, online: str = "3", total: str = "3") -> None:
    """Script the four metadata pre-flight stages for a healthy server."""
    session.expect_query_one("SELECT * FROM mysql_innodb_cluster_metadata.schema_version").then_return([("1", "0", "1")])
    session.expect_query_one("SELECT  ((SELECT count(*) FROM mysql_innodb_cluster_metadata.clusters)").then_return([("1", "1")])
    session.expect_query_one("SELECT member_state FROM performance_schema.replication_group_members").then_return([("ONLINE",)])
    session.expect_query_one("SELECT SUM(IF(member_state = 'ONLINE', 1, 0))").then_return([(online, total)])


def script_discovery(session: SessionReplayer, cluster: str = "mycluster", topology: str = "pm") -> None:
    """Script cluster discovery and the group membership queries."""
    session.expect_query("SELECT F.cluster_name").then_return([
        (cluster, "myreplicaset", topology, "somehost:3306"),
        (cluster, "myreplicaset", topology, "otherhost:3306"),
    ])
    session.expect_query("show status like 'group_replication_primary_member'").then_return([
        ("group_replication_primary_member", "uuid-1" if topology == "pm" else ""),
    ])
    mode = "1" if topology == "pm" else "0"
    session.expect_query("SELECT member_id, member_host").then_return([
        ("uuid-1", "somehost", "3306", "ONLINE", mode),
        ("uuid-2", "otherhost", "3306", "ONLINE", mode),
    ])


def script_registration(
    session: SessionReplayer, router_id: int = 4, user: str = "mysql_router4_012345678901"
) -> None:
    """Script a successful fresh registration with a hashed account."""
    session.expect_execute("START TRANSACTION")
    session.expect_query_one("SELECT host_id, host_name FROM mysql_innodb_cluster_metadata.hosts").then_return([])
    session.expect_execute("INSERT INTO mysql_innodb_cluster_metadata.hosts").then_ok(last_insert_id=1)
    session.expect_execute("INSERT INTO mysql_innodb_cluster_metadata.routers").then_ok(last_insert_id=router_id)
    session.expect_query_one(f"SELECT COUNT(*) FROM mysql.user WHERE user = '{user}'").then_return([("0",)])
    session.expect_execute(f"CREATE USER {user}@'%' IDENTIFIED WITH mysql_native_password AS")
    session.expect_execute(f"GRANT SELECT ON mysql_innodb_cluster_metadata.* TO {user}@'%'")
    session.expect_execute(f"GRANT SELECT ON performance_schema.replication_group_members TO {user}@'%'")
    session.expect_execute(f"GRANT SELECT ON performance_schema.replication_group_member_stats TO {user}@'%'")
    session.expect_execute("UPDATE mysql_innodb_cluster_metadata.routers SET attributes")
    session.expect_execute("COMMIT")
