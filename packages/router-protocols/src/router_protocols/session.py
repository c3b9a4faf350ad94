"""
Metadata session protocol definition.

A metadata session is a single synchronous connection to one member of
the cluster. Result values are always strings (or None for SQL NULL) so
that classification code never depends on driver type conversion.
"""

from typing import Optional, Protocol, runtime_checkable

Row = tuple[Optional[str], ...]
"""A result row: one string or None (SQL NULL) per selected column."""


class SessionError(Exception):
    """
    Raised by a session when the server or the transport reports an error.

    Attributes:
        code: Server error code (0 when the failure was not server-side)
        message: Error text as reported by the server
    """

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


@runtime_checkable
class MetadataSessionProtocol(Protocol):
    """
    Protocol for a connection to a metadata server.

    Implementations raise SessionError for every server-side failure.
    """

    def set_ssl_options(
        self,
        mode: str = "",
        tls_version: str = "",
        cipher: str = "",
        ca: str = "",
        capath: str = "",
        crl: str = "",
        crlpath: str = "",
    ) -> None:
        """Configure TLS for the next connect() call."""
        ...

    def set_ssl_cert(self, cert: str = "", key: str = "") -> None:
        """Configure the client certificate used by the next connect() call."""
        ...

    def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        unix_socket: str = "",
        connect_timeout: int = 30,
    ) -> None:
        """Open the connection."""
        ...

    def disconnect(self) -> None:
        """Close the connection if open."""
        ...

    def query(self, sql: str) -> list[Row]:
        """Run a statement and return all rows."""
        ...

    def query_one(self, sql: str) -> Optional[Row]:
        """Run a statement and return the first row, or None if empty."""
        ...

    def execute(self, sql: str) -> None:
        """Run a statement that returns no rows."""
        ...

    def last_insert_id(self) -> int:
        """Return the AUTO_INCREMENT id generated by the last INSERT."""
        ...
