"""
MySQL session adapter for the metadata server.

Wraps mysql-connector-python behind MetadataSessionProtocol:
- Every driver error becomes router_protocols.SessionError(code, message)
- Result values are returned as strings (None for NULL)
- Executed statements are logged at DEBUG with credentials redacted
"""

import logging
from typing import Any, Optional

import mysql.connector

from router_protocols import Row, SessionError
from router_bootstrap.redaction import SecretRedactor

logger = logging.getLogger(__name__)


def quote(value: str) -> str:
    """Quote a string literal for interpolation into a statement."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)


class MySQLSession:
    """
    Synchronous connection to one MySQL server.

    SSL options must be set before connect(). Options the driver does not
    support (capath, crl, crlpath) are logged and ignored for the bootstrap
    connection; they are still written to the router configuration.
    """

    def __init__(self, read_timeout: int = 30) -> None:
        self._read_timeout = read_timeout
        self._ssl: dict[str, str] = {}
        self._connection: Any = None
        self._redactor = SecretRedactor()

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
        self._ssl.update(
            mode=mode.upper(),
            tls_version=tls_version,
            cipher=cipher,
            ca=ca,
            capath=capath,
            crl=crl,
            crlpath=crlpath,
        )

    def set_ssl_cert(self, cert: str = "", key: str = "") -> None:
        self._ssl.update(cert=cert, key=key)

    def _connect_args(self) -> dict[str, Any]:
        ssl = self._ssl
        mode = ssl.get("mode", "")
        if mode == "DISABLED":
            return {"ssl_disabled": True}

        args: dict[str, Any] = {}
        if ssl.get("ca"):
            args["ssl_ca"] = ssl["ca"]
        if ssl.get("cert"):
            args["ssl_cert"] = ssl["cert"]
        if ssl.get("key"):
            args["ssl_key"] = ssl["key"]
        if ssl.get("tls_version"):
            args["tls_versions"] = [v.strip() for v in ssl["tls_version"].split(",")]
        if ssl.get("cipher"):
            args["tls_ciphersuites"] = ssl["cipher"].split(":")
        if mode in ("VERIFY_CA", "VERIFY_IDENTITY"):
            args["ssl_verify_cert"] = True
        if mode == "VERIFY_IDENTITY":
            args["ssl_verify_identity"] = True
        for unsupported in ("capath", "crl", "crlpath"):
            if ssl.get(unsupported):
                logger.warning(
                    f"--ssl-{unsupported} is not supported for the bootstrap "
                    f"connection and will only be written to the configuration"
                )
        return args

    def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        unix_socket: str = "",
        connect_timeout: int = 30,
    ) -> None:
        self.disconnect()
        args = self._connect_args()
        if unix_socket:
            args["unix_socket"] = unix_socket
        else:
            args["host"] = host
            args["port"] = port
        target = unix_socket or f"{host}:{port}"
        logger.info(f"Connecting to metadata server {target} as {username}")
        try:
            self._connection = mysql.connector.connect(
                user=username,
                password=password,
                connection_timeout=connect_timeout,
                autocommit=True,
                **args,
            )
        except mysql.connector.Error as e:
            raise SessionError(e.errno or 0, f"Error connecting to MySQL server at {target}: {e.msg}") from e

    def disconnect(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except mysql.connector.Error as e:
                logger.debug(f"Ignoring error while closing connection: {e}")
            self._connection = None

    def _run(self, sql: str, fetch: bool) -> list[Row]:
        if self._connection is None:
            raise SessionError(0, "Not connected")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Executing query: {self._redactor.redact_statement(sql)}")
        try:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql)
                rows = cursor.fetchall() if fetch and cursor.with_rows else []
                if not fetch and cursor.with_rows:
                    cursor.fetchall()
            finally:
                cursor.close()
        except mysql.connector.Error as e:
            raise SessionError(e.errno or 0, e.msg or str(e)) from e
        return [tuple(_to_str(v) for v in row) for row in rows]

    def query(self, sql: str) -> list[Row]:
        return self._run(sql, fetch=True)

    def query_one(self, sql: str) -> Optional[Row]:
        rows = self._run(sql, fetch=True)
        return rows[0] if rows else None

    def execute(self, sql: str) -> None:
        self._run(sql, fetch=False)

    def last_insert_id(self) -> int:
        row = self.query_one("SELECT LAST_INSERT_ID()")
        return int(row[0]) if row and row[0] is not None else 0
