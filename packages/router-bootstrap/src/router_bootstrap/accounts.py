"""
Router account provisioning on the metadata server.

The router connects to the cluster with a dedicated least-privilege
account. Grant and drop sequences are statement templates executed in
order with uniform error handling.

Password handling when creating the account:
1. Hashed credential (mysql_native_password), unless password validation
   is forced. Falls back to 2) once if the plugin is not loaded (1524).
2. Plaintext credential. If the server rejects it as too weak (1819) a
   new password is generated, up to the retry budget.

Transaction boundaries belong to the caller; this module only issues
ROLLBACK after a failed statement.
"""

import hashlib
import logging
from typing import Optional, Sequence

from router_protocols import MetadataSessionProtocol, RandomGeneratorProtocol, SessionError
from router_bootstrap.exceptions import AccountProvisioningError
from router_bootstrap.session import quote

logger = logging.getLogger(__name__)

ER_PLUGIN_IS_NOT_LOADED = 1524
ER_NOT_VALID_PASSWORD = 1819

PASSWORD_LENGTH = 16
DEFAULT_ACCOUNT_HOSTS = ("%",)

CREATE_HASHED_TEMPLATE = (
    "CREATE USER {account} IDENTIFIED WITH mysql_native_password AS {secret}"
)
CREATE_PLAINTEXT_TEMPLATE = "CREATE USER {account} IDENTIFIED BY {secret}"

GRANT_TEMPLATES = (
    "GRANT SELECT ON mysql_innodb_cluster_metadata.* TO {account}",
    "GRANT SELECT ON performance_schema.replication_group_members TO {account}",
    "GRANT SELECT ON performance_schema.replication_group_member_stats TO {account}",
)

COUNT_ACCOUNTS_TEMPLATE = "SELECT COUNT(*) FROM mysql.user WHERE user = {user}"

DROP_TEMPLATES = (
    "SELECT CONCAT('DROP USER ', GROUP_CONCAT(QUOTE(user), '@', QUOTE(host))) "
    "INTO @drop_user_sql FROM mysql.user WHERE user LIKE {user}",
    "PREPARE drop_user_stmt FROM @drop_user_sql",
    "EXECUTE drop_user_stmt",
    "DEALLOCATE PREPARE drop_user_stmt",
)


def compute_password_hash(password: str) -> str:
    """Return the mysql_native_password hash: '*' + HEX(SHA1(SHA1(pw)))."""
    stage1 = hashlib.sha1(password.encode("utf-8")).digest()
    return "*" + hashlib.sha1(stage1).hexdigest().upper()


class AccountProvisioner:
    """
    Creates and removes router accounts.

    Example:
        provisioner = AccountProvisioner(session, RandomGenerator())
        provisioner.delete_account_for_all_hosts("mysql_router4_abc")
        password = provisioner.create_account_with_compliant_password(
            "mysql_router4_abc", ["%"], retries=5
        )
    """

    def __init__(
        self, session: MetadataSessionProtocol, random_generator: RandomGeneratorProtocol
    ) -> None:
        self._session = session
        self._random = random_generator

    def _rollback(self) -> None:
        try:
            self._session.execute("ROLLBACK")
        except SessionError as e:
            logger.warning(f"ROLLBACK failed: {e.message}")

    def create_account(
        self, user: str, host_pattern: str, secret: str, use_hashed_auth: bool = False
    ) -> None:
        """
        Create one account and grant it read access to the metadata.

        Raises:
            AccountProvisioningError: With the server error code; ROLLBACK
                has already been issued
        """
        account = f"{user}@{quote(host_pattern)}"
        template = CREATE_HASHED_TEMPLATE if use_hashed_auth else CREATE_PLAINTEXT_TEMPLATE
        statements = [template.format(account=account, secret=quote(secret))]
        statements.extend(t.format(account=account) for t in GRANT_TEMPLATES)

        for statement in statements:
            try:
                self._session.execute(statement)
            except SessionError as e:
                self._rollback()
                raise AccountProvisioningError(
                    f"Error creating MySQL account for router: {e.message}", code=e.code
                ) from e
        logger.debug(f"Created account {account}")

    def create_router_accounts(
        self,
        user: str,
        host_patterns: Optional[Sequence[str]],
        secret: str,
        use_hashed_auth: bool = False,
    ) -> None:
        """Create the account for every host pattern (default: '%')."""
        for host in host_patterns or DEFAULT_ACCOUNT_HOSTS:
            self.create_account(user, host, secret, use_hashed_auth)

    def create_account_with_compliant_password(
        self,
        user: str,
        host_patterns: Optional[Sequence[str]],
        retries: int,
        force_password_validation: bool = False,
    ) -> str:
        """
        Create the router accounts and return the plaintext password.

        Args:
            user: Account name
            host_patterns: Host patterns; empty means '%'
            retries: Maximum number of plaintext attempts
            force_password_validation: Skip the hashed credential so the
                server's password validation always applies

        Raises:
            AccountProvisioningError: On a non-retryable failure or when
                the retry budget is exhausted
        """
        if not force_password_validation:
            password = self._random.generate_strong_password(PASSWORD_LENGTH)
            try:
                self.create_router_accounts(
                    user, host_patterns, compute_password_hash(password), use_hashed_auth=True
                )
                return password
            except AccountProvisioningError as e:
                if e.code != ER_PLUGIN_IS_NOT_LOADED:
                    raise
                logger.warning(
                    "mysql_native_password plugin is not loaded, "
                    "creating the account with a plaintext credential"
                )

        attempts_left = retries
        while True:
            password = self._random.generate_strong_password(PASSWORD_LENGTH)
            try:
                self.create_router_accounts(user, host_patterns, password, use_hashed_auth=False)
                return password
            except AccountProvisioningError as e:
                if e.code != ER_NOT_VALID_PASSWORD:
                    raise
                attempts_left -= 1
                if attempts_left <= 0:
                    message = str(e).replace("Error creating MySQL account for router: ", "", 1)
                    raise AccountProvisioningError(
                        f"Error creating user account: {message}\n"
                        f" Try to decrease the validate_password rules and try the "
                        f"operation again.",
                        code=e.code,
                    ) from e
                logger.info(
                    f"Generated password does not satisfy the server policy, "
                    f"retrying ({attempts_left} attempts left)"
                )

    def delete_account_for_all_hosts(self, user: str) -> None:
        """Drop every account named `user`, whatever its host part."""
        try:
            row = self._session.query_one(COUNT_ACCOUNTS_TEMPLATE.format(user=quote(user)))
        except SessionError as e:
            raise AccountProvisioningError(
                f"Error querying for existing Router accounts: {e.message}", code=e.code
            ) from e

        count = int(row[0]) if row and row[0] is not None else 0
        if count == 0:
            return

        logger.info(f"Removing {count} existing account(s) named {user}")
        for template in DROP_TEMPLATES:
            try:
                self._session.execute(template.format(user=quote(user)))
            except SessionError as e:
                raise AccountProvisioningError(
                    f"Error removing old MySQL account for router: {e.message}", code=e.code
                ) from e
