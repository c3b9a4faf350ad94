"""
POSIX platform operations.

PosixPlatformOps implements PlatformOpsProtocol: switching to an
unprivileged user, handing files to that user, and writing to syslog.
"""

import logging
import os
import pwd
import syslog

from router_bootstrap.exceptions import ConfigurationError, DeploymentIOError

logger = logging.getLogger(__name__)


def lookup_user(user: str) -> pwd.struct_passwd:
    """Find a user by name or numeric uid."""
    try:
        return pwd.getpwnam(user)
    except KeyError:
        pass
    if user.isdigit():
        try:
            return pwd.getpwuid(int(user))
        except KeyError:
            pass
    raise ConfigurationError(
        f"Can't use user '{user}'. Please check that the user exists!",
        option="user",
        value=user,
    )


class PosixPlatformOps:
    """Platform operations for Linux and other POSIX systems."""

    def drop_privileges(self, user: str) -> None:
        """
        Switch the effective user and group.

        Only root may switch to another user; asking for the current user
        is a no-op.

        Raises:
            ConfigurationError: Not root, or unknown user
        """
        entry = lookup_user(user)
        if entry.pw_uid == os.geteuid():
            return
        if os.geteuid() != 0:
            raise ConfigurationError(
                "One can only use the -u/--user switch if running as root",
                option="user",
                value=user,
            )
        os.initgroups(entry.pw_name, entry.pw_gid)
        os.setegid(entry.pw_gid)
        os.seteuid(entry.pw_uid)
        logger.info(f"Running as user {entry.pw_name}")

    def set_owner(self, path: str, user: str) -> None:
        entry = lookup_user(user)
        try:
            os.chown(path, entry.pw_uid, entry.pw_gid)
        except OSError as e:
            raise DeploymentIOError(
                f"Could not change owner of {path} to {user}: {e.strerror}", path=path
            ) from e

    def write_service_log(self, message: str) -> None:
        syslog.syslog(syslog.LOG_INFO, message)
