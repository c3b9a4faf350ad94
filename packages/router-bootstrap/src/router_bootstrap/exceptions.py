"""
Exception classes for router bootstrap.

Every failure the bootstrap can report derives from RouterBootstrapError,
so the CLI can print one clean line for any of them:
- ConfigurationError: Invalid operator input, detected before any I/O
- MetadataError: The metadata server failed a pre-flight check
- AccountProvisioningError: Creating or dropping the router account failed
- DeploymentConflictError: An existing deployment belongs to another router
- DeploymentIOError: Filesystem failure while deploying

Per project patterns:
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""

from pathlib import Path
from typing import Optional, Union


class RouterBootstrapError(Exception):
    """Base class for all bootstrap failures."""


class ConfigurationError(RouterBootstrapError):
    """
    Raised when operator-supplied options are invalid.

    Attributes:
        option: Name of the offending option, if known
        value: The rejected value, if known
    """

    def __init__(
        self, message: str, option: Optional[str] = None, value: Optional[str] = None
    ) -> None:
        self.option = option
        self.value = value
        super().__init__(message)


class MetadataError(RouterBootstrapError):
    """Raised when the metadata server cannot be used for bootstrap."""


class MetadataShapeError(MetadataError):
    """
    Raised when a query returns an unexpected number of rows or columns.

    Attributes:
        expected: Expected field count description, if applicable
        actual: Actual field count, if applicable
    """

    def __init__(
        self, message: str, expected: Optional[str] = None, actual: Optional[int] = None
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class UnsupportedMetadataError(MetadataError):
    """Raised when the metadata schema is incompatible or ambiguous."""


class HealthError(MetadataError):
    """
    Raised when the server is not an ONLINE member of its group.

    Attributes:
        state: Member state reported by the server
    """

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(
            f"The provided server is currently not an ONLINE member of a "
            f"InnoDB cluster. (state: {state})"
        )


class QuorumError(MetadataError):
    """
    Raised when the group the server belongs to has no quorum.

    Attributes:
        online: Number of ONLINE members
        total: Number of members
    """

    def __init__(self, online: int, total: int) -> None:
        self.online = online
        self.total = total
        super().__init__(
            f"The provided server is currently not in a InnoDB cluster group "
            f"with quorum and thus may contain inaccurate or outdated data. "
            f"(online: {online}, total: {total})"
        )


class AccountProvisioningError(RouterBootstrapError):
    """
    Raised when the router account cannot be created or removed.

    Attributes:
        code: Server error code of the underlying failure, if any
    """

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        self.code = code
        super().__init__(message)


class DeploymentConflictError(RouterBootstrapError):
    """
    Raised when a deployment directory is configured for another router.

    Attributes:
        path: The existing configuration file
        existing: Description of the existing identity
        requested: Description of the requested identity
    """

    def __init__(self, path: str, existing: str, requested: str) -> None:
        self.path = path
        self.existing = existing
        self.requested = requested
        super().__init__(
            f"The given Router instance is already configured for {existing} "
            f"(requested: {requested}).\n"
            f"If you'd like to replace it, please use the --force configuration option."
        )


class DeploymentIOError(RouterBootstrapError):
    """
    Raised on filesystem failures during deployment.

    Attributes:
        path: The path being accessed
    """

    def __init__(self, message: str, path: Union[str, Path] = "") -> None:
        self.path = str(path)
        super().__init__(message)


class KeyringError(DeploymentIOError):
    """Raised when the keyring or its master key file is unusable."""
