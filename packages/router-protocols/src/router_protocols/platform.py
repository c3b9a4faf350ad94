"""
Platform operations protocol.

Operations that need OS privileges are gathered here so the deployment
code can be exercised without root.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class PlatformOpsProtocol(Protocol):
    """Protocol for privileged, OS-specific operations."""

    def drop_privileges(self, user: str) -> None:
        """Switch the process to run as `user`."""
        ...

    def set_owner(self, path: str, user: str) -> None:
        """Give ownership of `path` to `user`."""
        ...

    def write_service_log(self, message: str) -> None:
        """Write a message to the system service log."""
        ...
