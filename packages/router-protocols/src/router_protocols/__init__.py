"""
Protocol definitions for router bootstrap.

This package provides the Protocol definitions the bootstrap core talks to,
so that the MySQL connector, random sources and OS-level operations can be
swapped for scripted fakes in tests. It has zero dependencies on other
router-* packages.

Key protocols:
- MetadataSessionProtocol: Connection to a metadata server
- RandomGeneratorProtocol: Source of identifiers and passwords
- PlatformOpsProtocol: Privilege dropping, file ownership, service log

Key types:
- SessionError: Transport/server error raised by a session
- Row: A single result row (string or NULL per column)
- PromptPassword: Callable used to ask the operator for a secret
"""

from router_protocols.session import MetadataSessionProtocol, Row, SessionError
from router_protocols.generators import PromptPassword, RandomGeneratorProtocol
from router_protocols.platform import PlatformOpsProtocol

__all__ = [
    # Protocols
    "MetadataSessionProtocol",
    "RandomGeneratorProtocol",
    "PlatformOpsProtocol",
    # Data types
    "Row",
    "PromptPassword",
    "SessionError",
]
