"""Random generator and password prompt protocols."""

from typing import Callable, Protocol, runtime_checkable

PromptPassword = Callable[[str], str]
"""Asks the operator for a secret; receives the prompt text."""


@runtime_checkable
class RandomGeneratorProtocol(Protocol):
    """Source of random identifiers and passwords."""

    def generate_identifier(self, length: int) -> str:
        """Return `length` random letters and digits."""
        ...

    def generate_strong_password(self, length: int) -> str:
        """Return a password with upper, lower, digit and special characters."""
        ...
