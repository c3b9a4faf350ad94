"""Random identifier and password generation."""

import secrets
import string

LETTERS_DIGITS = string.ascii_letters + string.digits
SPECIAL = "~@#$^&*()-=+]}[{|;:.>,</?"


class RandomGenerator:
    """RandomGeneratorProtocol implementation backed by the secrets module."""

    def generate_identifier(self, length: int) -> str:
        return "".join(secrets.choice(LETTERS_DIGITS) for _ in range(length))

    def generate_strong_password(self, length: int) -> str:
        """
        Generate a password with at least one character of each class.

        Raises:
            ValueError: If length is too short to hold every class
        """
        classes = (string.ascii_lowercase, string.ascii_uppercase, string.digits, SPECIAL)
        if length < len(classes):
            raise ValueError(f"Password length must be at least {len(classes)}")
        chars = [secrets.choice(c) for c in classes]
        alphabet = "".join(classes)
        chars += [secrets.choice(alphabet) for _ in range(length - len(classes))]
        secrets.SystemRandom().shuffle(chars)
        return "".join(chars)
