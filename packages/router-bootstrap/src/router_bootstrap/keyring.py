"""
Encrypted keyring for router secrets.

The keyring file holds {entry: {attribute: value}} encrypted with Fernet
under a key derived from the master key. The master key itself is either
kept in a master key file (a JSON document mapping keyring paths to
master keys) or typed in by the operator.

Files are written to a temporary sibling and renamed into place. Error
messages always name the real path, never the temporary one.
"""

import base64
import hashlib
import json
import logging
import secrets
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, ValidationError

from router_bootstrap.exceptions import ConfigurationError, KeyringError

logger = logging.getLogger(__name__)

MAX_MASTER_KEY_LENGTH = 255
GENERATED_MASTER_KEY_LENGTH = 32


class MasterKeyFileModel(BaseModel):
    """On-disk format of the master key file."""

    version: int = 1
    keys: dict[str, str] = {}


def validate_master_key(key: str) -> str:
    if not key:
        raise ConfigurationError("Keyring master key can't be empty")
    if len(key) > MAX_MASTER_KEY_LENGTH:
        raise ConfigurationError(f"Master key too long (max {MAX_MASTER_KEY_LENGTH})")
    return key


def _write_atomic(path: Path, data: bytes, mode: int = 0o600) -> None:
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        tmp_path.write_bytes(data)
        tmp_path.chmod(mode)
        tmp_path.replace(path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise KeyringError(f"Could not write {path}: {e.strerror}", path=path) from e


class MasterKeyFile:
    """
    Master key storage, one key per keyring path.

    Example:
        mkf = MasterKeyFile("/deploy/mysqlrouter.key")
        key, created = mkf.get_or_create("/deploy/data/keyring")
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _invalid(self, reason: str) -> KeyringError:
        return KeyringError(f"Invalid master key file '{self.path}': {reason}", path=self.path)

    def load(self) -> MasterKeyFileModel:
        """
        Read the file.

        Raises:
            KeyringError: Path is a directory, file is empty, or not parseable
        """
        if self.path.is_dir():
            raise self._invalid("is a directory")
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as e:
            raise self._invalid("file is missing") from e
        except OSError as e:
            raise KeyringError(
                f"Could not read master key file '{self.path}': {e.strerror}", path=self.path
            ) from e
        if not data.strip():
            raise self._invalid("file is empty")
        try:
            return MasterKeyFileModel.model_validate_json(data)
        except ValidationError as e:
            raise self._invalid("unrecognized format") from e

    def save(self, model: MasterKeyFileModel) -> None:
        if self.path.is_dir():
            raise self._invalid("is a directory")
        _write_atomic(self.path, model.model_dump_json(indent=2).encode("utf-8"))

    def get_or_create(self, keyring_path: Union[str, Path]) -> tuple[str, bool]:
        """
        Return the master key for `keyring_path`, generating one if needed.

        The stored key is read back after writing and validated.

        Returns:
            (master key, True if the file was created by this call)
        """
        keyring_path = str(keyring_path)
        created = not self.path.exists()
        model = MasterKeyFileModel() if created else self.load()
        key = model.keys.get(keyring_path)
        if key is None:
            model.keys[keyring_path] = secrets.token_urlsafe(GENERATED_MASTER_KEY_LENGTH)
            self.save(model)
            key = self.load().keys.get(keyring_path, "")
            if not key:
                raise self._invalid(f"no key stored for {keyring_path}")
        validate_master_key(key)
        return key, created


class Keyring:
    """
    Encrypted secret store.

    Example:
        keyring = Keyring("/deploy/data/keyring", master_key)
        keyring.load()
        keyring.store("mysql_router4_abc", "password", "s3cret")
        keyring.flush()
    """

    def __init__(self, path: Union[str, Path], master_key: str) -> None:
        self.path = Path(path)
        digest = hashlib.sha256(validate_master_key(master_key).encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._entries: dict[str, dict[str, str]] = {}

    def load(self) -> None:
        """Load existing entries; a missing file means an empty keyring."""
        if not self.path.exists():
            return
        try:
            token = self.path.read_bytes()
        except OSError as e:
            raise KeyringError(f"Could not read keyring '{self.path}': {e.strerror}", path=self.path) from e
        try:
            self._entries = json.loads(self._fernet.decrypt(token))
        except InvalidToken as e:
            raise KeyringError(
                f"Invalid keyring file '{self.path}': can't decrypt with the given master key",
                path=self.path,
            ) from e

    def store(self, entry: str, attribute: str, value: str) -> None:
        self._entries.setdefault(entry, {})[attribute] = value

    def fetch(self, entry: str, attribute: str) -> Optional[str]:
        return self._entries.get(entry, {}).get(attribute)

    def remove(self, entry: str) -> None:
        self._entries.pop(entry, None)

    def flush(self) -> None:
        token = self._fernet.encrypt(json.dumps(self._entries).encode("utf-8"))
        _write_atomic(self.path, token)
        logger.debug(f"Keyring written to {self.path}")
