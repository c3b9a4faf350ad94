"""
Bootstrap options.

Raw options arrive as a dict keyed by long option name without dashes
(e.g. "base-port", "ssl-mode"), exactly as the CLI collects them. They are
validated once into frozen pydantic models; every validation failure is a
ConfigurationError, raised before any network or filesystem work.
"""

from typing import Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from router_bootstrap.endpoints import DIGITS, resolve_endpoint_plan
from router_bootstrap.exceptions import ConfigurationError
from router_bootstrap.types import EndpointPlan

MAX_ROUTER_NAME_LENGTH = 255
RESERVED_ROUTER_NAMES = ("system",)

DEFAULT_PASSWORD_RETRIES = 5
MAX_PASSWORD_RETRIES = 10000

SSL_MODES = ("DISABLED", "PREFERRED", "REQUIRED", "VERIFY_CA", "VERIFY_IDENTITY")


def validate_router_name(name: str) -> None:
    """
    Reject router names that can't be stored in the configuration.

    Raises:
        ConfigurationError: Reserved name, line breaks, or too long
    """
    if name in RESERVED_ROUTER_NAMES:
        raise ConfigurationError(f"Router name '{name}' is reserved", option="name", value=name)
    if "\n" in name or "\r" in name:
        raise ConfigurationError(
            f"Router name '{name}' contains invalid characters.", option="name", value=name
        )
    if len(name) > MAX_ROUTER_NAME_LENGTH:
        raise ConfigurationError(
            f"Router name '{name}' too long (max {MAX_ROUTER_NAME_LENGTH}).",
            option="name",
            value=name,
        )


def parse_password_retries(value: Optional[str]) -> int:
    """Parse --password-retries; None means the default."""
    if value is None:
        return DEFAULT_PASSWORD_RETRIES
    if DIGITS.fullmatch(value) and 1 <= int(value) <= MAX_PASSWORD_RETRIES:
        return int(value)
    raise ConfigurationError(
        f"Invalid password-retries value '{value}'; "
        f"please pick a value from 1 to {MAX_PASSWORD_RETRIES}",
        option="password-retries",
        value=value,
    )


def validate_ssl_mode(value: str) -> str:
    """Accept an SSL mode case-insensitively; the given spelling is kept."""
    if value.upper() not in SSL_MODES:
        raise ConfigurationError(
            "Invalid value for --ssl-mode option", option="ssl-mode", value=value
        )
    return value


class SslOptions(BaseModel):
    """TLS options for the bootstrap connection and the router config."""

    model_config = ConfigDict(frozen=True)

    mode: str = ""
    cipher: str = ""
    tls_version: str = ""
    ca: str = ""
    capath: str = ""
    crl: str = ""
    crlpath: str = ""
    cert: str = ""
    key: str = ""

    @classmethod
    def from_user_options(cls, user_options: Mapping[str, str]) -> "SslOptions":
        mode = user_options.get("ssl-mode", "")
        if "ssl-mode" in user_options:
            validate_ssl_mode(mode)
        return cls(
            mode=mode,
            cipher=user_options.get("ssl-cipher", ""),
            tls_version=user_options.get("tls-version", ""),
            ca=user_options.get("ssl-ca", ""),
            capath=user_options.get("ssl-capath", ""),
            crl=user_options.get("ssl-crl", ""),
            crlpath=user_options.get("ssl-crlpath", ""),
            cert=user_options.get("ssl-cert", ""),
            key=user_options.get("ssl-key", ""),
        )

    def config_items(self) -> list[tuple[str, str]]:
        """Options written to the metadata cache section, in file order."""
        items = [
            ("ssl_mode", self.mode),
            ("ssl_cipher", self.cipher),
            ("tls_version", self.tls_version),
            ("ssl_ca", self.ca),
            ("ssl_capath", self.capath),
            ("ssl_crl", self.crl),
            ("ssl_crlpath", self.crlpath),
        ]
        return [(k, v) for k, v in items if v]


class BootstrapOptions(BaseModel):
    """
    Validated options for one bootstrap run.

    Built once with from_user_options() after the cluster topology is
    known (the endpoint plan depends on it); immutable afterwards.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = ""
    system_user: str = ""
    force: bool = False
    password_retries: int = DEFAULT_PASSWORD_RETRIES
    force_password_validation: bool = False
    account_hosts: tuple[str, ...] = ()
    ssl: SslOptions = Field(default_factory=SslOptions)
    endpoints: EndpointPlan
    override_logdir: str = ""
    override_rundir: str = ""
    override_datadir: str = ""
    keyring_file_path: str = ""
    master_key_file_path: str = ""

    @classmethod
    def from_user_options(
        cls,
        multi_master: bool,
        user_options: Mapping[str, str],
        account_hosts: Sequence[str] = (),
    ) -> "BootstrapOptions":
        """
        Validate raw options.

        Raises:
            ConfigurationError: On the first invalid option
        """
        name = user_options.get("name", "")
        validate_router_name(name)
        return cls(
            name=name,
            system_user=user_options.get("user", ""),
            force="force" in user_options,
            password_retries=parse_password_retries(user_options.get("password-retries")),
            force_password_validation="force-password-validation" in user_options,
            account_hosts=tuple(account_hosts),
            ssl=SslOptions.from_user_options(user_options),
            endpoints=resolve_endpoint_plan(multi_master, user_options),
            override_logdir=user_options.get("logdir", ""),
            override_rundir=user_options.get("rundir", ""),
            override_datadir=user_options.get("datadir", ""),
            keyring_file_path=user_options.get("keyring-path", ""),
            master_key_file_path=user_options.get("master-key-path", ""),
        )
