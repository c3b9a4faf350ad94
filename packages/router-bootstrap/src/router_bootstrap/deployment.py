"""
Bootstrap orchestration.

BootstrapOrchestrator drives one bootstrap run against a connected
metadata session:

    orchestrator = BootstrapOrchestrator(MySQLSession())
    result = orchestrator.bootstrap("mysql://root@db1:3306", "/srv/router", {"name": "r1"})

Directory deployments are idempotent. A fresh directory is created from
scratch; an existing deployment for the same router name and cluster is
refreshed in place; any other existing deployment is only replaced with
--force, keeping the previous configuration as mysqlrouter.conf.bak.
When a run fails, everything it created is removed again and nothing
that existed before is touched.
"""

import logging
import shutil
import socket
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

from rich.prompt import Prompt

from router_protocols import (
    MetadataSessionProtocol,
    PlatformOpsProtocol,
    PromptPassword,
    RandomGeneratorProtocol,
    SessionError,
)
from router_bootstrap.accounts import AccountProvisioner
from router_bootstrap.config_writer import ExistingConfig, read_existing_config, render_config
from router_bootstrap.endpoints import resolve_endpoint_plan
from router_bootstrap.exceptions import (
    AccountProvisioningError,
    DeploymentConflictError,
    DeploymentIOError,
    MetadataError,
    RouterBootstrapError,
)
from router_bootstrap.generators import RandomGenerator
from router_bootstrap.keyring import Keyring, MasterKeyFile, validate_master_key
from router_bootstrap.membership import fetch_group_members
from router_bootstrap.metadata import MetadataValidator, fetch_cluster_info, warn_on_no_ssl
from router_bootstrap.options import (
    BootstrapOptions,
    SslOptions,
    parse_password_retries,
    validate_router_name,
)
from router_bootstrap.platform import PosixPlatformOps
from router_bootstrap.redaction import SecretRedactor
from router_bootstrap.registry import RouterRegistrar
from router_bootstrap.scripts import CONFIG_FILE_NAME, create_start_scripts
from router_bootstrap.types import ClusterInfo, GroupTopology, KeyringInfo
from router_bootstrap.uri import BootstrapTarget, parse_bootstrap_target

logger = logging.getLogger(__name__)

ACCOUNT_SUFFIX_LENGTH = 12
DEPLOYMENT_SUBDIRS = ("log", "run", "data")
DIRECTORY_MODE = 0o700


class DeploymentMode(str, Enum):
    """How an existing target directory is treated."""

    FRESH = "fresh"
    REFRESH = "refresh"
    FORCED = "forced"


def prompt_password_console(prompt: str) -> str:
    """Ask for a secret on the terminal without echoing it."""
    return Prompt.ask(prompt, password=True)


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of a directory deployment."""

    directory: str
    config_path: str
    router_id: int
    account_user: str
    cluster: ClusterInfo
    topology: GroupTopology
    options: BootstrapOptions
    backup_path: str = ""
    created_directory: bool = False
    mode: DeploymentMode = DeploymentMode.FRESH


class _CreatedPaths:
    """Remembers what a run created so a failed run can remove it."""

    def __init__(self, directory: Path, created_directory: bool) -> None:
        self.directory = directory
        self.created_directory = created_directory
        self._paths: list[Path] = []

    def add(self, path: Path) -> None:
        self._paths.append(path)

    def remove_all(self) -> None:
        if self.created_directory:
            logger.info(f"Removing {self.directory} after failed bootstrap")
            shutil.rmtree(self.directory, ignore_errors=True)
            return
        for path in reversed(self._paths):
            try:
                if path.is_dir():
                    path.rmdir()
                else:
                    path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove {path}: {e.strerror}")


class BootstrapOrchestrator:
    """
    Runs the bootstrap sequence.

    Strategies are injected: the metadata session, the random source used
    for account names and passwords, the password prompt, and the
    platform operations.
    """

    def __init__(
        self,
        session: MetadataSessionProtocol,
        random_generator: Optional[RandomGeneratorProtocol] = None,
        prompt_password: Optional[PromptPassword] = None,
        platform: Optional[PlatformOpsProtocol] = None,
        program_name: str = "mysqlrouter",
        hostname: Optional[str] = None,
    ) -> None:
        self._session = session
        self._random = random_generator or RandomGenerator()
        self._prompt = prompt_password or prompt_password_console
        self._platform = platform or PosixPlatformOps()
        self._program_name = program_name
        self._hostname = hostname or socket.gethostname()
        self._redactor = SecretRedactor()

    @property
    def session(self) -> MetadataSessionProtocol:
        return self._session

    @property
    def platform(self) -> PlatformOpsProtocol:
        return self._platform

    # ===== Connection and pre-flight =====

    def connect(self, server_url: str, user_options: Mapping[str, str]) -> BootstrapTarget:
        """Connect to the bootstrap server, prompting for a password if needed."""
        target = parse_bootstrap_target(server_url, user_options.get("bootstrap-socket", ""))
        password = target.password
        if password is None:
            password = self._prompt(f"Please enter MySQL password for {target.user}")

        ssl = SslOptions.from_user_options(user_options)
        self._session.set_ssl_options(
            mode=ssl.mode,
            tls_version=ssl.tls_version,
            cipher=ssl.cipher,
            ca=ssl.ca,
            capath=ssl.capath,
            crl=ssl.crl,
            crlpath=ssl.crlpath,
        )
        if ssl.cert or ssl.key:
            self._session.set_ssl_cert(ssl.cert, ssl.key)

        try:
            self._session.connect(
                target.host, target.port, target.user, password, unix_socket=target.socket
            )
        except SessionError as e:
            raise MetadataError(e.message) from e
        return target

    def init(self, server_url: str, user_options: Mapping[str, str]) -> None:
        """Connect and run the metadata pre-flight checks."""
        self.connect(server_url, user_options)
        MetadataValidator(self._session).check()

    def bootstrap(
        self,
        server_url: str,
        directory: Union[str, Path],
        user_options: Mapping[str, str],
        account_hosts: Sequence[str] = (),
        keyring_info: KeyringInfo = KeyringInfo(),
    ) -> DeploymentResult:
        """Validate options, connect, check the server and deploy."""
        logger.debug(f"Bootstrap options: {self._redactor.redact_dict(dict(user_options))}")
        self._validate_early(user_options)
        self.init(server_url, user_options)
        warn_on_no_ssl(self._session, user_options.get("ssl-mode", ""))
        return self.bootstrap_directory_deployment(
            directory, user_options, account_hosts, keyring_info
        )

    @staticmethod
    def _validate_early(user_options: Mapping[str, str]) -> None:
        validate_router_name(user_options.get("name", ""))
        parse_password_retries(user_options.get("password-retries"))
        SslOptions.from_user_options(user_options)

    # ===== Directory deployment =====

    def bootstrap_directory_deployment(
        self,
        directory: Union[str, Path],
        user_options: Mapping[str, str],
        account_hosts: Sequence[str] = (),
        keyring_info: KeyringInfo = KeyringInfo(),
    ) -> DeploymentResult:
        """
        Create or refresh the deployment in `directory`.

        Raises:
            ConfigurationError: Invalid options (nothing touched)
            DeploymentConflictError: Existing deployment for another router
                and no --force (nothing touched)
            MetadataError, AccountProvisioningError, DeploymentIOError:
                Failures after changes started; created files are removed
        """
        self._validate_early(user_options)
        directory = Path(directory).absolute()
        config_path = directory / CONFIG_FILE_NAME
        name = user_options.get("name", "")
        force = "force" in user_options

        created_directory = not directory.exists()
        if not created_directory and not directory.is_dir():
            raise DeploymentIOError(f"{directory} exists and is not a directory", path=directory)
        existing = None if created_directory else read_existing_config(config_path)

        cluster = fetch_cluster_info(self._session)
        topology = fetch_group_members(self._session)
        if topology.members and topology.single_primary_mode == cluster.multi_master:
            logger.warning(
                "Topology type in the metadata does not match the group's "
                "single_primary_mode setting"
            )

        mode, router_id = self._check_existing(
            existing, config_path, name, cluster.cluster_name, force
        )
        resolve_endpoint_plan(cluster.multi_master, user_options)

        created = _CreatedPaths(directory, created_directory)
        try:
            return self._deploy(
                directory,
                config_path,
                dict(user_options),
                account_hosts,
                keyring_info,
                cluster,
                topology,
                router_id,
                mode,
                existing.account_user if existing else "",
                created,
            )
        except BaseException:
            created.remove_all()
            raise

    def _check_existing(
        self,
        existing: Optional[ExistingConfig],
        config_path: Path,
        name: str,
        cluster_name: str,
        force: bool,
    ) -> tuple[DeploymentMode, int]:
        """Return the deployment mode and the router id to reuse (0 for a new registration)."""
        if existing is None or not existing.cluster_name:
            return DeploymentMode.FRESH, 0
        if existing.cluster_name == cluster_name and existing.name == name:
            logger.info(f"Refreshing existing deployment {config_path}")
            return DeploymentMode.REFRESH, existing.router_id
        if not force:
            raise DeploymentConflictError(
                str(config_path),
                existing=f"router '{existing.name}' of cluster '{existing.cluster_name}'",
                requested=f"router '{name}' of cluster '{cluster_name}'",
            )
        logger.warning(f"Replacing deployment of cluster '{existing.cluster_name}' in {config_path}")
        return DeploymentMode.FORCED, (
            existing.router_id if existing.cluster_name == cluster_name else 0
        )

    def _make_dir(self, path: Path, created: _CreatedPaths) -> None:
        if path.is_dir():
            return
        try:
            path.mkdir(mode=DIRECTORY_MODE)
        except OSError as e:
            raise DeploymentIOError(f"Could not create directory {path}: {e.strerror}", path=path) from e
        created.add(path)

    def _master_key(self, directory: Path, keyring_path: Path, keyring_info: KeyringInfo,
                    created: _CreatedPaths) -> str:
        if not keyring_info.master_key_file:
            return validate_master_key(
                self._prompt("Please provide a master key for the keyring")
            )
        master_key_file = MasterKeyFile(directory / keyring_info.master_key_file)
        key, new_file = master_key_file.get_or_create(keyring_path)
        if new_file:
            created.add(master_key_file.path)
        return key

    def _deploy(
        self,
        directory: Path,
        config_path: Path,
        user_options: dict[str, str],
        account_hosts: Sequence[str],
        keyring_info: KeyringInfo,
        cluster: ClusterInfo,
        topology: GroupTopology,
        router_id: int,
        mode: DeploymentMode,
        previous_account: str,
        created: _CreatedPaths,
    ) -> DeploymentResult:
        self._make_dir(directory, created)
        for subdir in DEPLOYMENT_SUBDIRS:
            self._make_dir(directory / subdir, created)

        keyring_path = directory / "data" / keyring_info.keyring_file
        master_key = self._master_key(directory, keyring_path, keyring_info, created)
        keyring = Keyring(keyring_path, master_key)
        keyring.load()

        user_options.setdefault("logdir", str(directory / "log"))
        user_options.setdefault("rundir", str(directory / "run"))
        user_options.setdefault("datadir", str(directory / "data"))
        user_options.setdefault("socketsdir", str(directory))
        user_options["keyring-path"] = str(keyring_path)
        if keyring_info.master_key_file:
            user_options["master-key-path"] = str(directory / keyring_info.master_key_file)
        options = BootstrapOptions.from_user_options(
            cluster.multi_master, user_options, account_hosts
        )

        router_id, account_user, password = self._register(options, router_id)

        if not keyring_path.exists():
            created.add(keyring_path)
        if previous_account and previous_account != account_user:
            keyring.remove(previous_account)
        keyring.store(account_user, "password", password)
        keyring.flush()

        text = render_config(
            options,
            router_id,
            cluster.cluster_name,
            cluster.replicaset_name,
            cluster.bootstrap_servers,
            account_user,
        )
        backup_path = self._write_config(
            config_path, text, created, backup=mode == DeploymentMode.FORCED
        )

        for path in create_start_scripts(directory, self._program_name, options.system_user):
            created.add(path)

        if options.system_user:
            for path in (directory, *(directory / d for d in DEPLOYMENT_SUBDIRS),
                         config_path, keyring_path):
                self._platform.set_owner(str(path), options.system_user)

        self._platform.write_service_log(
            f"Router {router_id} bootstrapped for cluster {cluster.cluster_name} in {directory}"
        )
        return DeploymentResult(
            directory=str(directory),
            config_path=str(config_path),
            router_id=router_id,
            account_user=account_user,
            cluster=cluster,
            topology=topology,
            options=options,
            backup_path=str(backup_path) if backup_path else "",
            created_directory=created.created_directory,
            mode=mode,
        )

    def _register(self, options: BootstrapOptions, router_id: int) -> tuple[int, str, str]:
        """Register the router and create its account in one transaction."""
        registrar = RouterRegistrar(self._session, self._hostname)
        provisioner = AccountProvisioner(self._session, self._random)
        try:
            self._session.execute("START TRANSACTION")
            router_id = registrar.ensure_registered(router_id, options.name)
            account_user = (
                f"mysql_router{router_id}_"
                f"{self._random.generate_identifier(ACCOUNT_SUFFIX_LENGTH)}"
            )
            provisioner.delete_account_for_all_hosts(account_user)
            password = provisioner.create_account_with_compliant_password(
                account_user,
                options.account_hosts,
                options.password_retries,
                options.force_password_validation,
            )
            registrar.update_router_info(router_id, options.endpoints, account_user)
            self._session.execute("COMMIT")
        except AccountProvisioningError:
            raise
        except SessionError as e:
            self._rollback()
            raise MetadataError(f"Error registering router in metadata: {e.message}") from e
        except RouterBootstrapError:
            self._rollback()
            raise
        return router_id, account_user, password

    def _rollback(self) -> None:
        try:
            self._session.execute("ROLLBACK")
        except SessionError as e:
            logger.warning(f"ROLLBACK failed: {e.message}")

    def _write_config(
        self, config_path: Path, text: str, created: _CreatedPaths, backup: bool = False
    ) -> Optional[Path]:
        """
        Write the configuration atomically.

        A refresh overwrites the previous file in place; only a forced
        overwrite keeps it as mysqlrouter.conf.bak.

        Returns:
            Path of the backup, or None when no backup was made
        """
        tmp_path = config_path.with_name(f"{config_path.name}.tmp")
        backup_path = None
        try:
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.chmod(0o600)

            if config_path.exists():
                if backup:
                    backup_path = config_path.with_name(f"{config_path.name}.bak")
                    shutil.copy2(config_path, backup_path)
                    logger.info(f"Previous configuration saved as {backup_path}")
            else:
                created.add(config_path)
            tmp_path.replace(config_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise DeploymentIOError(
                f"Could not write configuration {config_path}: {e.strerror}", path=config_path
            ) from e
        logger.info(f"Configuration written to {config_path}")
        return backup_path
