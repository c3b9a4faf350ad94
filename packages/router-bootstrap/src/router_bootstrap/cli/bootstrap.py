"""Bootstrap and check commands."""

import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from router_bootstrap.deployment import BootstrapOrchestrator, DeploymentResult
from router_bootstrap.exceptions import RouterBootstrapError
from router_bootstrap.membership import fetch_group_members
from router_bootstrap.session import MySQLSession
from router_bootstrap.types import GroupTopology, KeyringInfo, MemberRole, MemberState

console = Console()


def create_orchestrator() -> BootstrapOrchestrator:
    """Build an orchestrator with a real MySQL session."""
    program = str(Path(sys.argv[0]).absolute()) if sys.argv and sys.argv[0] else "mysqlrouter"
    return BootstrapOrchestrator(MySQLSession(), program_name=program)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def _collect_options(values: dict[str, Optional[str]], flags: dict[str, bool]) -> dict[str, str]:
    """Turn CLI values into the user options dict; blank values are rejected."""
    options: dict[str, str] = {}
    for name, value in values.items():
        if value is None:
            continue
        # ssl-mode has its own diagnostic for blank values
        if not value.strip() and name != "ssl-mode":
            _fail(f"Value for option '--{name}' can't be empty.")
        options[name] = value
    for name, enabled in flags.items():
        if enabled:
            options[name] = "1"
    return options


def _print_topology(topology: GroupTopology) -> None:
    mode = "single-primary" if topology.single_primary_mode else "multi-primary"
    table = Table(title=f"Group Members ({mode})")
    table.add_column("Member", style="cyan")
    table.add_column("Address", style="blue")
    table.add_column("State")
    table.add_column("Role", style="yellow")
    for member in topology.members.values():
        state = member.state.value
        if member.state == MemberState.ONLINE:
            state = f"[green]{state}[/green]"
        else:
            state = f"[red]{state}[/red]"
        role = member.role.value
        if member.role == MemberRole.PRIMARY:
            role = f"[bold]{role}[/bold]"
        table.add_row(member.id, f"{member.host}:{member.port}", state, role)
    console.print(table)


def _print_result(result: DeploymentResult) -> None:
    cluster = result.cluster
    console.print(
        f"\n[green]MySQL Router configured for the InnoDB cluster "
        f"'{cluster.cluster_name}'[/green]"
    )
    console.print(f"Configuration: {result.config_path}")
    if result.backup_path:
        console.print(f"Previous configuration saved as {result.backup_path}")

    table = Table(title="Router Endpoints")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Protocol")
    table.add_column("TCP", style="blue")
    table.add_column("Socket", style="blue")
    for endpoint in result.options.endpoints.enabled():
        label = "Read/Write" if not endpoint.role.read_only else "Read/Only"
        port = str(endpoint.port) if endpoint.port else "-"
        table.add_row(label, endpoint.role.protocol, port, endpoint.socket_path or "-")
    console.print(table)
    console.print(f"\nStart the router with [bold]{result.directory}/start.sh[/bold]")


def bootstrap(
    server: str = typer.Option(..., "--bootstrap", "-B", help="Server URI: [mysql://][user[:pass]@]host[:port]"),
    directory: str = typer.Option(..., "--directory", "-d", help="Deployment directory"),
    name: Optional[str] = typer.Option(None, "--name", help="Router instance name"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="System user to run the router as"),
    force: bool = typer.Option(False, "--force", help="Replace an existing deployment"),
    password_retries: Optional[str] = typer.Option(None, "--password-retries", help="Password generation attempts (1-10000)"),
    force_password_validation: bool = typer.Option(False, "--force-password-validation", help="Never use a hashed account credential"),
    account_host: Optional[list[str]] = typer.Option(None, "--account-host", help="Host pattern for the router account (repeatable)"),
    base_port: Optional[str] = typer.Option(None, "--conf-base-port", "--base-port", help="First of four consecutive ports"),
    bind_address: Optional[str] = typer.Option(None, "--conf-bind-address", "--bind-address", help="Address TCP endpoints bind to"),
    use_sockets: bool = typer.Option(False, "--conf-use-sockets", "--use-sockets", help="Also listen on Unix sockets"),
    skip_tcp: bool = typer.Option(False, "--conf-skip-tcp", "--skip-tcp", help="Don't listen on TCP"),
    bootstrap_socket: Optional[str] = typer.Option(None, "--bootstrap-socket", help="Unix socket of the bootstrap server"),
    master_key_file: str = typer.Option("mysqlrouter.key", "--master-key-file", help="Master key file name; empty to prompt"),
    ssl_mode: Optional[str] = typer.Option(None, "--ssl-mode", help="DISABLED, PREFERRED, REQUIRED, VERIFY_CA or VERIFY_IDENTITY"),
    ssl_ca: Optional[str] = typer.Option(None, "--ssl-ca"),
    ssl_capath: Optional[str] = typer.Option(None, "--ssl-capath"),
    ssl_crl: Optional[str] = typer.Option(None, "--ssl-crl"),
    ssl_crlpath: Optional[str] = typer.Option(None, "--ssl-crlpath"),
    ssl_cert: Optional[str] = typer.Option(None, "--ssl-cert"),
    ssl_key: Optional[str] = typer.Option(None, "--ssl-key"),
    ssl_cipher: Optional[str] = typer.Option(None, "--ssl-cipher"),
    tls_version: Optional[str] = typer.Option(None, "--tls-version"),
) -> None:
    """Bootstrap a router deployment into a directory."""
    options = _collect_options(
        {
            "name": name,
            "user": user,
            "password-retries": password_retries,
            "base-port": base_port,
            "bind-address": bind_address,
            "bootstrap-socket": bootstrap_socket,
            "ssl-mode": ssl_mode,
            "ssl-ca": ssl_ca,
            "ssl-capath": ssl_capath,
            "ssl-crl": ssl_crl,
            "ssl-crlpath": ssl_crlpath,
            "ssl-cert": ssl_cert,
            "ssl-key": ssl_key,
            "ssl-cipher": ssl_cipher,
            "tls-version": tls_version,
        },
        {
            "force": force,
            "force-password-validation": force_password_validation,
            "use-sockets": use_sockets,
            "skip-tcp": skip_tcp,
        },
    )

    orchestrator = create_orchestrator()
    if user:
        try:
            orchestrator.platform.drop_privileges(user)
        except RouterBootstrapError as e:
            _fail(str(e))
    console.print(f"[bold]Bootstrapping router into {directory}...[/bold]")
    try:
        result = orchestrator.bootstrap(
            server,
            directory,
            options,
            account_hosts=account_host or (),
            keyring_info=KeyringInfo(master_key_file=master_key_file),
        )
    except RouterBootstrapError as e:
        _fail(str(e))
    finally:
        orchestrator.session.disconnect()
    _print_result(result)


def check(
    server: str = typer.Option(..., "--bootstrap", "-B", help="Server URI: [mysql://][user[:pass]@]host[:port]"),
    ssl_mode: Optional[str] = typer.Option(None, "--ssl-mode"),
) -> None:
    """Run the pre-flight checks and show the group members."""
    options = _collect_options({"ssl-mode": ssl_mode}, {})
    orchestrator = create_orchestrator()
    try:
        orchestrator.init(server, options)
        topology = fetch_group_members(orchestrator.session)
    except RouterBootstrapError as e:
        _fail(str(e))
    finally:
        orchestrator.session.disconnect()
    console.print("[green]Server passed all pre-flight checks[/green]")
    _print_topology(topology)
