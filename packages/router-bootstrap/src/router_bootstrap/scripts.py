"""Start/stop scripts for a directory deployment."""

import logging
from pathlib import Path
from typing import Union

from router_bootstrap.exceptions import DeploymentIOError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "mysqlrouter.conf"
PID_FILE_NAME = "mysqlrouter.pid"
SCRIPT_MODE = 0o700


def render_start_script(directory: Union[str, Path], program_name: str, system_user: str = "") -> str:
    lines = ["#!/bin/bash", f"basedir={directory}"]
    run = f"ROUTER_PID=$basedir/{PID_FILE_NAME} {program_name} -c $basedir/{CONFIG_FILE_NAME}"
    if system_user:
        lines += [
            f"if [ `whoami` == '{system_user}' ]; then",
            f"  {run} &",
            "else",
            f"  sudo {run} --user={system_user} &",
            "fi",
        ]
    else:
        lines.append(f"{run} &")
    lines.append("disown %-")
    return "\n".join(lines) + "\n"


def render_stop_script(directory: Union[str, Path]) -> str:
    pid_file = Path(directory) / PID_FILE_NAME
    return (
        "#!/bin/bash\n"
        f"if [ -f {pid_file} ]; then\n"
        f"  kill -TERM `cat {pid_file}` && rm -f {pid_file}\n"
        "fi\n"
    )


def create_start_scripts(
    directory: Union[str, Path], program_name: str, system_user: str = ""
) -> list[Path]:
    """
    Write start.sh and stop.sh into the deployment directory.

    Returns:
        Paths of the written scripts
    """
    written = []
    for name, text in (
        ("start.sh", render_start_script(directory, program_name, system_user)),
        ("stop.sh", render_stop_script(directory)),
    ):
        path = Path(directory) / name
        try:
            path.write_text(text, encoding="utf-8")
            path.chmod(SCRIPT_MODE)
        except OSError as e:
            raise DeploymentIOError(f"Could not write {path}: {e.strerror}", path=path) from e
        written.append(path)
    logger.info(f"Created start/stop scripts in {directory}")
    return written
