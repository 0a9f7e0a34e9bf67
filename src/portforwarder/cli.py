"""Command line entry point."""

import signal
import sys
import threading
from pathlib import Path
from types import FrameType

import click

from .common.exceptions import BinaryNotFoundError, ConfigurationError
from .common.logging import get_logger, setup_logging
from .common.utils import DEFAULT_KUBECTL, find_binary
from .config import DEFAULT_CONFIG_FILE, DEFAULT_PORT, load_config
from .supervisor import Supervisor
from .tunnel.manager import TunnelManager
from .version import __version__
from .watcher import ConfigWatcher

logger = get_logger(__name__)


@click.command()
@click.version_option(version=__version__, prog_name="portforwarder")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Tunnel configuration file",
)
@click.option(
    "-p",
    "--port",
    type=click.IntRange(1, 65535),
    default=DEFAULT_PORT,
    show_default=True,
    help="Dashboard port when the configuration file sets none",
)
@click.option(
    "--kubectl",
    default=DEFAULT_KUBECTL,
    show_default=True,
    help="kubectl binary name or path",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines")
@click.option("--no-watch", is_flag=True, help="Do not reload on file changes")
def main(
    config_file: Path,
    port: int,
    kubectl: str,
    log_level: str,
    json_logs: bool,
    no_watch: bool,
) -> None:
    """Keep kubectl port-forwards running and serve a dashboard to control them."""
    setup_logging(level=log_level, json_format=json_logs)

    try:
        config = load_config(config_file, default_port=port)
    except ConfigurationError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e), err=True)
        sys.exit(1)

    try:
        kubectl = find_binary(kubectl)
    except BinaryNotFoundError as e:
        logger.warning("kubectl not found, tunnels will fail to start", error=str(e))

    supervisor = Supervisor(
        config_file, manager=TunnelManager(kubectl=kubectl), default_port=port
    )
    supervisor.start(config)

    watcher = None
    if not no_watch:
        watcher = ConfigWatcher(config_file, supervisor.reload_config)
        watcher.start()

    shutdown_event = threading.Event()

    def signal_handler(signum: int, frame: FrameType | None) -> None:
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, signal_handler)

    logger.info("Running, Ctrl-C to stop")
    while not shutdown_event.wait(1.0):
        pass

    if watcher is not None:
        watcher.stop()
    supervisor.shutdown()


if __name__ == "__main__":
    main()
