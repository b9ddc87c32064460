import logging
import sys
from typing import Optional

import click
import jsonschema
from rich.console import Console
from rich.table import Table

from vmexporters.api import http_get, which
from vmexporters.configuration import Configuration
from vmexporters.counters import parse_counters, render_counters
from vmexporters.detection import detect_gpus, is_root
from vmexporters.log import DisableLogging, init_logging
from vmexporters.orchestrator import EXIT_FAILURE, EXIT_OK, Provisioner
from vmexporters.service.dcgm.dcgm import DCGMExporter
from vmexporters.service.node_exporter.node_exporter import NodeExporter
from vmexporters import systemd
from vmexporters.version import __version__

logger = logging.getLogger(__name__)


def _load(config_file: Optional[str], **overrides) -> Configuration:
    try:
        if config_file is None:
            conf = Configuration()
        else:
            conf = Configuration.from_file(config_file)
        conf.set(**{k: v for k, v in overrides.items() if v is not None})
        return conf.finalize()
    except jsonschema.ValidationError as err:
        raise click.ClickException(f"Invalid configuration: {err.message}")


@click.group()
@click.version_option(version=__version__)
def cli():
    """Install the monitoring exporters on this host."""
    pass


@cli.command()
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML file")
@click.option(
    "--custom-counters-url", help="URL of the DCGM counters CSV to use instead"
)
@click.option("--debug", is_flag=True, help="Verbose output")
def install(config_file, custom_counters_url, debug):
    """Install the node exporter (and the DCGM exporter if a GPU is found)."""
    conf = _load(config_file, custom_counters_url=custom_counters_url)
    init_logging(
        level=logging.DEBUG if debug else logging.INFO, log_file=conf.log_file
    )
    sys.exit(Provisioner(conf).run())


@cli.command()
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML file")
def status(config_file):
    """Show the state of the exporters."""
    conf = _load(config_file)
    init_logging(level=logging.WARNING)
    node_exporter = NodeExporter(conf)
    dcgm = DCGMExporter(conf)

    table = Table(title="Monitoring exporters")
    table.add_column("Exporter")
    table.add_column("State")
    table.add_column("Endpoint", justify="center")
    node_ok = http_get(node_exporter.metrics_url) is not None
    table.add_row(
        "node_exporter",
        systemd.active_state(node_exporter.service),
        f"{node_exporter.metrics_url} {'✅' if node_ok else '❌'}",
    )
    with DisableLogging(logging.WARNING):
        gpus = detect_gpus()
    if gpus is None:
        table.add_row("dcgm-exporter", "[blue]no GPU[/blue]", "")
    else:
        state = dcgm.status() if which("docker") else None
        dcgm_ok = http_get(dcgm.metrics_url) is not None
        fields = ""
        if conf.counters_file.is_file():
            try:
                n = len(parse_counters(conf.counters_file.read_text()))
                fields = f", {n} fields"
            except ValueError as err:
                logger.warning("Unreadable counters file: %s", err)
        table.add_row(
            "dcgm-exporter",
            f"{state or 'not running'} ({len(gpus)} GPU(s){fields})",
            f"{dcgm.metrics_url} {'✅' if dcgm_ok else '❌'}",
        )
    Console().print(table)


@cli.command()
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML file")
def uninstall(config_file):
    """Stop and remove the exporters (binaries and accounts are kept)."""
    conf = _load(config_file)
    init_logging(log_file=conf.log_file)
    if not is_root():
        logger.error("ERROR: This script must be run as root")
        sys.exit(EXIT_FAILURE)
    if which("docker"):
        DCGMExporter(conf).destroy()
    NodeExporter(conf).destroy()
    sys.exit(EXIT_OK)


@cli.command("show-counters")
def show_counters():
    """Print the built-in DCGM counters file."""
    click.echo(render_counters(), nl=False)


def main():
    cli()


if __name__ == "__main__":
    main()
