"""CLI interface for Layer Stats."""

import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from shared.cli import create_table, error, handle_errors, info, print_table, success
from shared.logger import get_logger, setup_logger

from .client import DaemonClient
from .errors import LayerStatsError, TransportError
from .graph import LayerGraph, StatsReport
from .resolver import ConnectionHints, EndpointResolver

console = Console()
logger = get_logger(__name__)


def format_bytes(bytes_val: float) -> str:
    """
    Format bytes into human-readable string.

    Args:
        bytes_val: Number of bytes

    Returns:
        Human-readable string (e.g., "1.5 GB")
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if bytes_val < 1024.0:
            return f"{bytes_val:.2f} {unit}"
        bytes_val /= 1024.0
    return f"{bytes_val:.2f} PB"


def parse_tls_verify(value: Optional[str]) -> bool:
    """Interpret a DOCKER_TLS_VERIFY style value."""
    if not value:
        return False
    return value.strip().lower() in ("1", "true", "yes", "on")


def display_stats(report: StatsReport) -> None:
    """
    Display a stats report with rich formatting.

    Args:
        report: StatsReport to display
    """
    console.print(Panel("[bold cyan]Docker Layer Usage[/bold cyan]"))

    if report.tags:
        table = create_table(title="Tagged Images")
        table.add_column("Tag", style="cyan")
        table.add_column("Layers", justify="right")
        table.add_column("Size", justify="right", style="yellow")
        table.add_column("Virtual", justify="right", style="dim")

        for tag in sorted(report.tags, key=lambda t: t.tag):
            table.add_row(
                tag.tag,
                str(tag.layer_count),
                format_bytes(tag.size),
                format_bytes(tag.virtual_size),
            )

        print_table(table)
    else:
        info("No tagged images found")

    console.print("\n[bold yellow]Summary:[/bold yellow]")
    console.print(
        f"  Total:     {report.total_layers:5d} layers - {format_bytes(report.total_size)} (actual)"
    )
    console.print(
        f"  Reachable: {report.reachable_layers:5d} layers - "
        f"{format_bytes(report.reachable_size)} (actual)"
    )
    console.print(f"                          {format_bytes(report.virtual_size)} (virtual)")
    console.print(
        f"  Shared:    {report.shared_layers:5d} layers - {format_bytes(report.shared_size)} (actual)"
    )
    console.print(
        f"  Dangling:  {report.dangling_layers:5d} layers - "
        f"{format_bytes(report.dangling_size)} (actual)"
    )
    console.print()


@click.command()
@click.option(
    "--docker-host",
    envvar="DOCKER_HOST",
    default="",
    help="Docker API endpoint (probed when empty)",
)
@click.option(
    "--docker-tls-verify",
    envvar="DOCKER_TLS_VERIFY",
    default="0",
    show_default=True,
    help="Use TLS and verify the daemon certificate",
)
@click.option(
    "--docker-cert-path",
    envvar="DOCKER_CERT_PATH",
    type=click.Path(file_okay=False, dir_okay=True),
    help="Directory holding cert.pem, key.pem and ca.pem",
)
@click.option(
    "--timeout",
    type=int,
    default=60,
    show_default=True,
    help="Docker API request timeout in seconds",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["rich", "json"], case_sensitive=False),
    default="rich",
    show_default=True,
    help="Output format",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@handle_errors
def main(
    docker_host: str,
    docker_tls_verify: str,
    docker_cert_path: Optional[str],
    timeout: int,
    output: str,
    verbose: bool,
):
    """
    Layer Stats - Report how Docker image layers use disk space.

    Counts every layer in the image store, then works out how much of it
    is reachable from tagged images, shared between them, or dangling.

    Examples:

        \b
        # Probe for a local daemon and report
        layer-stats

        \b
        # Use an explicit daemon
        layer-stats --docker-host tcp://10.0.0.5:2376 --docker-tls-verify 1 \\
            --docker-cert-path ~/.docker/certs

        \b
        # JSON output
        layer-stats --output json
    """
    # Setup logging
    log_level = "DEBUG" if verbose else "INFO"
    setup_logger(__name__, level=log_level)

    hints = ConnectionHints(
        host=docker_host or "",
        tls_verify=parse_tls_verify(docker_tls_verify),
        cert_path=docker_cert_path,
    )
    notify = info if output == "rich" else logger.debug
    config = EndpointResolver(notify=notify).resolve(hints)

    try:
        client = DaemonClient(config, timeout=timeout)
        images = client.list_images(include_intermediate=True)
        report = LayerGraph(images).build_stats()
    except TransportError as e:
        error(str(e))
        error("Make sure Docker is running and you have permission to access it")
        sys.exit(1)
    except LayerStatsError as e:
        error(str(e))
        sys.exit(1)

    if output == "rich":
        info(f"Docker host: {config.host}")
        display_stats(report)
        success("Analysis completed!")
    else:
        data = report.to_dict()
        data["docker_host"] = config.host
        print(json.dumps(data, indent=2))

    sys.exit(0)


if __name__ == "__main__":
    main()
