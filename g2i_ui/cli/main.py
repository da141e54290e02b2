"""
Command-line interface for g2i.

Waits for the results of a running Gatling simulation to appear under a
directory, tails its simulation.log and streams the records to InfluxDB.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from g2i_common.api import ConfigurationError, StopToken, configure_logging
from g2i_influx.api import InfluxSink
from g2i_parser.api import RunOutcome, run_main
from g2i_ui.cli.settings import load_settings

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Stream a running Gatling simulation log to InfluxDB.",
    add_completion=False,
)


def _print_summary(console: Console, sink: InfluxSink, outcome: RunOutcome) -> None:
    table = Table(title="Points written", show_header=True, header_style="bold magenta")
    table.add_column("Measurement", style="cyan")
    table.add_column("Points", justify="right", style="green")
    for measurement, count in sorted(sink.written.items()):
        table.add_row(measurement, str(count))
    if sink.dropped:
        table.add_row("dropped", str(sink.dropped), style="red")
    console.print(table)
    style = "red" if outcome is RunOutcome.FAILED else "green"
    console.print(f"[{style}]Finished: {outcome.value}[/{style}]")


@app.command()
def run(
    target_dir: Optional[Path] = typer.Argument(
        None,
        help="Directory the Gatling results folder will be created in.",
    ),
    system_under_test: Optional[str] = typer.Option(
        None,
        "--system-under-test",
        "-s",
        help="Label of the system being tested, attached to every point.",
    ),
    test_environment: Optional[str] = typer.Option(
        None,
        "--test-environment",
        "-e",
        help="Label of the test environment, attached to every point.",
    ),
    stop_timeout: Optional[float] = typer.Option(
        None,
        "--stop-timeout",
        "-t",
        help="Seconds without new log lines before the run is considered finished.",
    ),
    address: Optional[str] = typer.Option(
        None,
        "--address",
        "-a",
        help="InfluxDB base URL.",
    ),
    database: Optional[str] = typer.Option(
        None,
        "--database",
        "-d",
        help="InfluxDB database name.",
    ),
    username: Optional[str] = typer.Option(
        None,
        "--username",
        "-u",
        help="InfluxDB user.",
    ),
    password: Optional[str] = typer.Option(
        None,
        "--password",
        "-p",
        help="InfluxDB password.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file with 'parser' and 'influx' sections.",
    ),
    stop_file: Optional[Path] = typer.Option(
        None,
        "--stop-file",
        help="Path to a stop sentinel file; when created, the parser stops gracefully.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable verbose debug logging.",
    ),
    log_file: Optional[str] = typer.Option(
        None,
        "--log-file",
        help="Also write logs to this file.",
    ),
    json_logs: Optional[bool] = typer.Option(
        None,
        "--json-logs/--console-logs",
        help="Render logs as JSON lines.",
    ),
) -> None:
    """Wait for the simulation log, then stream it until the run goes quiet."""
    start_time = time.time()
    configure_logging(debug=debug, log_file=log_file, json=json_logs, force=True)
    console = Console(stderr=True)

    try:
        parser_settings, influx_config = load_settings(
            config,
            {
                "target_dir": target_dir,
                "system_under_test": system_under_test,
                "test_environment": test_environment,
                "stop_timeout": stop_timeout,
            },
            {
                "url": address,
                "database": database,
                "username": username,
                "password": password,
            },
        )
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2)

    logger.info(
        "Starting g2i on %s (system under test: %s, environment: %s)",
        parser_settings.node_name,
        parser_settings.system_under_test or "-",
        parser_settings.test_environment or "-",
    )
    sink = InfluxSink(influx_config)
    with StopToken(stop_file=stop_file, name="global") as stop_token:
        outcome = run_main(
            parser_settings.target_dir,
            parser_settings.run_identity(start_time),
            sink,
            stop_token,
            idle_timeout=parser_settings.stop_timeout,
        )

    _print_summary(console, sink, outcome)
    raise typer.Exit(outcome.exit_code)


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()
