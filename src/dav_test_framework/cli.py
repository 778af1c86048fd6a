"""
Command-line interface for DAV test framework.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .client import DAVClient
from .config import ConfigurationError, ServerConfig, load_config, validate_config
from .exceptions import DAVConnectionError, DAVHTTPError, DAVTimeoutError
from .manager import RunManager
from .observers import LogObserver, TraceObserver
from .reporting import ConsoleReporter, JSONReporter, JUnitReporter

logger = logging.getLogger(__name__)


def _run_dry_run(server_config: ServerConfig) -> None:
    """Validate config and server connectivity without running any tests.

    Prints a summary of the configuration, probes the server with OPTIONS,
    and exits 0 on success or 1 on any failure.
    """
    click.echo("Dry-run mode: validating configuration and connectivity only.")
    click.echo(f"  Server URL   : {server_config.server_url}")
    click.echo(f"  Timeout      : {server_config.timeout_seconds}s")
    click.echo(f"  Username     : {server_config.username or 'not set'}")
    click.echo(f"  Features     : {', '.join(server_config.features) or 'none'}")
    click.echo(f"  Report format: {server_config.report_format}")

    click.echo("\nProbing server with OPTIONS...")
    try:
        with DAVClient(
            base_url=server_config.server_url,
            timeout=server_config.timeout_seconds,
            username=server_config.username,
            password=server_config.password,
        ) as client:
            response = client.probe()
        click.echo(f"  Server reachable, status: {response.status}")
        dav = response.headers.get("DAV")
        if dav:
            click.echo(f"  DAV header   : {dav}")
        click.echo("\nDry-run passed. Configuration is valid and the server is reachable.")
        sys.exit(0)
    except DAVConnectionError as e:
        click.echo(f"  Connection failed: {e}", err=True)
        click.echo(
            "\nDry-run failed: could not connect to the server. "
            "Check server_url and network connectivity.",
            err=True,
        )
        sys.exit(1)
    except DAVTimeoutError as e:
        click.echo(f"  Request timed out: {e}", err=True)
        click.echo(
            "\nDry-run failed: the server did not respond within the configured timeout.",
            err=True,
        )
        sys.exit(1)
    except DAVHTTPError as e:
        click.echo(f"  Server returned HTTP {e.status_code}: {e}", err=True)
        click.echo("\nDry-run failed: the server responded with an error status.", err=True)
        sys.exit(1)


@click.command()
@click.argument("test_files", nargs=-1, type=click.Path(exists=True))
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to server configuration file (YAML)",
)
@click.option(
    "--pretest",
    type=click.Path(exists=True),
    help="Hook file run before every test file; a failure aborts the run",
)
@click.option(
    "--posttest",
    type=click.Path(exists=True),
    help="Hook file run after every test file; a failure aborts the run",
)
@click.option(
    "--stop-on-fail",
    is_flag=True,
    default=False,
    help="Stop after the first suite with a failure",
)
@click.option(
    "--all",
    "all_mode",
    is_flag=True,
    default=False,
    help="Skip test files marked ignore_all",
)
@click.option(
    "--report-format",
    type=click.Choice(["console", "junit", "json"]),
    help="Report format (overrides config)",
)
@click.option(
    "--output",
    type=click.Path(),
    help="Output file for report (default: stdout)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    help="Logging level",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help=(
        "Validate configuration and probe the server without running any tests. "
        "Exits 0 if the server is reachable and the config is valid, 1 otherwise."
    ),
)
def main(
    test_files: Tuple[str, ...],
    config: Optional[str],
    pretest: Optional[str],
    posttest: Optional[str],
    stop_on_fail: bool,
    all_mode: bool,
    report_format: Optional[str],
    output: Optional[str],
    log_level: str,
    dry_run: bool,
) -> None:
    """
    DAV Test Framework - Conformance testing for CalDAV/CardDAV servers.

    Examples:

      # Validate config and connectivity only (no tests run)
      dav-test --dry-run --config serverinfo.yaml

      # Run two suite-definition files
      dav-test --config serverinfo.yaml scripts/put.yaml scripts/get.yaml

      # With setup/teardown hooks, stopping at the first failure
      dav-test --config serverinfo.yaml --pretest setup.yaml --posttest cleanup.yaml \\
          --stop-on-fail scripts/*.yaml

      # CI mode with JUnit output
      dav-test --config serverinfo.yaml --report-format junit --output results.xml scripts/*.yaml
    """
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    try:
        logger.info("Loading configuration...")
        server_config = load_config(config)

        if report_format:
            server_config.report_format = report_format
        if stop_on_fail:
            server_config.stop_on_fail = True

        errors = validate_config(server_config)
        if errors:
            click.echo("Configuration errors:", err=True)
            for error in errors:
                click.echo(f"  - {error}", err=True)
            sys.exit(1)

        if dry_run:
            _run_dry_run(server_config)
            return  # _run_dry_run calls sys.exit internally

        if not test_files:
            click.echo("Error: at least one test file is required", err=True)
            sys.exit(1)

        manager = RunManager(server_config, observers=[TraceObserver(), LogObserver()])
        manager.load(list(test_files), pretest=pretest, posttest=posttest, all_mode=all_mode)
        summary = manager.run_all()

        if server_config.report_format == "junit":
            reporter = JUnitReporter()
        elif server_config.report_format == "json":
            reporter = JSONReporter()
        else:
            reporter = ConsoleReporter()

        report = reporter.generate(summary)

        if output:
            output_path = Path(output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(report)
            click.echo(f"Report written to: {output}")
            if server_config.report_format != "console":
                click.echo(ConsoleReporter().generate(summary))
        else:
            click.echo(report)

        logger.info(
            "Tests complete: %d passed, %d failed, %d errors, %d ignored",
            summary.counters.ok,
            summary.counters.failed,
            summary.counters.error,
            summary.counters.ignored,
        )

        sys.exit(0 if summary.success else 1)

    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except FileNotFoundError as e:
        logger.error("File not found: %s", e)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        click.echo(f"Unexpected error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
