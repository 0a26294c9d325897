"""searchapp command line entry point."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv

from src.provisioning import plan as provisioning_plan
from src.provisioning.ports import app_port_in_use, port_of, valid_port, with_port
from src.provisioning.templates import build_search_app_context
from src.readiness import config
from src.readiness.gate import GateConfig, GateOutcome, ReadinessGate
from src.readiness.remediation import docker_command, render_failure_message

_LEVEL_COLORS = {"info": "yellow", "ok": "green", "error": "red"}


class ClickReporter:
    def status(self, label: str, message: str, *, level: str = "info") -> None:
        color = _LEVEL_COLORS.get(level, "yellow")
        if label:
            click.echo()
            click.secho(f"{label:>12}  ", fg=color, bold=True, nl=False)
            click.echo(message)
            click.echo("-" * 80)
        else:
            click.echo(message)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run_gate(cfg: GateConfig) -> GateOutcome:
    outcome = ReadinessGate(cfg).check()
    if outcome.ok:
        click.secho(f"{'OK':>12}  ", fg="green", bold=True, nl=False)
        click.echo(outcome.message)
    else:
        click.secho(f"{'ERROR':>12}  ", fg="red", bold=True, nl=False, err=True)
        click.echo(render_failure_message(outcome), err=True)
    return outcome


def _gate_options(f: Callable[..., Any]) -> Callable[..., Any]:
    f = click.option("--lexical", is_flag=True, help="Use legacy string comparison of versions.")(f)
    f = click.option("--retries", type=click.IntRange(min=0), help="Retry attempts when unreachable.")(f)
    f = click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="HTTP timeout in seconds.")(f)
    f = click.option("--min-version", help="Minimum required Elasticsearch version.")(f)
    f = click.option("--url", help="Elasticsearch URL (default: $ELASTICSEARCH_URL).")(f)
    return f


def _gate_config(
    url: str | None,
    min_version: str | None,
    timeout: float | None,
    retries: int | None,
    lexical: bool,
) -> GateConfig:
    try:
        return GateConfig.from_env(
            endpoint=url.strip().rstrip("/") if url else None,
            minimum_version=min_version,
            timeout_s=timeout,
            retries=retries,
            comparison="lexical" if lexical else None,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """Provision an Elasticsearch-backed Rails demo application."""
    load_dotenv()
    _setup_logging(verbose)


@cli.command()
@_gate_options
def check(url, min_version, timeout, retries, lexical) -> None:
    """Check that Elasticsearch is reachable and recent enough."""
    outcome = _run_gate(_gate_config(url, min_version, timeout, retries, lexical))
    sys.exit(0 if outcome.ok else 1)


@cli.command("docker-command")
@click.option("--url", help="Elasticsearch URL (default: $ELASTICSEARCH_URL).")
def docker_command_cmd(url) -> None:
    """Print a docker command that launches a local Elasticsearch."""
    click.echo(docker_command(url or config.elasticsearch_url()))


@cli.command()
@click.argument("app_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--resource",
    default="Article",
    show_default=True,
    help="Scaffolded resource name: CamelCase, with a regular English plural.",
)
@click.option("--field", "fields", multiple=True, help="Resource field, e.g. title:string (repeatable).")
@click.option("--no-server", is_flag=True, help="Do not start the application server.")
@click.option("--port", type=int, help="Application server port.")
@_gate_options
def provision(app_dir, resource, fields, no_server, port, url, min_version, timeout, retries, lexical) -> None:
    """Generate the search application in APP_DIR and start it."""
    outcome = _run_gate(_gate_config(url, min_version, timeout, retries, lexical))
    if not outcome.ok:
        sys.exit(1)

    app_dir = app_dir.resolve()
    try:
        ctx = build_search_app_context(app_name=app_dir.name, resource=resource, fields=list(fields))
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    reporter = ClickReporter()
    try:
        root = provisioning_plan.generate_app(app_dir.parent, app_dir.name, reporter=reporter)
        provisioning_plan.Provisioner(root, reporter=reporter).run(
            provisioning_plan.build_basic_plan(ctx)
        )
    except provisioning_plan.ProvisioningError as exc:
        reporter.status("ERROR", str(exc), level="error")
        if exc.output:
            click.echo(exc.output, err=True)
        sys.exit(1)

    if no_server or config.server_start_disabled():
        reporter.status("DONE", f"Application ready in {root}", level="ok")
        return

    app_url = config.app_url()
    port = port or port_of(app_url)
    if app_port_in_use(with_port(app_url, port)):
        reporter.status("ERROR", f"Some other application is running on port {port}!", level="error")
        while True:
            chosen = valid_port(click.prompt("Please provide free port", type=str))
            if chosen is not None:
                port = chosen
                break
            click.echo("Not a valid port number.")

    click.echo("=" * 80)
    reporter.status("DONE", "Starting the application.", level="ok")
    sys.exit(provisioning_plan.start_server(root, port))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
