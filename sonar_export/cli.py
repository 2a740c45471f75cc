"""CLI entry point — command definitions using Click.

Commands:
    init      Generate a template config file
    export    Export every issue of a project to an .xlsx workbook
"""

import functools
import logging
import sys

import click

from sonar_export import __version__


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context):
    """Load config or exit with a message."""
    from sonar_export.config import ConfigError, load

    try:
        return load(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


def _handle_export_errors(func):
    """Decorator that catches client and export exceptions and exits cleanly."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from sonar_export.client import (
            AuthenticationError,
            AuthorizationError,
            NetworkError,
            NotFoundError,
            SonarClientError,
        )
        from sonar_export.config import ProjectNotFoundError
        from sonar_export.errors import DataShapeError, ExportError

        try:
            return func(*args, **kwargs)
        except ProjectNotFoundError as exc:
            click.echo(f"Project error: {exc}", err=True)
            sys.exit(1)
        except (AuthenticationError, AuthorizationError) as exc:
            click.echo(f"Authentication error: {exc}", err=True)
            sys.exit(1)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except NetworkError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except SonarClientError as exc:
            click.echo(f"SonarQube error: {exc}", err=True)
            sys.exit(1)
        except DataShapeError as exc:
            click.echo(f"Data error: {exc}", err=True)
            sys.exit(1)
        except ExportError as exc:
            click.echo(f"Export error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default="sonar-config.yaml", show_default=True,
              help="Path to the configuration file.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="sonar-export")
@click.pass_context
def cli(ctx: click.Context, config_path: str, verbose: bool) -> None:
    """SonarQube issues exporter — dump a project's issues to Excel."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            stream=sys.stderr,
        )


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="sonar-config.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template sonar-config.yaml file."""
    from sonar_export.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your server URL, token and project key mappings.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------

@cli.command("export")
@click.argument("project")
@click.option("--output", "output_path", default=None,
              help="Workbook path. Defaults to sonarqube-issues-<project key>.xlsx.")
@click.pass_context
@_handle_export_errors
def export_command(ctx: click.Context, project: str, output_path: str | None) -> None:
    """Export every issue of PROJECT (alias or key) to an .xlsx workbook."""
    from sonar_export.models import ExportRequest
    from sonar_export.service import run_export

    config = _load_config(ctx)
    project_key = config.resolve_project(project)

    if ctx.obj["verbose"]:
        click.echo(f"[verbose] Connecting to {config.url}", err=True)
        click.echo(f"[verbose] Fetching issues for {project_key}", err=True)

    request = ExportRequest.from_payload(
        {"sonarUrl": config.url, "token": config.token, "projectKey": project_key}
    )
    content = run_export(request, config.fetch)

    output_path = output_path or f"sonarqube-issues-{project_key}.xlsx"
    with open(output_path, "wb") as f:
        f.write(content)
    click.echo(f"Workbook written to '{output_path}'", err=True)
