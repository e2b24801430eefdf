"""Main CLI entry point for Docstore Server."""

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console

from docstore_server.core.logging import setup_logging
from docstore_server.core.serialization import redact_address
from docstore_server.models.config import ServerSettings
from docstore_server.operations import registry

from .utils import (
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    print_table,
    run_once,
)

console = Console()


@click.group(invoke_without_command=True)
@click.option("-v", "--version", is_flag=True, help="Show version information")
@click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path, dir_okay=False),
    envvar="DOCSTORE_CONFIG_FILE",
    help="YAML settings file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx, version, config_file, log_level):
    """Docstore Server - MongoDB operations as MCP tools.

    Examples:
        docstore serve                                   # Run the MCP stdio server
        docstore tools                                   # List available tools
        docstore ping --url mongodb://localhost:27017    # Check connectivity
        docstore call count-documents -p '{"db": "app", "collection": "users"}'
    """
    if version:
        from . import __version__

        console.print(f"Docstore Server v{__version__}")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        ctx.exit()

    ctx.ensure_object(dict)
    settings = ServerSettings.load(config_file, log_level=log_level)
    ctx.obj["settings"] = settings


@cli.command()
@click.pass_context
def serve(ctx):
    """Run the MCP server on stdin/stdout."""
    from docstore_server.mcp_server.main import run_server

    settings: ServerSettings = ctx.obj["settings"]
    setup_logging(settings.log_level, settings.log_file)
    asyncio.run(run_server(settings))


@cli.command()
@click.option("--tag", default=None, help="Only show tools with this tag")
def tools(tag):
    """List the registered tools and their required parameters."""
    rows = [
        {
            "name": descriptor.name,
            "group": ", ".join(descriptor.tags),
            "required": ", ".join(descriptor.required_params) or "-",
            "description": descriptor.description,
        }
        for descriptor in registry
        if tag is None or tag in descriptor.tags
    ]
    print_table(rows, title="Tools")


@cli.command()
@click.argument("name")
@click.option("-p", "--params", "params_json", default="{}", help="Parameters as JSON")
@click.option("--url", default=None, help="MongoDB connection string for this call")
@click.option("--json", "as_json", is_flag=True, help="Print the full reply as JSON")
@click.pass_context
def call(ctx, name, params_json, url, as_json):
    """Invoke one tool against a fresh connection."""
    try:
        arguments = json.loads(params_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--params")
    if not isinstance(arguments, dict):
        raise click.BadParameter("Parameters must be a JSON object", param_hint="--params")
    if url:
        arguments["url"] = url

    settings: ServerSettings = ctx.obj["settings"]
    setup_logging(settings.log_level, settings.log_file)
    reply = run_once(settings, name, arguments)

    if as_json:
        click.echo(reply.to_json())
    else:
        click.echo(reply.render_text())
    if not reply.ok:
        ctx.exit(1)


@cli.command()
@click.option("--url", default=None, help="MongoDB connection string")
@click.pass_context
def ping(ctx, url):
    """Connect, ping and disconnect."""
    settings: ServerSettings = ctx.obj["settings"]
    setup_logging(settings.log_level, settings.log_file)
    arguments = {"url": url} if url else {}
    reply = run_once(settings, "ping", arguments)
    if reply.ok:
        echo_success(reply.summary)
    else:
        echo_error(reply.render_text())
        ctx.exit(1)


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the effective settings."""
    settings: ServerSettings = ctx.obj["settings"]
    data = settings.model_dump()
    data["mongodb_url"] = redact_address(settings.mongodb_url)
    config_file = settings.settings_file
    if config_file.exists():
        echo_info(f"Settings file: {config_file}")
    else:
        echo_warning(f"Settings file not found: {config_file} (using defaults)")
    print_table(
        [{"setting": key, "value": value} for key, value in data.items()],
        title="Settings",
    )


def main():
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
