"""Command-line interface for ms365.

Usage:
    python -m ms365 validate-config
    python -m ms365 onedrive --business Documents
    python -m ms365 --tenant contoso sites
    python -m ms365 site --url https://contoso.sharepoint.com/sites/eng
    python -m ms365 --device-code teams
    python -m ms365 channels "Engineering"
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from ms365.config import get_config, validate_config_file
from ms365.config_schema import LoggingConfig
from ms365.core.errors import Ms365Error
from ms365.core.logging import configure_logging, operation

console = Console()


@dataclass(slots=True)
class CLIContext:
    """Options shared by every command."""

    tenant: str | None = None
    app: str | None = None
    login_options: dict[str, Any] = field(default_factory=dict)

    def business_args(self) -> dict[str, Any]:
        return {"tenant": self.tenant, "app": self.app, **self.login_options}


def _run(action: Callable[[], None]) -> None:
    """Run a command body under a fresh operation ID, turning errors into exit code 1."""
    with operation():
        try:
            action()
        except Ms365Error as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)


def _print_objects(title: str, rows: list[tuple[str, ...]], columns: tuple[str, ...]) -> None:
    if not rows:
        console.print(f"[yellow]No {title.lower()} found.[/yellow]")
        return
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*row)
    console.print(table)


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option("--tenant", default=None, help="Azure AD tenant (default: CLIMICROSOFT365_TENANT or 'common')")
@click.option("--app", default=None, help="App registration ID (default: CLIMICROSOFT365_AADAPPID or built-in)")
@click.option("--device-code", is_flag=True, default=False, help="Log in with a device code instead of a browser")
@click.pass_context
def cli(ctx: click.Context, debug: bool, tenant: str | None, app: str | None, device_code: bool) -> None:
    """Access OneDrive, SharePoint and Teams from the command line."""
    try:
        logging_config = get_config().logging
    except Ms365Error:
        # validate-config reports the problem; log with defaults meanwhile
        logging_config = LoggingConfig()
    configure_logging(
        log_level="DEBUG" if debug else logging_config.level,
        json_output=logging_config.json_output,
    )
    login_options = {"auth_type": "device_code"} if device_code else {}
    ctx.obj = CLIContext(tenant=tenant, app=app, login_options=login_options)


@cli.command("validate-config")
@click.option(
    "--config-path",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: MS365_CONFIG_PATH or ~/.ms365/config.yaml)",
)
def validate_config(config_path: Path | None) -> None:
    """Validate the configuration and show the effective login settings."""
    is_valid, message = validate_config_file(config_path)
    if is_valid:
        console.print(f"[green]✓[/green] {message}")
    else:
        console.print(f"[red]✗[/red] {message}")
        sys.exit(1)


@cli.command()
@click.argument("path", default="/")
@click.option("--business", is_flag=True, default=False, help="Use OneDrive for Business")
@click.pass_obj
def onedrive(obj: CLIContext, path: str, business: bool) -> None:
    """List the contents of a OneDrive folder."""
    from ms365.client import get_business_onedrive, get_personal_onedrive

    def action() -> None:
        if business:
            drive = get_business_onedrive(**obj.business_args())
        else:
            drive = get_personal_onedrive(app=obj.app, **obj.login_options)
        items = drive.list_items(path)
        _print_objects(
            f"Items in {path}",
            [
                (
                    item.name,
                    "folder" if item.is_folder() else "file",
                    str(item.properties.get("size", "")),
                    item.properties.get("lastModifiedDateTime", ""),
                )
                for item in items
            ],
            ("Name", "Type", "Size", "Modified"),
        )

    _run(action)


@cli.command()
@click.pass_obj
def sites(obj: CLIContext) -> None:
    """List the SharePoint sites you follow."""
    from ms365.client import list_sharepoint_sites

    def action() -> None:
        found = list_sharepoint_sites(**obj.business_args())
        _print_objects(
            "SharePoint sites",
            [(site.name, site.web_url, site.id) for site in found],
            ("Name", "URL", "ID"),
        )

    _run(action)


@cli.command()
@click.argument("name", required=False)
@click.option("--url", "site_url", default=None, help="Site web URL")
@click.option("--id", "site_id", default=None, help="Site ID")
@click.pass_obj
def site(obj: CLIContext, name: str | None, site_url: str | None, site_id: str | None) -> None:
    """Show a SharePoint site and its document libraries."""
    from ms365.client import get_sharepoint_site

    def action() -> None:
        found = get_sharepoint_site(
            site_name=name,
            site_url=site_url,
            site_id=site_id,
            **obj.business_args(),
        )
        console.print(f"[bold]{found.name}[/bold]  {found.web_url}")
        _print_objects(
            "Document libraries",
            [(drive.name, drive.properties.get("webUrl", ""), drive.id) for drive in found.list_drives()],
            ("Name", "URL", "ID"),
        )

    _run(action)


@cli.command()
@click.pass_obj
def teams(obj: CLIContext) -> None:
    """List the teams you have joined."""
    from ms365.client import list_teams

    def action() -> None:
        found = list_teams(**obj.business_args())
        _print_objects(
            "Teams",
            [(team.name, team.properties.get("description") or "", team.id) for team in found],
            ("Name", "Description", "ID"),
        )

    _run(action)


@cli.command()
@click.argument("team_name")
@click.pass_obj
def channels(obj: CLIContext, team_name: str) -> None:
    """List the channels of a team."""
    from ms365.client import get_team

    def action() -> None:
        team = get_team(team_name=team_name, **obj.business_args())
        _print_objects(
            f"Channels in {team.name}",
            [
                (channel.name, channel.properties.get("membershipType", ""), channel.id)
                for channel in team.list_channels()
            ],
            ("Name", "Membership", "ID"),
        )

    _run(action)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
