"""
geogate CLI
Provisioning and operations for the credential store, plus the server.
"""

import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from geogate.config import Settings, get_settings
from geogate.db import DatabaseManager
from geogate.errors import GeogateError
from geogate.quota import CredentialStore, ExpirySweeper, ms_to_iso

console = Console()


def get_store(ctx: click.Context) -> CredentialStore:
    """Create a store bound to the configured database, closed with the context."""
    settings: Settings = ctx.obj["settings"]
    db_manager = DatabaseManager(database_url=settings.database_url)
    ctx.call_on_close(db_manager.close)
    return CredentialStore(db_manager, settings.quota_policy())


def fail(error: Exception) -> None:
    console.print(f"❌ [red]Error: {error}[/red]")
    sys.exit(1)


@click.group()
@click.option("--database-url", "-d", default=None, help="Override GEOGATE_DATABASE_URL")
@click.pass_context
def cli(ctx, database_url: Optional[str]):
    """geogate - GeoIP lookups behind per-key request quotas."""
    ctx.ensure_object(dict)
    settings = ctx.obj.get("settings") or get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    ctx.obj["settings"] = settings


@cli.command()
@click.pass_context
def setup(ctx):
    """Create the credential table."""
    try:
        get_store(ctx).setup()
    except GeogateError as e:
        fail(e)
    console.print("✅ [green]Database ready[/green]")


@cli.command()
@click.confirmation_option(prompt="This deletes every API key. Continue?")
@click.pass_context
def reset(ctx):
    """Drop all credentials and recreate an empty store."""
    try:
        get_store(ctx).reset()
    except GeogateError as e:
        fail(e)
    console.print("✅ [green]Credential store reset[/green]")


@cli.command()
@click.argument("name")
@click.argument("limit", required=False, type=int)
@click.pass_context
def new(ctx, name: str, limit: Optional[int]):
    """Create a new API key called NAME with an optional LIMIT."""
    settings: Settings = ctx.obj["settings"]
    try:
        credential = get_store(ctx).create_with_generated_key(name, limit)
    except GeogateError as e:
        fail(e)

    hours = settings.window_ms / 3_600_000
    console.print("\nAPI Key created successfully!")
    console.print("----------------------------")
    console.print(f"Name: {credential.name}")
    console.print(f"API Key: {credential.key}")
    console.print(f"Rate Limit: {credential.limit} requests per {hours:g} hours")
    console.print("----------------------------\n")


@cli.command()
@click.argument("api_key")
@click.argument("assignment")
@click.pass_context
def update(ctx, api_key: str, assignment: str):
    """Update a field on API_KEY, given as FIELD=VALUE (name or limit)."""
    parts = assignment.split("=")
    if len(parts) != 2:
        fail(ValueError("Invalid field=value format"))
    field, value = parts

    try:
        credential = get_store(ctx).update_field(api_key, field, value)
    except GeogateError as e:
        fail(e)

    console.print(f"\nSuccessfully updated {field} to {value}")
    console.print("----------------------------")
    console.print(f"API Key: {credential.key}")
    console.print(f"Name: {credential.name}")
    console.print(f"Rate Limit: {credential.limit}")
    console.print("----------------------------\n")


@cli.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_keys(ctx, as_json: bool):
    """List all API keys and their current usage."""
    try:
        credentials = get_store(ctx).list_credentials()
    except GeogateError as e:
        fail(e)

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in credentials], indent=2))
        return

    if not credentials:
        console.print("[yellow]No API keys[/yellow]")
        return

    table = Table(title="API Keys")
    table.add_column("Name", style="cyan")
    table.add_column("API Key", style="dim")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Window Start")
    for c in credentials:
        color = "red" if c.count >= c.limit else "green"
        table.add_row(
            c.name,
            c.key,
            f"[{color}]{c.count}[/{color}]",
            str(c.limit),
            ms_to_iso(c.window_start),
        )
    console.print(table)


@cli.command()
@click.argument("api_key")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx, api_key: str, as_json: bool):
    """Show one API key."""
    try:
        credential = get_store(ctx).get(api_key)
    except GeogateError as e:
        fail(e)

    if as_json:
        click.echo(json.dumps(credential.to_dict(), indent=2))
        return
    console.print(f"Name: {credential.name}")
    console.print(f"Rate Limit: {credential.limit}")
    console.print(f"Used: {credential.count}")
    console.print(f"Window Start: {ms_to_iso(credential.window_start)}")
    console.print(f"Created: {ms_to_iso(credential.created_at)}")


@cli.command()
@click.argument("api_key")
@click.confirmation_option(prompt="Delete this API key?")
@click.pass_context
def delete(ctx, api_key: str):
    """Delete an API key."""
    try:
        get_store(ctx).delete(api_key)
    except GeogateError as e:
        fail(e)
    console.print("✅ [green]API key deleted[/green]")


@cli.command()
@click.pass_context
def sweep(ctx):
    """Reset every expired quota window once."""
    store = get_store(ctx)
    try:
        affected = ExpirySweeper(store, store.policy).sweep()
    except GeogateError as e:
        fail(e)
    console.print(f"Reset {affected} expired window(s)")


@cli.command()
@click.pass_context
def serve(ctx):
    """Run the API server with the expiry sweeper."""
    from geogate.main import serve as run_server

    run_server(ctx.obj["settings"])


def main():
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
