"""``taskbox creds`` — manage the encrypted website credential store."""

from __future__ import annotations

import sys

import click

from taskbox.cli_commands._output import console, print_domains
from taskbox.config import Settings
from taskbox.credentials.store import CredentialStore, normalize_domain
from taskbox.errors import TaskboxError


def _store(settings: Settings) -> CredentialStore:
    return CredentialStore(settings.credentials_dir, key=settings.key)


@click.group()
def creds() -> None:
    """Store, list and delete website credentials."""


@creds.command("store")
@click.argument("website")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, help="Password (prompted if omitted).")
@click.pass_obj
def store_cmd(settings: Settings, website: str, username: str, password: str) -> None:
    """Save USERNAME and a password for WEBSITE."""
    try:
        _store(settings).store(website, username, password)
    except TaskboxError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    console.print(f"[green]Stored credentials for {normalize_domain(website)}[/green]")


@creds.command("list")
@click.pass_obj
def list_cmd(settings: Settings) -> None:
    """List domains with stored credentials."""
    print_domains(_store(settings).list())


@creds.command("delete")
@click.argument("website")
@click.pass_obj
def delete_cmd(settings: Settings, website: str) -> None:
    """Remove the credentials stored for WEBSITE."""
    if not _store(settings).delete(website):
        console.print(f"[yellow]No credentials stored for {website}[/yellow]")
        sys.exit(1)
    console.print(f"[green]Deleted credentials for {website}[/green]")
