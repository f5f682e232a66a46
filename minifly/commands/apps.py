"""Commands that list, create and delete applications."""

from __future__ import annotations

from tabulate import tabulate
from termcolor import colored

from minifly.client import ApiClient
from minifly.errors import MiniflyError

_HEADERS = ("Name", "Status", "Hostname", "Deployed")


def _server_available(client: ApiClient) -> bool:
    if client.health_check():
        return True
    print(colored("❌ Minifly API server is not running", "red"))
    print(f"Start it with: {colored('minifly serve', 'cyan')}")
    return False


def list_apps(client: ApiClient) -> None:
    """Print a table of all applications."""
    if not _server_available(client):
        return
    print(colored("📋 Listing applications...", "blue"))
    try:
        apps = client.list_apps()
    except MiniflyError as exc:
        print(colored(f"❌ Failed to list applications: {exc}", "red"))
        return
    if not apps:
        print(colored("No applications found", "yellow"))
        print(f"Create one with: {colored('minifly apps create <name>', 'cyan')}")
        return
    rows = [
        (app.name, app.status, app.hostname, "Yes" if app.deployed else "No") for app in apps
    ]
    print(tabulate(rows, headers=_HEADERS, tablefmt="psql"))


def create_app(client: ApiClient, name: str) -> None:
    """Create an application and print its details."""
    if not _server_available(client):
        return
    print(colored(f"🚀 Creating application '{name}'...", "blue"))
    try:
        app = client.create_app(name)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to create application: {exc}", "red"))
        return
    print(colored(f"✅ Application '{app.name}' created successfully!", "green"))
    print(f"  • Hostname: {colored(app.hostname, 'cyan')}")
    print(f"  • Status: {colored(app.status, 'yellow')}")


def delete_app(client: ApiClient, name: str) -> None:
    """Delete an application."""
    if not _server_available(client):
        return
    print(colored(f"🗑️  Deleting application '{name}'...", "yellow"))
    try:
        client.delete_app(name)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to delete application: {exc}", "red"))
        return
    print(colored(f"✅ Application '{name}' deleted successfully!", "green"))