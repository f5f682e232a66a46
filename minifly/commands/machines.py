"""Commands that list, create, start, stop and delete machines."""

from __future__ import annotations

from tabulate import tabulate
from termcolor import colored

from minifly.client import ApiClient
from minifly.errors import MiniflyError

_HEADERS = ("ID", "Name", "State", "Region", "Image", "Private IP")


def _server_available(client: ApiClient) -> bool:
    if client.health_check():
        return True
    print(colored("❌ Minifly API server is not running", "red"))
    print(f"Start it with: {colored('minifly serve', 'cyan')}")
    return False


def list_machines(client: ApiClient, app_name: str) -> None:
    """Print a table of the machines of an application."""
    if not _server_available(client):
        return
    print(colored(f"📋 Listing machines for app '{app_name}'...", "blue"))
    try:
        machines = client.list_machines(app_name)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to list machines: {exc}", "red"))
        return
    if not machines:
        print(colored("No machines found", "yellow"))
        hint = f"minifly machines create --app {app_name} --image <image>"
        print(f"Create one with: {colored(hint, 'cyan')}")
        return
    rows = [
        (m.id, m.name, m.state, m.region, m.config.image, m.private_ip) for m in machines
    ]
    print(tabulate(rows, headers=_HEADERS, tablefmt="psql"))


def create_machine(
    client: ApiClient,
    app_name: str,
    image: str,
    name: str | None = None,
    region: str | None = None,
) -> None:
    """Create a machine for an application and print its details."""
    if not _server_available(client):
        return
    print(colored(f"🚀 Creating machine for app '{app_name}'...", "blue"))
    print(f"  • Image: {colored(image, 'cyan')}")
    if name is not None:
        print(f"  • Name: {colored(name, 'cyan')}")
    if region is not None:
        print(f"  • Region: {colored(region, 'cyan')}")
    try:
        machine = client.create_machine(app_name, image, name, region)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to create machine: {exc}", "red"))
        return
    print(colored(f"✅ Machine '{machine.id}' created successfully!", "green"))
    print(f"  • ID: {colored(machine.id, 'cyan')}")
    print(f"  • State: {colored(machine.state, 'yellow')}")
    print(f"  • Region: {colored(machine.region, 'cyan')}")
    print(f"  • Private IP: {colored(machine.private_ip, 'cyan')}")


def start_machine(client: ApiClient, machine_id: str) -> None:
    """Start a machine."""
    if not _server_available(client):
        return
    print(colored(f"▶️  Starting machine '{machine_id}'...", "blue"))
    try:
        machine = client.start_machine(machine_id)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to start machine: {exc}", "red"))
        return
    print(colored(f"✅ Machine '{machine.id}' started successfully!", "green"))
    print(f"  • State: {colored(machine.state, 'yellow')}")


def stop_machine(client: ApiClient, machine_id: str) -> None:
    """Stop a machine."""
    if not _server_available(client):
        return
    print(colored(f"⏹️  Stopping machine '{machine_id}'...", "yellow"))
    try:
        machine = client.stop_machine(machine_id)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to stop machine: {exc}", "red"))
        return
    print(colored(f"✅ Machine '{machine.id}' stopped successfully!", "green"))
    print(f"  • State: {colored(machine.state, 'yellow')}")


def delete_machine(client: ApiClient, machine_id: str, force: bool = False) -> None:
    """Delete a machine, optionally forcing it."""
    if not _server_available(client):
        return
    action = "Force deleting" if force else "Deleting"
    print(colored(f"🗑️  {action} machine '{machine_id}'...", "yellow"))
    try:
        client.delete_machine(machine_id, force)
    except MiniflyError as exc:
        print(colored(f"❌ Failed to delete machine: {exc}", "red"))
        return
    print(colored(f"✅ Machine '{machine_id}' deleted successfully!", "green"))