"""Platform-level commands: init, serve, dev, stop, deploy, logs, proxy, status."""

from __future__ import annotations

import threading

import httpx
from termcolor import colored

from minifly.client import ApiClient
from minifly.config import Config

DEFAULT_API_URL = "http://localhost:4280"


def _server_available(client: ApiClient) -> bool:
    if client.health_check():
        return True
    print(colored("❌ Minifly API server is not running", "red"))
    print(f"Start it with: {colored('minifly serve', 'cyan')}")
    return False


def handle_init(config: Config) -> None:
    """Write the default configuration file and print next steps."""
    print(colored("🚀 Initializing Minifly environment...", "blue", attrs=["bold"]))
    Config.init()
    print(colored("✅ Minifly initialized successfully!", "green", attrs=["bold"]))
    print()
    print("Next steps:")
    print(f"  1. Start the platform: {colored('minifly serve', 'cyan')}")
    print(f"  2. Create an app: {colored('minifly apps create my-app', 'cyan')}")
    deploy_hint = "minifly machines create --app my-app --image nginx:latest"
    print(f"  3. Deploy a machine: {colored(deploy_hint, 'cyan')}")


def _platform_running(port: int) -> bool:
    try:
        response = httpx.get(f"http://localhost:{port}/health")
    except httpx.HTTPError:
        return False
    return response.is_success


def _start_api_server(port: int, daemon: bool, dev: bool) -> None:
    print(colored("🔧 Starting API server...", "blue"))
    if daemon:
        print(colored("⚠️  Daemon mode not yet implemented in standalone CLI", "yellow"))
        print("Please run the API server manually:")
    else:
        print(colored("ℹ️  API server simulation", "blue"))
        print("In a full Minifly installation, this would start:")
    print(f"  • Minifly API server on port {port}")
    print("  • Docker container management")
    print("  • LiteFS integration")
    if not daemon:
        print()
        print(colored("💡 To install the full Minifly platform:", "yellow"))
        print("   Build the complete platform from its sources")
        print("   and run the minifly-api server it provides")


def _wait_for_interrupt() -> None:
    event = threading.Event()
    try:
        while not event.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass


def handle_serve(daemon: bool, port: int, dev: bool) -> None:
    """Start the platform, or report that it is already running."""
    print(colored("🚀 Starting Minifly Platform", "blue", attrs=["bold"]))
    if dev:
        print(colored("📝 Development mode enabled", "yellow"))
    if _platform_running(port):
        print(colored("✅ Minifly platform is already running", "green"))
        return
    _start_api_server(port, daemon, dev)
    if daemon:
        return
    print()
    print(colored("🎉 Minifly platform is now running!", "green", attrs=["bold"]))
    print(f"  • API server: {colored(f'http://localhost:{port}', 'cyan')}")
    print(f"  • Web UI: {colored(f'http://localhost:{port}/ui', 'cyan')}")
    print()
    print("Press Ctrl+C to stop the platform")
    _wait_for_interrupt()
    print()
    print(colored("🛑 Shutting down Minifly platform...", "yellow"))


def handle_dev(path: str, port: int) -> None:
    """Describe development mode for a project directory."""
    print(colored("🔥 Starting development mode...", "blue", attrs=["bold"]))
    print(f"  • Project path: {colored(path, 'cyan')}")
    print(f"  • API port: {colored(str(port), 'cyan')}")
    print()
    print(colored("💡 Development mode in standalone CLI:", "yellow"))
    print("   • Install the full platform for complete dev mode")
    print("   • Features include hot reloading, log streaming, and auto-deployment")


def handle_stop(force: bool) -> None:
    """Report on stopping the platform."""
    print(colored("🛑 Stopping Minifly platform...", "yellow", attrs=["bold"]))
    if force:
        print("  • Force mode enabled")
    print()
    print(colored("💡 Platform control not available in standalone CLI", "yellow"))
    print("   Install the full platform for complete platform management")


def handle_deploy(client: ApiClient, path: str | None = None, watch: bool = False) -> None:
    """Deploy from a fly.toml file (fly.toml in the current directory by default)."""
    fly_toml_path = path if path is not None else "fly.toml"
    print(colored(f"🚀 Deploying from '{fly_toml_path}'...", "blue", attrs=["bold"]))
    if not _server_available(client):
        return
    if watch:
        print(colored("👀 Watch mode enabled - watching for changes...", "yellow"))
        print(colored("⚠️  Watch mode not yet implemented in standalone CLI", "yellow"))
    print(colored("💡 To use the full deploy functionality:", "yellow"))
    print("   1. Install the complete Minifly platform")
    print("   2. Create a fly.toml configuration file")
    print("   3. Run minifly deploy with the full platform running")


def handle_logs(
    client: ApiClient, machine_id: str, follow: bool = False, region: str | None = None
) -> None:
    """Show the logs of a machine."""
    if not _server_available(client):
        return
    print(colored(f"📋 Logs for machine '{machine_id}'", "blue", attrs=["bold"]))
    if region is not None:
        print(f"  • Region filter: {colored(region, 'cyan')}")
    if follow:
        print("  • Following logs in real-time")
    print()
    print(colored("💡 Log streaming not yet implemented in standalone CLI", "yellow"))
    print("   Install the full platform for complete log functionality")


def handle_proxy(client: ApiClient, machine_id: str, port: int = 8080) -> None:
    """Proxy a local port to a machine."""
    if not _server_available(client):
        return
    message = f"🔗 Proxying to machine '{machine_id}' on port {port}"
    print(colored(message, "blue", attrs=["bold"]))
    print()
    print(colored("💡 Proxy functionality not yet implemented in standalone CLI", "yellow"))
    print("   Install the full platform for complete proxy functionality")


def handle_status(client: ApiClient) -> None:
    """Print whether the API server is running and some quick commands."""
    print(colored("📊 Minifly Platform Status", "blue", attrs=["bold"]))
    print()
    print(colored("🔧 API Server", attrs=["bold"]))
    if client.health_check():
        print(f"  Status: {colored('Running', 'green')}")
        print(f"  URL: {colored(DEFAULT_API_URL, 'cyan')}")
    else:
        print(f"  Status: {colored('Not Running', 'red')}")
        print(f"  Start with: {colored('minifly serve', 'cyan')}")
    print()
    print(colored("📋 Quick Commands", attrs=["bold"]))
    print(f"  • List apps: {colored('minifly apps list', 'cyan')}")
    print(f"  • Create app: {colored('minifly apps create <name>', 'cyan')}")
    create_hint = "minifly machines create --app <app> --image <image>"
    print(f"  • Create machine: {colored(create_hint, 'cyan')}")