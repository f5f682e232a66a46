"""Command-line entry point."""

from __future__ import annotations

import argparse
import dataclasses
import os
import sys
from collections.abc import Sequence

from minifly.client import CLIENT_VERSION, ApiClient
from minifly.commands import apps as app_commands
from minifly.commands import machines as machine_commands
from minifly.commands import platform as platform_commands
from minifly.config import Config
from minifly.errors import MiniflyError
from minifly.structured_logging import init_default_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for every command and sub-command."""
    parser = argparse.ArgumentParser(
        prog="minifly",
        description="Local Fly.io development simulator with incredible DX",
    )
    parser.add_argument("--version", action="version", version=f"minifly {CLIENT_VERSION}")
    parser.add_argument("-a", "--api-url", help="API endpoint")
    parser.add_argument("-t", "--token", help="Authentication token")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    commands.add_parser("init", help="Initialize Minifly environment")

    serve = commands.add_parser("serve", help="Start the Minifly platform (API server + LiteFS)")
    serve.add_argument("-d", "--daemon", action="store_true", help="Run in background as daemon")
    serve.add_argument("-p", "--port", type=int, default=4280, help="Port for API server")
    serve.add_argument("--dev", action="store_true", help="Enable development mode with auto-reload")

    dev = commands.add_parser("dev", help="Development mode with auto-reload and log streaming")
    dev.add_argument("path", nargs="?", default=".", help="Path to project directory")
    dev.add_argument("-p", "--port", type=int, default=4280, help="Port for API server")

    stop = commands.add_parser("stop", help="Stop the Minifly platform")
    stop.add_argument("-f", "--force", action="store_true", help="Force stop all services")

    apps = commands.add_parser("apps", help="Manage applications")
    apps_commands = apps.add_subparsers(dest="apps_command", required=True, metavar="COMMAND")
    apps_commands.add_parser("list", help="List all applications")
    apps_create = apps_commands.add_parser("create", help="Create a new application")
    apps_create.add_argument("name", help="Application name")
    apps_delete = apps_commands.add_parser("delete", help="Delete an application")
    apps_delete.add_argument("name", help="Application name")

    machines = commands.add_parser("machines", help="Manage machines")
    machine_cmds = machines.add_subparsers(
        dest="machines_command", required=True, metavar="COMMAND"
    )
    m_list = machine_cmds.add_parser("list", help="List machines for an app")
    m_list.add_argument("-a", "--app", required=True, help="Application name")
    m_create = machine_cmds.add_parser("create", help="Create a new machine")
    m_create.add_argument("-a", "--app", required=True, help="Application name")
    m_create.add_argument("-i", "--image", required=True, help="Docker image")
    m_create.add_argument("-n", "--name", help="Machine name")
    m_create.add_argument("-r", "--region", help="Region")
    m_start = machine_cmds.add_parser("start", help="Start a machine")
    m_start.add_argument("machine_id", help="Machine ID")
    m_stop = machine_cmds.add_parser("stop", help="Stop a machine")
    m_stop.add_argument("machine_id", help="Machine ID")
    m_delete = machine_cmds.add_parser("delete", help="Delete a machine")
    m_delete.add_argument("machine_id", help="Machine ID")
    m_delete.add_argument("-f", "--force", action="store_true", help="Force deletion")

    deploy = commands.add_parser("deploy", help="Deploy an application")
    deploy.add_argument("path", nargs="?", help="Path to fly.toml")
    deploy.add_argument("-w", "--watch", action="store_true", help="Watch for changes and auto-redeploy")

    logs = commands.add_parser("logs", help="View logs from machines")
    logs.add_argument("machine_id", help="Machine ID")
    logs.add_argument("-f", "--follow", action="store_true", help="Follow log output")
    logs.add_argument("-r", "--region", help="Show logs from specific region")

    proxy = commands.add_parser("proxy", help="Proxy to a running service")
    proxy.add_argument("machine_id", help="Machine ID")
    proxy.add_argument("-p", "--port", type=int, default=8080)

    commands.add_parser("status", help="Show Minifly status")
    return parser


def _dispatch(args: argparse.Namespace, config: Config, client: ApiClient) -> None:
    match args.command:
        case "init":
            platform_commands.handle_init(config)
        case "serve":
            platform_commands.handle_serve(args.daemon, args.port, args.dev)
        case "dev":
            platform_commands.handle_dev(args.path, args.port)
        case "stop":
            platform_commands.handle_stop(args.force)
        case "apps":
            match args.apps_command:
                case "list":
                    app_commands.list_apps(client)
                case "create":
                    app_commands.create_app(client, args.name)
                case "delete":
                    app_commands.delete_app(client, args.name)
        case "machines":
            match args.machines_command:
                case "list":
                    machine_commands.list_machines(client, args.app)
                case "create":
                    machine_commands.create_machine(
                        client, args.app, args.image, args.name, args.region
                    )
                case "start":
                    machine_commands.start_machine(client, args.machine_id)
                case "stop":
                    machine_commands.stop_machine(client, args.machine_id)
                case "delete":
                    machine_commands.delete_machine(client, args.machine_id, args.force)
        case "deploy":
            platform_commands.handle_deploy(client, args.path, args.watch)
        case "logs":
            platform_commands.handle_logs(client, args.machine_id, args.follow, args.region)
        case "proxy":
            platform_commands.handle_proxy(client, args.machine_id, args.port)
        case "status":
            platform_commands.handle_status(client)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    args = build_parser().parse_args(argv)

    if args.verbose or "MINIFLY_DEBUG" in os.environ:
        init_default_logging()

    try:
        config = Config.load()
        overrides = {}
        if args.api_url is not None:
            overrides["api_url"] = args.api_url
        if args.token is not None:
            overrides["token"] = args.token
        if overrides:
            config = dataclasses.replace(config, **overrides)
        with ApiClient(config) as client:
            _dispatch(args, config, client)
    except MiniflyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())