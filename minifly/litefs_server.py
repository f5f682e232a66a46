"""HTTP control server for LiteFS instances."""

from __future__ import annotations

import dataclasses
import logging
import socket
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from minifly.errors import LiteFSError, MiniflyError
from minifly.litefs_manager import LiteFSManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LiteFSStatus:
    """State of one machine's LiteFS instance."""

    machine_id: str
    is_running: bool
    is_primary: bool
    mount_path: str
    proxy_url: str


@dataclass
class ApiResponse(Generic[T]):
    """Envelope of every answer from the server."""

    success: bool
    data: T | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            data: Any = self.data
            if dataclasses.is_dataclass(data) and not isinstance(data, type):
                data = dataclasses.asdict(data)
            out["data"] = data
        if self.error is not None:
            out["error"] = self.error
        return out


def _reply(response: ApiResponse[Any]) -> JSONResponse:
    return JSONResponse(response.to_dict())


def _status(manager: LiteFSManager, machine_id: str, *, running: bool, primary: bool) -> LiteFSStatus:
    return LiteFSStatus(
        machine_id=machine_id,
        is_running=running,
        is_primary=primary,
        mount_path=str(manager.get_mount_path(machine_id)),
        proxy_url=manager.get_proxy_url(machine_id),
    )


def create_app(manager: LiteFSManager) -> Starlette:
    """Build the web application that controls `manager`."""

    async def health_check(request: Request) -> Response:
        return _reply(ApiResponse(success=True, data="LiteFS server is running"))

    async def list_instances(request: Request) -> Response:
        return _reply(ApiResponse(success=True, data=[]))

    async def get_instance(request: Request) -> Response:
        machine_id = request.path_params["machine_id"]
        running = await run_in_threadpool(manager.is_running, machine_id)
        if not running:
            return _reply(ApiResponse(success=False, error="LiteFS instance not found"))
        status = _status(manager, machine_id, running=True, primary=True)
        return _reply(ApiResponse(success=True, data=status))

    async def start_instance(request: Request) -> Response:
        machine_id = request.path_params["machine_id"]
        try:
            body = await request.json()
        except ValueError:
            return PlainTextResponse("Failed to parse the request body as JSON", status_code=400)
        if not isinstance(body, dict) or not isinstance(body.get("is_primary"), bool):
            return PlainTextResponse(
                "Failed to deserialize the JSON body: missing or invalid field `is_primary`",
                status_code=422,
            )
        is_primary = body["is_primary"]
        try:
            await run_in_threadpool(manager.start_for_machine, machine_id, is_primary)
        except MiniflyError as exc:
            return _reply(ApiResponse(success=False, error=str(exc)))
        status = _status(manager, machine_id, running=True, primary=is_primary)
        return _reply(ApiResponse(success=True, data=status))

    async def stop_instance(request: Request) -> Response:
        machine_id = request.path_params["machine_id"]
        try:
            await run_in_threadpool(manager.stop_for_machine, machine_id)
        except MiniflyError as exc:
            return _reply(ApiResponse(success=False, error=str(exc)))
        return _reply(ApiResponse(success=True, data=f"LiteFS instance {machine_id} stopped"))

    async def get_status(request: Request) -> Response:
        machine_id = request.path_params["machine_id"]
        running = await run_in_threadpool(manager.is_running, machine_id)
        return _reply(ApiResponse(success=True, data=running))

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/instances", list_instances, methods=["GET"]),
        Route("/instances/{machine_id}", get_instance, methods=["GET"]),
        Route("/instances/{machine_id}/start", start_instance, methods=["POST"]),
        Route("/instances/{machine_id}/stop", stop_instance, methods=["POST"]),
        Route("/instances/{machine_id}/status", get_status, methods=["GET"]),
    ]
    return Starlette(routes=routes)


def run_server(manager: LiteFSManager, port: int) -> None:
    """Serve the control API on all interfaces until interrupted."""
    app = create_app(manager)
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("0.0.0.0", port))
    except OSError as exc:
        sock.close()
        raise LiteFSError(f"Failed to bind to port {port}: {exc}") from exc

    logger.info("LiteFS HTTP server listening on 0.0.0.0:%s", port)
    server = uvicorn.Server(uvicorn.Config(app, log_level="info"))
    try:
        server.run(sockets=[sock])
    except OSError as exc:
        raise LiteFSError(f"Server error: {exc}") from exc
    finally:
        sock.close()