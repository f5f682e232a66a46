"""Wire types exchanged with the Machines API by the command-line client."""

import dataclasses
import types
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Self

from minifly.models import Model


def _is_optional(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    return origin in (typing.Union, types.UnionType) and type(None) in typing.get_args(tp)


class _WireModel(Model):
    """A model whose non-optional fields must all be present when decoding.

    Defaults on these dataclasses exist for building values in code; they
    never fill in keys missing from a decoded document.
    """

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        if isinstance(data, Mapping):
            for f in dataclasses.fields(cls):
                key = f.metadata.get("rename", f.name)
                if key not in data and not _is_optional(f.type):
                    raise ValueError(f"missing field `{key}` in {cls.__name__}")
        return super().from_dict(data)


class MachineState(StrEnum):
    """Lifecycle states of a machine."""

    CREATED = "created"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"
    REPLACING = "replacing"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


@dataclass(kw_only=True)
class App(_WireModel):
    """An application as reported by the API."""

    name: str
    organization: str
    status: str
    deployed: bool
    hostname: str
    app_url: str
    platform_version: str


@dataclass(kw_only=True)
class Guest(_WireModel):
    """Resources given to a machine."""

    cpu_kind: str = "shared"
    cpus: int = 1
    memory_mb: int = 256
    kernel_args: list[str] | None = None


@dataclass(kw_only=True)
class Port(_WireModel):
    """A public port of a service."""

    port: int
    handlers: list[str]
    force_https: bool


@dataclass(kw_only=True)
class Service(_WireModel):
    """A network service exposed by a machine."""

    protocol: str
    internal_port: int
    ports: list[Port]
    force_https: bool
    auto_stop_machines: bool
    auto_start_machines: bool
    min_machines_running: int


@dataclass(kw_only=True)
class RestartPolicy(_WireModel):
    """What to do when a machine's process exits."""

    policy: str = "on-failure"
    max_retries: int = 5


@dataclass(kw_only=True)
class MachineConfig(_WireModel):
    """Complete configuration of a machine."""

    image: str = "nginx:latest"
    env: dict[str, str] = field(default_factory=dict)
    services: list[Service] = field(default_factory=list)
    guest: Guest = field(default_factory=Guest)
    restart: RestartPolicy = field(default_factory=RestartPolicy)
    auto_destroy: bool = False
    kill_timeout: int | None = 5


@dataclass(kw_only=True)
class ImageRef(_WireModel):
    """Container image reference and metadata."""

    registry: str
    repository: str
    tag: str
    digest: str
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(kw_only=True)
class MachineEvent(_WireModel):
    """One entry of a machine's event trail."""

    type_: str
    status: str
    source: str
    timestamp: int
    request: dict[str, Any] = field(default_factory=dict)


@dataclass(kw_only=True)
class Machine(_WireModel):
    """A compute instance belonging to an application."""

    id: str
    name: str
    state: str
    region: str
    instance_id: str
    private_ip: str
    config: MachineConfig
    image_ref: ImageRef
    created_at: str
    updated_at: str
    events: list[MachineEvent] = field(default_factory=list)


@dataclass(kw_only=True)
class CreateMachineRequest(_WireModel):
    """Body of a machine creation request."""

    name: str | None = None
    config: MachineConfig
    region: str | None = None
    skip_launch: bool = False
    skip_service_registration: bool = False


@dataclass(kw_only=True)
class StartMachineRequest(_WireModel):
    """Body of a machine start request."""

    timeout: int | None = None


@dataclass(kw_only=True)
class StopMachineRequest(_WireModel):
    """Body of a machine stop request."""

    timeout: int | None = None
    signal: str | None = None