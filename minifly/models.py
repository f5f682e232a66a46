"""Data models for apps, machines, volumes and leases, with JSON mapping."""

import dataclasses
import json
import re
import types
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, StrEnum
from functools import cache
from typing import Any, NamedTuple, Self
from uuid import UUID


def _opt(*, rename: str | None = None) -> Any:
    """An optional field left out of the output when it is None."""
    metadata: dict[str, Any] = {"skip_none": True}
    if rename:
        metadata["rename"] = rename
    return field(default=None, metadata=metadata)


def _renamed(key: str) -> Any:
    return field(metadata={"rename": key})


class _FieldSpec(NamedTuple):
    attr: str
    key: str
    type: Any
    skip_none: bool
    has_default: bool


@cache
def _field_specs(cls: type) -> tuple[_FieldSpec, ...]:
    return tuple(
        _FieldSpec(
            attr=f.name,
            key=f.metadata.get("rename", f.name),
            type=f.type,
            skip_none=f.metadata.get("skip_none", False),
            has_default=(
                f.default is not dataclasses.MISSING
                or f.default_factory is not dataclasses.MISSING
            ),
        )
        for f in dataclasses.fields(cls)
    )


_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_datetime(value: Any, where: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(_LONG_FRACTION.sub(r"\1", value))
        except ValueError:
            raise ValueError(f"invalid timestamp {value!r} for `{where}`") from None
    else:
        raise _invalid(where, "a timestamp", value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp for `{where}` has no UTC offset")
    return parsed.astimezone(timezone.utc)


def _format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _invalid(where: str, expected: str, value: Any) -> ValueError:
    return ValueError(
        f"invalid type for `{where}`: expected {expected}, got {type(value).__name__}"
    )


def _decode(tp: Any, value: Any, where: str) -> Any:
    if tp is Any:
        return value
    origin = typing.get_origin(tp)
    if origin in (typing.Union, types.UnionType):
        if value is None:
            return None
        (inner,) = [arg for arg in typing.get_args(tp) if arg is not type(None)]
        return _decode(inner, value, where)
    if origin is list:
        if not isinstance(value, list):
            raise _invalid(where, "a list", value)
        (item,) = typing.get_args(tp)
        return [_decode(item, v, where) for v in value]
    if origin is dict:
        if not isinstance(value, Mapping):
            raise _invalid(where, "an object", value)
        _, item = typing.get_args(tp)
        return {str(k): _decode(item, v, where) for k, v in value.items()}
    if not isinstance(tp, type):
        return value
    if issubclass(tp, Model):
        return tp.from_dict(value)
    if issubclass(tp, Enum):
        try:
            return tp(value)
        except ValueError:
            raise ValueError(f"unknown variant {value!r} for `{where}`") from None
    if tp is datetime:
        return _parse_datetime(value, where)
    if tp is UUID:
        if isinstance(value, UUID):
            return value
        if not isinstance(value, str):
            raise _invalid(where, "a UUID string", value)
        try:
            return UUID(value)
        except ValueError:
            raise ValueError(f"invalid UUID {value!r} for `{where}`") from None
    if tp is bool:
        if not isinstance(value, bool):
            raise _invalid(where, "a boolean", value)
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _invalid(where, "an integer", value)
        return value
    if tp is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _invalid(where, "a number", value)
        return float(value)
    if tp is str:
        if not isinstance(value, str):
            raise _invalid(where, "a string", value)
        return value
    return value


def _encode(value: Any) -> Any:
    if isinstance(value, Model):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_datetime(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _encode(v) for k, v in value.items()}
    return value


class Model:
    """Base for dataclass models that map to and from JSON objects."""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready mapping for this model."""
        out: dict[str, Any] = {}
        for spec in _field_specs(type(self)):
            value = getattr(self, spec.attr)
            if value is None and spec.skip_none:
                continue
            out[spec.key] = _encode(value)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a model from a decoded JSON object; unknown keys are ignored."""
        if not isinstance(data, Mapping):
            raise _invalid(cls.__name__, "an object", data)
        kwargs: dict[str, Any] = {}
        for spec in _field_specs(cls):
            if spec.key in data:
                kwargs[spec.attr] = _decode(spec.type, data[spec.key], spec.key)
            elif not spec.has_default:
                raise ValueError(f"missing field `{spec.key}` in {cls.__name__}")
        return cls(**kwargs)

    def to_json(self) -> str:
        """Return compact JSON text."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str | bytes) -> Self:
        """Parse JSON text into a model."""
        return cls.from_dict(json.loads(text))


# Apps


class AppStatus(StrEnum):
    PENDING = "pending"
    DEPLOYED = "deployed"
    SUSPENDED = "suspended"


@dataclass(kw_only=True)
class App(Model):
    id: UUID
    name: str
    organization_id: str
    status: AppStatus
    created_at: datetime
    updated_at: datetime


@dataclass(kw_only=True)
class CreateAppRequest(Model):
    app_name: str
    org_slug: str


@dataclass(kw_only=True)
class Organization(Model):
    id: str
    slug: str
    name: str


@dataclass(kw_only=True)
class AppResponse(Model):
    id: str
    name: str
    organization: Organization
    status: str
    created_at: str


# Leases


@dataclass(kw_only=True)
class Lease(Model):
    nonce: str
    expires_at: int
    owner: str
    description: str
    version: str


@dataclass(kw_only=True)
class CreateLeaseRequest(Model):
    description: str | None = _opt()
    ttl: int | None = _opt()


@dataclass(kw_only=True)
class LeaseResponse(Model):
    status: str
    data: Lease


# Machines


class MachineState(StrEnum):
    CREATED = "created"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    SUSPENDING = "suspending"
    SUSPENDED = "suspended"


@dataclass(kw_only=True)
class ImageRef(Model):
    registry: str
    repository: str
    tag: str
    digest: str | None = None


@dataclass(kw_only=True)
class GuestConfig(Model):
    cpu_kind: str
    cpus: int
    memory_mb: int
    gpu_kind: str | None = _opt()
    gpus: int | None = _opt()
    kernel_args: list[str] | None = _opt()


@dataclass(kw_only=True)
class TlsOptions(Model):
    alpn: list[str]
    versions: list[str]


@dataclass(kw_only=True)
class PortConfig(Model):
    port: int
    handlers: list[str]
    force_https: bool | None = _opt()
    tls_options: TlsOptions | None = _opt()


@dataclass(kw_only=True)
class AutostopConfig(Model):
    enabled: bool | None = _opt()
    seconds: int | None = _opt()


@dataclass(kw_only=True)
class AutostartConfig(Model):
    enabled: bool | None = _opt()


@dataclass(kw_only=True)
class ServiceConfig(Model):
    ports: list[PortConfig]
    protocol: str
    internal_port: int
    autostop: AutostopConfig | None = _opt()
    autostart: AutostartConfig | None = _opt()
    force_instance_description: str | None = _opt()


@dataclass(kw_only=True)
class HealthCheck(Model):
    check_type: str = _renamed("type")
    port: int | None = _opt()
    interval: int | None = _opt()
    timeout: int | None = _opt()
    grace_period: int | None = _opt()
    method: str | None = _opt()
    path: str | None = _opt()
    protocol: str | None = _opt()
    tls_server_name: str | None = _opt()
    tls_skip_verify: bool | None = _opt()
    headers: dict[str, list[str]] | None = _opt()


@dataclass(kw_only=True)
class RestartConfig(Model):
    policy: str
    max_retries: int | None = _opt()


@dataclass(kw_only=True)
class DnsConfig(Model):
    skip_registration: bool | None = _opt()
    nameservers: list[str] | None = _opt()
    searches: list[str] | None = _opt()
    options: list[str] | None = _opt()


@dataclass(kw_only=True)
class SecretConfig(Model):
    env_var: str
    name: str | None = _opt()


@dataclass(kw_only=True)
class ProcessConfig(Model):
    entrypoint: list[str] | None = _opt()
    cmd: list[str] | None = _opt()
    env: dict[str, str] | None = _opt()
    exec: list[str] | None = _opt()
    user: str | None = _opt()
    secrets: list[SecretConfig] | None = _opt()


@dataclass(kw_only=True)
class FileConfig(Model):
    guest_path: str
    raw_value: str | None = _opt()
    secret_name: str | None = _opt()


@dataclass(kw_only=True)
class InitConfig(Model):
    exec: list[str] | None = _opt()
    entrypoint: list[str] | None = _opt()
    cmd: list[str] | None = _opt()


@dataclass(kw_only=True)
class MountConfig(Model):
    volume: str
    path: str


@dataclass(kw_only=True)
class ContainerConfig(Model):
    name: str
    image: str
    env: dict[str, str] | None = _opt()
    health_checks: list[HealthCheck] | None = _opt()
    startup_commands: list[str] | None = _opt()
    attached_files: list[FileConfig] | None = _opt()
    dependencies: list[str] | None = _opt()


@dataclass(kw_only=True)
class MachineConfig(Model):
    image: str
    guest: GuestConfig
    env: dict[str, str] | None = _opt()
    services: list[ServiceConfig] | None = _opt()
    checks: dict[str, HealthCheck] | None = _opt()
    restart: RestartConfig | None = _opt()
    auto_destroy: bool | None = _opt()
    dns: DnsConfig | None = _opt()
    processes: list[ProcessConfig] | None = _opt()
    files: list[FileConfig] | None = _opt()
    init: InitConfig | None = _opt()
    mounts: list[MountConfig] | None = _opt()
    containers: list[ContainerConfig] | None = _opt()


@dataclass(kw_only=True)
class MachineEvent(Model):
    event_type: str = _renamed("type")
    status: str
    source: str
    timestamp: int


@dataclass(kw_only=True)
class Machine(Model):
    id: str
    name: str
    state: MachineState
    region: str
    image_ref: ImageRef
    instance_id: str
    private_ip: str
    created_at: datetime
    updated_at: datetime
    config: MachineConfig
    events: list[MachineEvent]


@dataclass(kw_only=True)
class CreateMachineRequest(Model):
    name: str | None = _opt()
    region: str | None = _opt()
    config: MachineConfig
    skip_launch: bool | None = _opt()
    skip_service_registration: bool | None = _opt()
    lease_ttl: int | None = _opt()


@dataclass(kw_only=True)
class UpdateMachineRequest(Model):
    config: MachineConfig
    current_version: str | None = _opt()
    name: str | None = _opt()
    region: str | None = _opt()
    skip_launch: bool | None = _opt()
    skip_service_registration: bool | None = _opt()
    lease_ttl: int | None = _opt()


@dataclass(kw_only=True)
class StopMachineRequest(Model):
    signal: str | None = _opt()
    timeout: str | None = _opt()


@dataclass(kw_only=True)
class StartMachineResponse(Model):
    previous_state: str
    migrated: bool
    new_host: str


@dataclass(kw_only=True)
class StopMachineResponse(Model):
    ok: bool


@dataclass(kw_only=True)
class WaitMachineQuery(Model):
    instance_id: str | None = _opt()
    timeout: int | None = _opt()
    state: str | None = _opt()


# Volumes


class VolumeState(StrEnum):
    CREATED = "created"
    CREATING = "creating"
    UPDATING = "updating"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


@dataclass(kw_only=True)
class Volume(Model):
    id: str
    name: str
    state: VolumeState
    size_gb: int
    region: str
    zone: str
    encrypted: bool
    attached_machine_id: str | None = None
    attached_alloc_id: str | None = None
    created_at: datetime


@dataclass(kw_only=True)
class CreateVolumeRequest(Model):
    name: str
    region: str
    size_gb: int | None = _opt()
    encrypted: bool | None = _opt()
    fstype: str | None = _opt()
    snapshot_id: str | None = _opt()
    snapshot_retention: int | None = _opt()


@dataclass(kw_only=True)
class ExtendVolumeRequest(Model):
    size_gb: int


@dataclass(kw_only=True)
class AttachVolumeRequest(Model):
    machine_id: str


# Generic API envelopes


@dataclass(kw_only=True)
class ApiResponse(Model):
    data: Any


@dataclass(kw_only=True)
class ApiError(Model):
    error: str
    message: str


@dataclass(kw_only=True)
class SuccessResponse(Model):
    ok: bool


@dataclass(kw_only=True)
class DeleteResponse(Model):
    ok: bool


@dataclass(kw_only=True)
class VersionInfo(Model):
    version: str
    commit: str
    build_time: str