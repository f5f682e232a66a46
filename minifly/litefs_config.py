"""LiteFS configuration, with adaptation of production files for local use."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Self

import yaml

from minifly.errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

PROXY_PORT = 20202
DEFAULT_PROXY_ADDR = f":{PROXY_PORT}"

_MISSING: Any = object()


def _advertise_url(machine_id: str) -> str:
    return f"http://{machine_id}:{PROXY_PORT}"


def _type_name(expected: type | tuple[type, ...]) -> str:
    names = {
        bool: "a boolean",
        str: "a string",
        list: "a list",
        dict: "a mapping",
    }
    if isinstance(expected, tuple):
        return " or ".join(names.get(t, t.__name__) for t in expected)
    return names.get(expected, expected.__name__)


def _value(
    data: Mapping[str, Any],
    key: str,
    expected: type,
    where: str,
    *,
    default: Any = _MISSING,
    optional: bool = False,
) -> Any:
    """Read one field, checking its type; `optional` admits None."""
    if key not in data:
        if default is not _MISSING:
            return default
        if optional:
            return None
        raise InvalidConfigurationError(f"{where}: missing field `{key}`")
    value = data[key]
    if value is None and optional:
        return None
    if expected is not bool and isinstance(value, bool):
        raise InvalidConfigurationError(
            f"{where}.{key}: expected {_type_name(expected)}, got bool"
        )
    if not isinstance(value, expected):
        raise InvalidConfigurationError(
            f"{where}.{key}: expected {_type_name(expected)}, got {type(value).__name__}"
        )
    return value


def _section(data: Mapping[str, Any], key: str, where: str, *, optional: bool) -> Mapping | None:
    return _value(data, key, dict, where, optional=optional)


def _string_list(data: Mapping[str, Any], key: str, where: str) -> list[str]:
    items = _value(data, key, list, where, default=[])
    for item in items:
        if not isinstance(item, str):
            raise InvalidConfigurationError(
                f"{where}.{key}: expected a list of strings"
            )
    return list(items)


@dataclass
class FuseConfig:
    """Where the FUSE file system is mounted."""

    dir: Path
    debug: bool = False
    allow_other: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "fuse"
        return cls(
            dir=Path(_value(data, "dir", str, where)),
            debug=_value(data, "debug", bool, where, default=False),
            allow_other=_value(data, "allow_other", bool, where, default=False),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"dir": str(self.dir), "debug": self.debug, "allow_other": self.allow_other}


@dataclass
class DataConfig:
    """Where LiteFS keeps its internal data."""

    dir: Path
    compress: bool = True
    retention: str = "24h"
    retention_monitor_interval: str = "1h"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "data"
        return cls(
            dir=Path(_value(data, "dir", str, where)),
            compress=_value(data, "compress", bool, where, default=True),
            retention=_value(data, "retention", str, where, default="24h"),
            retention_monitor_interval=_value(
                data, "retention_monitor_interval", str, where, default="1h"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dir": str(self.dir),
            "compress": self.compress,
            "retention": self.retention,
            "retention_monitor_interval": self.retention_monitor_interval,
        }


@dataclass
class ProxyConfig:
    """The HTTP proxy placed in front of the application."""

    target: str
    db: str
    addr: str = DEFAULT_PROXY_ADDR
    passthrough: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "proxy"
        return cls(
            addr=_value(data, "addr", str, where, default=DEFAULT_PROXY_ADDR),
            target=_value(data, "target", str, where),
            db=_value(data, "db", str, where),
            passthrough=_string_list(data, "passthrough", where),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "addr": self.addr,
            "target": self.target,
            "db": self.db,
            "passthrough": list(self.passthrough),
        }


@dataclass
class LeaseConfig:
    """How the primary node is chosen."""

    lease_type: str = "static"
    advertise_url: str | None = None
    candidate: bool | None = None
    promote: bool | None = None
    demote: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "lease"
        return cls(
            lease_type=_value(data, "type", str, where, default="static"),
            advertise_url=_value(data, "advertise_url", str, where, optional=True),
            candidate=_value(data, "candidate", bool, where, optional=True),
            promote=_value(data, "promote", bool, where, optional=True),
            demote=_value(data, "demote", bool, where, optional=True),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.lease_type,
            "advertise_url": self.advertise_url,
            "candidate": self.candidate,
            "promote": self.promote,
            "demote": self.demote,
        }


@dataclass
class LogConfig:
    """LiteFS log output."""

    format: str = "text"
    level: str = "info"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "log"
        return cls(
            format=_value(data, "format", str, where, default="text"),
            level=_value(data, "level", str, where, default="info"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"format": self.format, "level": self.level}


@dataclass
class ConsulConfig:
    """Consul lease settings used in production."""

    url: str
    advertise_url: str
    key: str | None = None
    ttl: str | None = None
    lock_ttl: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "consul"
        return cls(
            url=_value(data, "url", str, where),
            advertise_url=_value(data, "advertise_url", str, where),
            key=_value(data, "key", str, where, optional=True),
            ttl=_value(data, "ttl", str, where, optional=True),
            lock_ttl=_value(data, "lock_ttl", str, where, optional=True),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "advertise_url": self.advertise_url,
            "key": self.key,
            "ttl": self.ttl,
            "lock_ttl": self.lock_ttl,
        }


@dataclass
class StaticConfig:
    """Static primary settings used for local development."""

    primary: bool
    hostname: str
    advertise_url: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        where = "static"
        return cls(
            primary=_value(data, "primary", bool, where),
            hostname=_value(data, "hostname", str, where),
            advertise_url=_value(data, "advertise_url", str, where),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary": self.primary,
            "hostname": self.hostname,
            "advertise_url": self.advertise_url,
        }


def _default_proxy() -> ProxyConfig:
    return ProxyConfig(addr=DEFAULT_PROXY_ADDR, target="localhost:8080", db="db")


@dataclass
class LiteFSConfig:
    """A complete LiteFS configuration as found in litefs.yml."""

    fuse: FuseConfig = field(default_factory=lambda: FuseConfig(dir=Path("/litefs")))
    data: DataConfig = field(default_factory=lambda: DataConfig(dir=Path("/var/lib/litefs")))
    proxy: ProxyConfig | None = field(default_factory=_default_proxy)
    lease: LeaseConfig = field(
        default_factory=lambda: LeaseConfig(
            lease_type="static", candidate=True, promote=True, demote=False
        )
    )
    log: LogConfig | None = field(default_factory=LogConfig)
    consul: ConsulConfig | None = None
    static_config: StaticConfig | None = field(
        default_factory=lambda: StaticConfig(
            primary=True,
            hostname="localhost",
            advertise_url=f"http://localhost:{PROXY_PORT}",
        )
    )

    @classmethod
    def for_local_dev(
        cls, machine_id: str, mount_dir: str | os.PathLike[str], data_dir: str | os.PathLike[str],
        is_primary: bool,
    ) -> Self:
        """Build a configuration for one machine on the local host."""
        return cls(
            fuse=FuseConfig(dir=Path(mount_dir), debug=True, allow_other=True),
            data=DataConfig(dir=Path(data_dir)),
            proxy=_default_proxy(),
            lease=LeaseConfig(
                lease_type="static",
                advertise_url=_advertise_url(machine_id),
                candidate=is_primary,
                promote=is_primary,
                demote=False,
            ),
            log=LogConfig(format="text", level="debug"),
            consul=None,
            static_config=StaticConfig(
                primary=is_primary,
                hostname=machine_id,
                advertise_url=_advertise_url(machine_id),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the mapping written to litefs.yml."""
        return {
            "fuse": self.fuse.to_dict(),
            "data": self.data.to_dict(),
            "proxy": self.proxy.to_dict() if self.proxy else None,
            "lease": self.lease.to_dict(),
            "log": self.log.to_dict() if self.log else None,
            "consul": self.consul.to_dict() if self.consul else None,
            "static": self.static_config.to_dict() if self.static_config else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a configuration from a decoded litefs.yml mapping."""
        if not isinstance(data, Mapping):
            raise InvalidConfigurationError(
                f"expected a mapping at the top level, got {type(data).__name__}"
            )
        where = "litefs"
        proxy = _section(data, "proxy", where, optional=True)
        log = _section(data, "log", where, optional=True)
        consul = _section(data, "consul", where, optional=True)
        static = _section(data, "static", where, optional=True)
        return cls(
            fuse=FuseConfig.from_dict(_section(data, "fuse", where, optional=False)),
            data=DataConfig.from_dict(_section(data, "data", where, optional=False)),
            proxy=ProxyConfig.from_dict(proxy) if proxy is not None else None,
            lease=LeaseConfig.from_dict(_section(data, "lease", where, optional=False)),
            log=LogConfig.from_dict(log) if log is not None else None,
            consul=ConsulConfig.from_dict(consul) if consul is not None else None,
            static_config=StaticConfig.from_dict(static) if static is not None else None,
        )

    def to_yaml(self) -> str:
        """Render the configuration as YAML."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str) -> Self:
        """Parse YAML text into a configuration."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise InvalidConfigurationError(f"invalid YAML: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_production_config(cls, content: str, machine_id: str, app_name: str) -> Self:
        """Adapt a production litefs.yml for running on the local host.

        Consul leases become static, paths move under the local data
        directory (MINIFLY_DATA_DIR or ./minifly-data), debug output is
        switched on and this machine becomes the static primary.
        """
        try:
            config = cls.from_yaml(content)
        except InvalidConfigurationError as exc:
            raise InvalidConfigurationError(
                f"Failed to parse production LiteFS configuration: {exc.detail}"
            ) from exc

        lease = config.lease
        match lease.lease_type:
            case "static":
                logger.info("Production config already uses static lease - adapting for local")
                lease.advertise_url = _advertise_url(machine_id)
            case other:
                if other == "consul":
                    logger.info("Converting Consul lease to static lease for local development")
                else:
                    logger.warning(
                        "Unknown lease type '%s' in production config, using static", other
                    )
                lease.lease_type = "static"
                lease.candidate = True
                lease.promote = True
                lease.advertise_url = _advertise_url(machine_id)

        if config.proxy is not None:
            proxy = config.proxy
            if "localhost" not in proxy.addr and not proxy.addr.startswith(":"):
                logger.warning("Adapting proxy address from %s to %s", proxy.addr, DEFAULT_PROXY_ADDR)
                proxy.addr = DEFAULT_PROXY_ADDR
            if not proxy.target:
                raise InvalidConfigurationError("Production config has empty proxy target")
            logger.info("Using proxy configuration: %s -> %s", proxy.addr, proxy.target)

        base = Path(os.environ.get("MINIFLY_DATA_DIR", "./minifly-data"))
        base_path = base / app_name / "litefs" / machine_id
        config.fuse.dir = base_path / "mount"
        config.data.dir = base_path / "data"

        for label, directory in (("FUSE", config.fuse.dir), ("data", config.data.dir)):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.warning("Failed to create %s dir: %s", label, exc)

        config.fuse.debug = True
        config.fuse.allow_other = True

        if config.log is None:
            config.log = LogConfig(format="text", level="debug")
        else:
            config.log.level = "debug"
            config.log.format = "text"

        config.static_config = StaticConfig(
            primary=True,
            hostname=machine_id,
            advertise_url=_advertise_url(machine_id),
        )
        config.consul = None

        logger.info("Successfully adapted production LiteFS config for local development")
        logger.info("Mount dir: %s", config.fuse.dir)
        logger.info("Data dir: %s", config.data.dir)
        return config