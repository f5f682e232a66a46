"""Command-line client configuration stored as TOML."""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import platformdirs
import tomli_w

from minifly.errors import InvalidConfigurationError, MiniflyError

DEFAULT_API_URL = "http://localhost:4280"
DEFAULT_REGION = "local"
DEFAULT_TIMEOUT = 30

_U64 = re.compile(r"\+?[0-9]+")


def _parse_u64(text: str) -> int | None:
    if not _U64.fullmatch(text):
        return None
    value = int(text)
    return value if value < 2**64 else None


def _parse_bool(text: str) -> bool | None:
    return {"true": True, "false": False}.get(text)


@dataclass
class Config:
    """Settings for talking to the API server."""

    api_url: str = DEFAULT_API_URL
    token: str | None = None
    default_region: str = DEFAULT_REGION
    timeout: int = DEFAULT_TIMEOUT
    verify_ssl: bool = True

    @classmethod
    def default_path(cls) -> Path:
        """Return the path of the per-user config file."""
        base = platformdirs.user_config_dir("minifly", appauthor=False, roaming=True)
        return Path(base) / "config.toml"

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> Config:
        """Load from the config file if readable, then apply environment overrides."""
        try:
            config = cls.load_from_file(path)
        except MiniflyError:
            config = cls()

        env = os.environ
        if "MINIFLY_API_URL" in env:
            config.api_url = env["MINIFLY_API_URL"]
        if "MINIFLY_TOKEN" in env:
            config.token = env["MINIFLY_TOKEN"]
        if "MINIFLY_REGION" in env:
            config.default_region = env["MINIFLY_REGION"]
        if "MINIFLY_TIMEOUT" in env:
            timeout = _parse_u64(env["MINIFLY_TIMEOUT"])
            config.timeout = DEFAULT_TIMEOUT if timeout is None else timeout
        if "MINIFLY_VERIFY_SSL" in env:
            verify = _parse_bool(env["MINIFLY_VERIFY_SSL"])
            config.verify_ssl = True if verify is None else verify
        return config

    @classmethod
    def load_from_file(cls, path: str | os.PathLike[str] | None = None) -> Config:
        """Read the config file; a missing file yields the defaults."""
        path = Path(path) if path is not None else cls.default_path()
        if not path.exists():
            return cls()
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MiniflyError(f"Failed to read config file: {path}: {exc}") from exc
        try:
            data = tomllib.loads(content)
        except tomllib.TOMLDecodeError as exc:
            raise InvalidConfigurationError(
                f"Failed to parse config file: {path}: {exc}"
            ) from exc
        return cls._from_mapping(data, path)

    @classmethod
    def _from_mapping(cls, data: dict[str, Any], source: Path) -> Config:
        def fail(reason: str) -> InvalidConfigurationError:
            return InvalidConfigurationError(f"Failed to parse config file: {source}: {reason}")

        def required(key: str) -> Any:
            if key not in data:
                raise fail(f"missing field `{key}`")
            return data[key]

        api_url = required("api_url")
        default_region = required("default_region")
        timeout = required("timeout")
        verify_ssl = required("verify_ssl")
        token = data.get("token")

        for key, value in (("api_url", api_url), ("default_region", default_region)):
            if not isinstance(value, str):
                raise fail(f"`{key}` must be a string")
        if token is not None and not isinstance(token, str):
            raise fail("`token` must be a string")
        if isinstance(timeout, bool) or not isinstance(timeout, int) or not 0 <= timeout < 2**64:
            raise fail("`timeout` must be a non-negative integer")
        if not isinstance(verify_ssl, bool):
            raise fail("`verify_ssl` must be a boolean")

        return cls(
            api_url=api_url,
            token=token,
            default_region=default_region,
            timeout=timeout,
            verify_ssl=verify_ssl,
        )

    def _to_mapping(self) -> dict[str, Any]:
        data: dict[str, Any] = {"api_url": self.api_url}
        if self.token is not None:
            data["token"] = self.token
        data["default_region"] = self.default_region
        data["timeout"] = self.timeout
        data["verify_ssl"] = self.verify_ssl
        return data

    def save(self, path: str | os.PathLike[str] | None = None) -> Path:
        """Write the configuration as TOML, creating the directory if needed."""
        path = Path(path) if path is not None else self.default_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MiniflyError(
                f"Failed to create config directory: {path.parent}: {exc}"
            ) from exc
        content = tomli_w.dumps(self._to_mapping())
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise MiniflyError(f"Failed to write config file: {path}: {exc}") from exc
        return path

    @classmethod
    def init(cls, path: str | os.PathLike[str] | None = None) -> Path:
        """Write a default configuration and report where it went."""
        written = cls().save(path)
        print(f"✅ Minifly configuration initialized at: {written}")
        print("📝 Edit the config file to customize settings")
        return written