"""Per-machine LiteFS lifecycle: directories, configuration and processes."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

from minifly.errors import LiteFSError, MiniflyError
from minifly.litefs_config import PROXY_PORT, LiteFSConfig
from minifly.litefs_process import LiteFSProcessManager

logger = logging.getLogger(__name__)

SYSTEM_BINARY = Path("litefs")
PRODUCTION_CONFIG_NAMES = ("litefs.yml", "litefs.yaml", "./litefs.yml")


def _make_dirs(path: Path, label: str) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise LiteFSError(f"Failed to create {label} dir: {exc}") from exc


def _probe_version(binary: Path) -> str | None:
    """Return the binary's version text, or None if it cannot report one."""
    try:
        result = subprocess.run([str(binary), "--version"], capture_output=True)
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return result.stdout.decode("utf-8", errors="replace").strip()


def _unmount_and_remove(path: Path) -> None:
    try:
        subprocess.run(["umount", str(path)], capture_output=True)
    except OSError:
        pass
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning("Failed to remove mount dir: %s", exc)


class LiteFSManager:
    """Runs LiteFS for machines under one base directory."""

    def __init__(self, base_dir: str | os.PathLike[str]) -> None:
        self.base_dir = Path(base_dir)
        _make_dirs(self.base_dir, "base")
        bin_dir = self.base_dir / "bin"
        _make_dirs(bin_dir, "bin")

        local_binary = bin_dir / "litefs"
        version = _probe_version(local_binary)
        if version is not None:
            logger.info("Found LiteFS binary: %s", version)
            binary = local_binary
        elif _probe_version(SYSTEM_BINARY) is not None:
            logger.info("Using system LiteFS binary")
            binary = SYSTEM_BINARY
        else:
            logger.warning("LiteFS binary not found. LiteFS features will be disabled.")
            logger.warning("To enable LiteFS, install it manually and place it on PATH")
            binary = SYSTEM_BINARY

        self.binary_path = binary
        self._process_manager = LiteFSProcessManager(binary)

    def start_for_machine(self, machine_id: str, is_primary: bool) -> None:
        """Start LiteFS for a machine with the default local configuration."""
        self.start_for_machine_with_config(machine_id, is_primary, None)

    def start_for_machine_with_config(
        self, machine_id: str, is_primary: bool, app_name: str | None = None
    ) -> None:
        """Start LiteFS for a machine, adapting ./litefs.yml when an app is named.

        Does nothing when no LiteFS binary can be run at all.
        """
        if self.binary_path == SYSTEM_BINARY:
            try:
                subprocess.run([str(SYSTEM_BINARY), "--version"], capture_output=True)
            except OSError:
                logger.warning(
                    "Skipping LiteFS start for machine %s - LiteFS not installed", machine_id
                )
                return

        mount_dir = self.get_mount_path(machine_id)
        data_dir = self.base_dir / "data" / machine_id
        config_dir = self.base_dir / "configs"
        _make_dirs(mount_dir, "mount")
        _make_dirs(data_dir, "data")
        _make_dirs(config_dir, "config")

        config = self._choose_config(machine_id, is_primary, app_name, mount_dir, data_dir)
        self._process_manager.start_litefs(machine_id, config, config_dir)

    def _choose_config(
        self,
        machine_id: str,
        is_primary: bool,
        app_name: str | None,
        mount_dir: Path,
        data_dir: Path,
    ) -> LiteFSConfig:
        def local() -> LiteFSConfig:
            return LiteFSConfig.for_local_dev(machine_id, mount_dir, data_dir, is_primary)

        if app_name is None:
            return local()
        try:
            production = self._load_production_config()
        except LiteFSError:
            logger.info("No production LiteFS config found, using default")
            return local()

        logger.info("Adapting production LiteFS config for machine %s", machine_id)
        try:
            config = LiteFSConfig.from_production_config(production, machine_id, app_name)
        except MiniflyError as exc:
            logger.warning("Failed to adapt production config, using default: %s", exc)
            return local()
        logger.info("Successfully adapted production config for local development")
        return config

    def stop_for_machine(self, machine_id: str) -> None:
        """Stop the machine's LiteFS process and remove its mount point."""
        self._process_manager.stop_litefs(machine_id)
        mount_dir = self.get_mount_path(machine_id)
        if mount_dir.exists():
            _unmount_and_remove(mount_dir)

    def is_running(self, machine_id: str) -> bool:
        return self._process_manager.is_running(machine_id)

    def stop_all(self) -> None:
        """Stop every LiteFS process and remove all mount points."""
        self._process_manager.stop_all()
        mounts_dir = self.base_dir / "mounts"
        if not mounts_dir.exists():
            return
        try:
            entries = list(mounts_dir.iterdir())
        except OSError:
            return
        for path in entries:
            if path.is_dir():
                _unmount_and_remove(path)

    def get_mount_path(self, machine_id: str) -> Path:
        return self.base_dir / "mounts" / machine_id

    def get_proxy_url(self, machine_id: str) -> str:
        return f"http://{machine_id}:{PROXY_PORT}"

    @staticmethod
    def _load_production_config() -> str:
        for name in PRODUCTION_CONFIG_NAMES:
            try:
                contents = Path(name).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            logger.info("Found production LiteFS config at %s", name)
            return contents
        raise LiteFSError("No production LiteFS config found")