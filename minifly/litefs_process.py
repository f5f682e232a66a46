"""Supervision of LiteFS child processes, one per machine."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from pathlib import Path

from minifly.errors import LiteFSError
from minifly.litefs_config import LiteFSConfig

logger = logging.getLogger(__name__)


class LiteFSProcess:
    """A single `litefs mount` child process."""

    def __init__(
        self,
        machine_id: str,
        binary_path: str | os.PathLike[str],
        config_path: str | os.PathLike[str],
    ) -> None:
        self.machine_id = machine_id
        self.binary_path = Path(binary_path)
        self.config_path = Path(config_path)
        self._child: subprocess.Popen[bytes] | None = None

    @property
    def pid(self) -> int | None:
        return self._child.pid if self._child is not None else None

    def start(self) -> None:
        """Launch LiteFS; raises LiteFSError if it is already running or cannot start."""
        if self._child is not None:
            raise LiteFSError("LiteFS process already running")
        logger.info("Starting LiteFS for machine %s", self.machine_id)
        try:
            child = subprocess.Popen(
                [str(self.binary_path), "mount", "-config", str(self.config_path)],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Failed to start LiteFS: %s", exc)
            raise LiteFSError(f"Failed to start LiteFS: {exc}") from exc
        logger.info("LiteFS process started with PID: %s", child.pid)
        self._child = child

    def stop(self) -> None:
        """Kill the process if one is running and reap it."""
        child, self._child = self._child, None
        if child is None:
            return
        logger.info("Stopping LiteFS process for machine %s", self.machine_id)
        try:
            child.kill()
        except OSError as exc:
            logger.error("Failed to stop LiteFS process: %s", exc)
            raise LiteFSError(f"Failed to stop LiteFS: {exc}") from exc
        try:
            status = child.wait()
            logger.info("LiteFS process stopped with status: %s", status)
        except OSError as exc:
            logger.warning("Error waiting for LiteFS process to stop: %s", exc)
        finally:
            for stream in (child.stdout, child.stderr):
                if stream is not None:
                    stream.close()

    def is_running(self) -> bool:
        """Return whether the process is alive; forgets it once it has exited."""
        if self._child is None:
            return False
        try:
            exited = self._child.poll() is not None
        except OSError:
            exited = True
        if exited:
            self._child = None
            return False
        return True

    def __enter__(self) -> LiteFSProcess:
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def __del__(self) -> None:
        try:
            self.stop()
        except LiteFSError as exc:
            logger.error("Error stopping LiteFS process on cleanup: %s", exc)


class LiteFSProcessManager:
    """Keeps track of the LiteFS process of every machine."""

    def __init__(self, binary_path: str | os.PathLike[str]) -> None:
        self.binary_path = Path(binary_path)
        self._processes: dict[str, LiteFSProcess] = {}
        self._lock = threading.Lock()

    def start_litefs(
        self, machine_id: str, config: LiteFSConfig, config_dir: str | os.PathLike[str]
    ) -> Path:
        """Write the machine's config file and start LiteFS with it.

        Returns the path of the written configuration file.
        """
        config_path = Path(config_dir) / f"{machine_id}.yml"
        text = config.to_yaml()
        try:
            config_path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise LiteFSError(f"Failed to write config: {exc}") from exc

        with self._lock:
            process = LiteFSProcess(machine_id, self.binary_path, config_path)
            process.start()
            previous = self._processes.get(machine_id)
            self._processes[machine_id] = process
        if previous is not None:
            previous.stop()
        return config_path

    def stop_litefs(self, machine_id: str) -> None:
        """Stop and forget the machine's process, if any."""
        with self._lock:
            process = self._processes.pop(machine_id, None)
        if process is not None:
            process.stop()

    def is_running(self, machine_id: str) -> bool:
        with self._lock:
            process = self._processes.get(machine_id)
            return process.is_running() if process is not None else False

    def stop_all(self) -> None:
        """Stop every tracked process, logging failures instead of raising."""
        with self._lock:
            processes, self._processes = self._processes, {}
        for machine_id, process in processes.items():
            logger.info("Stopping LiteFS for machine %s", machine_id)
            try:
                process.stop()
            except LiteFSError as exc:
                logger.error("Failed to stop LiteFS for machine %s: %s", machine_id, exc)