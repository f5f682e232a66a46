import os
import stat
from pathlib import Path

import pytest

from minifly.errors import LiteFSError
from minifly.litefs_config import LiteFSConfig
from minifly.litefs_manager import LiteFSManager

FAKE_LITEFS = """#!/bin/sh
if [ "$1" = "--version" ]; then
  echo "litefs v0.0.0-test"
  exit 0
fi
exec sleep 30
"""


def _install_fake_binary(base: Path) -> Path:
    binary = base / "bin" / "litefs"
    binary.parent.mkdir(parents=True, exist_ok=True)
    binary.write_text(FAKE_LITEFS)
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return binary


@pytest.fixture
def manager(tmp_path):
    base = tmp_path / "litefs"
    _install_fake_binary(base)
    mgr = LiteFSManager(base)
    yield mgr
    mgr.stop_all()


@pytest.fixture
def bare_manager(tmp_path, monkeypatch):
    empty = tmp_path / "empty-path"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    mgr = LiteFSManager(tmp_path / "bare")
    yield mgr
    mgr.stop_all()


def _written_config(mgr: LiteFSManager, machine_id: str) -> LiteFSConfig:
    text = (mgr.base_dir / "configs" / f"{machine_id}.yml").read_text()
    return LiteFSConfig.from_yaml(text)


def test_constructor_creates_directories(manager):
    assert (manager.base_dir / "bin").is_dir()


def test_local_binary_is_preferred(manager):
    assert manager.binary_path == manager.base_dir / "bin" / "litefs"


def test_missing_binary_falls_back_to_system_name(bare_manager):
    assert bare_manager.binary_path == Path("litefs")


def test_start_is_skipped_without_binary(bare_manager):
    bare_manager.start_for_machine("m1", True)
    assert not bare_manager.get_mount_path("m1").exists()
    assert bare_manager.is_running("m1") is False


def test_mount_path_and_proxy_url(manager):
    assert manager.get_mount_path("m1") == manager.base_dir / "mounts" / "m1"
    assert manager.get_proxy_url("m1") == "http://m1:20202"


def test_start_and_stop_machine(manager):
    manager.start_for_machine("m1", True)
    assert manager.is_running("m1") is True
    assert manager.get_mount_path("m1").is_dir()
    assert (manager.base_dir / "data" / "m1").is_dir()

    config = _written_config(manager, "m1")
    assert config.static_config.hostname == "m1"
    assert config.static_config.primary is True
    assert config.fuse.dir == manager.get_mount_path("m1")

    manager.stop_for_machine("m1")
    assert manager.is_running("m1") is False
    assert not manager.get_mount_path("m1").exists()


def test_replica_config_is_not_candidate(manager):
    manager.start_for_machine("m2", False)
    config = _written_config(manager, "m2")
    assert config.lease.candidate is False
    assert config.static_config.primary is False


def test_stop_unknown_machine_is_harmless(manager):
    manager.stop_for_machine("nobody")
    assert manager.is_running("nobody") is False


def test_stop_all(manager):
    manager.start_for_machine("m1", True)
    manager.start_for_machine("m2", False)
    manager.stop_all()
    assert manager.is_running("m1") is False
    assert manager.is_running("m2") is False
    assert list((manager.base_dir / "mounts").iterdir()) == []


def test_production_config_is_adapted(manager, tmp_path, monkeypatch):
    work = tmp_path / "project"
    work.mkdir()
    (work / "litefs.yml").write_text(
        'fuse:\n  dir: "/litefs"\ndata:\n  dir: "/var/lib/litefs"\nlease:\n  type: "consul"\n'
    )
    data_root = tmp_path / "fly-data"
    monkeypatch.chdir(work)
    monkeypatch.setenv("MINIFLY_DATA_DIR", str(data_root))

    manager.start_for_machine_with_config("m1", False, "myapp")
    config = _written_config(manager, "m1")
    assert config.lease.lease_type == "static"
    assert config.lease.candidate is True
    assert config.fuse.dir == data_root / "myapp" / "litefs" / "m1" / "mount"
    assert config.data.dir == data_root / "myapp" / "litefs" / "m1" / "data"


def test_bad_production_config_falls_back_to_default(manager, tmp_path, monkeypatch):
    work = tmp_path / "project"
    work.mkdir()
    (work / "litefs.yml").write_text(
        "fuse:\n  dir: /litefs\ndata:\n  dir: /var/lib/litefs\nlease:\n  type: static\n"
        "proxy:\n  target: ''\n  db: db\n"
    )
    monkeypatch.chdir(work)
    monkeypatch.setenv("MINIFLY_DATA_DIR", str(tmp_path / "fly-data"))

    manager.start_for_machine_with_config("m1", False, "myapp")
    config = _written_config(manager, "m1")
    assert config.fuse.dir == manager.get_mount_path("m1")
    assert config.lease.candidate is False


def test_without_production_file_default_is_used(manager, tmp_path, monkeypatch):
    work = tmp_path / "empty-project"
    work.mkdir()
    monkeypatch.chdir(work)
    manager.start_for_machine_with_config("m1", True, "myapp")
    config = _written_config(manager, "m1")
    assert config.fuse.dir == manager.get_mount_path("m1")


def test_unwritable_mount_dir_raises(manager):
    (manager.base_dir / "mounts").write_text("not a directory")
    with pytest.raises(LiteFSError, match="Failed to create mount dir"):
        manager.start_for_machine("m1", True)


def test_unusable_base_dir_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(LiteFSError, match="Failed to create base dir"):
        LiteFSManager(blocker / "sub")