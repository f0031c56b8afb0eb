"""Tests for removal of orphaned secure directories"""

import os
import time

import pytest
from rich.console import Console

from aksdeploy.utils.context_managers import SECURE_DIR_PREFIX
from aksdeploy.utils.vacuum import VacuumCommand, find_stale_directories


def make_dir(root, name, age_minutes):
    path = root / name
    path.mkdir()
    (path / "kubeconfig").write_text("token")
    stamp = time.time() - age_minutes * 60
    os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def console():
    return Console(record=True, width=160)


def test_removes_only_stale_secure_dirs(tmp_path, console):
    stale = make_dir(tmp_path, f"{SECURE_DIR_PREFIX}old", 120)
    fresh = make_dir(tmp_path, f"{SECURE_DIR_PREFIX}new", 5)
    unrelated = make_dir(tmp_path, "pytest-of-root", 600)

    removed = VacuumCommand(console, temp_root=tmp_path).execute()

    assert removed == 1
    assert not stale.exists()
    assert fresh.exists()
    assert unrelated.exists()
    output = console.export_text()
    assert "kubeconfig" in output
    assert "Removed 1/1" in output


def test_nothing_to_remove(tmp_path, console):
    make_dir(tmp_path, f"{SECURE_DIR_PREFIX}new", 1)

    assert VacuumCommand(console, temp_root=tmp_path).execute() == 0
    assert "No stale secure directories found" in console.export_text()


def test_max_age_respected(tmp_path):
    make_dir(tmp_path, f"{SECURE_DIR_PREFIX}a", 20)
    (tmp_path / f"{SECURE_DIR_PREFIX}file").write_text("not a directory")

    stale = find_stale_directories(tmp_path, max_age_minutes=10)

    assert [entry.path.name for entry in stale] == [f"{SECURE_DIR_PREFIX}a"]
    assert stale[0].age_minutes >= 19
    assert find_stale_directories(tmp_path, max_age_minutes=30) == []
