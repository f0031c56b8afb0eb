"""Tests for the secure workdir holding kubeconfig and docker credentials"""

import signal

import pytest

from aksdeploy.utils.context_managers import (
    SECURE_DIR_PREFIX,
    SecureTempDir,
    make_private_dir,
    write_private_file,
)


def test_created_private_with_prefix():
    with SecureTempDir() as workdir:
        assert workdir.is_dir()
        assert workdir.name.startswith(SECURE_DIR_PREFIX)
        assert oct(workdir.stat().st_mode)[-3:] == "700"


def test_kubeconfig_removed_on_exit():
    with SecureTempDir() as workdir:
        kubeconfig = workdir / "kubeconfig"
        kubeconfig.write_text("apiVersion: v1\n")
        (workdir / "docker").mkdir()

    assert not kubeconfig.exists()
    assert not workdir.exists()


def test_removed_when_step_fails():
    with pytest.raises(RuntimeError):
        with SecureTempDir() as workdir:
            (workdir / "kubeconfig").write_text("secret")
            raise RuntimeError("docker push failed")

    assert not workdir.exists()


def test_cleanup_idempotent():
    secure_dir = SecureTempDir(prefix="aksdeploy-test-")
    workdir = secure_dir.__enter__()

    secure_dir._cleanup()
    secure_dir._cleanup()
    secure_dir.__exit__(None, None, None)

    assert not workdir.exists()
    assert secure_dir.path is None


@pytest.mark.parametrize("signum,expected", [
    (signal.SIGINT, KeyboardInterrupt),
    (signal.SIGTERM, SystemExit),
])
def test_signal_cleans_up_then_exits(signum, expected):
    secure_dir = SecureTempDir()
    workdir = secure_dir.__enter__()

    with pytest.raises(expected) as exc_info:
        secure_dir._signal_handler(signum, None)

    assert not workdir.exists()
    if expected is SystemExit:
        assert exc_info.value.code == 128 + signal.SIGTERM


def test_signal_handlers_restored():
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    with SecureTempDir():
        assert signal.getsignal(signal.SIGINT) != original_sigint
        assert signal.getsignal(signal.SIGTERM) != original_sigterm

    assert signal.getsignal(signal.SIGINT) == original_sigint
    assert signal.getsignal(signal.SIGTERM) == original_sigterm


def test_private_file_and_dir(tmp_path):
    kubeconfig = write_private_file(tmp_path, "kubeconfig", "apiVersion: v1\n")
    docker = make_private_dir(tmp_path, "docker")

    assert kubeconfig.read_text() == "apiVersion: v1\n"
    assert oct(kubeconfig.stat().st_mode)[-3:] == "600"
    assert oct(docker.stat().st_mode)[-3:] == "700"
    assert make_private_dir(tmp_path, "docker") == docker
