"""Root conftest for the certificate manager test suite."""

from __future__ import annotations

import logging
import shlex
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from certmanager.acme.base import AcmeClient  # noqa: E402
from certmanager.config.settings import KNOWN_OPTIONS, build_settings  # noqa: E402
from certmanager.core.errors import AcmeClientError, ContainerRuntimeError  # noqa: E402
from certmanager.core.types import ArtifactKind  # noqa: E402
from certmanager.models import CertificateRecord  # noqa: E402
from certmanager.runtime.base import ContainerInfo, ContainerRuntime, ExecResult  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)

BASE_OPTIONS = {
    "PRIMARY_DOMAIN": "example.com",
    "CONTACT_EMAIL": "admin@example.com",
    "DNS_PROVIDER": "dns_cf",
}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_settings(tmp_path: Path):
    """Return a factory building :class:`Settings` from option overrides."""

    def _make(**overrides):
        data = {
            **BASE_OPTIONS,
            "ACME_HOME": str(tmp_path / "acme"),
            "PID_FILE": str(tmp_path / "run" / "cm.pid"),
            **overrides,
        }
        settings, errors = build_settings(data)
        assert not errors, errors
        return settings

    return _make


@pytest.fixture()
def settings(make_settings):
    return make_settings()


# ---------------------------------------------------------------------------
# Fake container runtime
# ---------------------------------------------------------------------------


class FakeContainer:
    def __init__(self, cid: str, labels: dict[str, str], name: str | None = None) -> None:
        self.id = cid
        self.labels = labels
        self.name = name
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = set()


class FakeRuntime(ContainerRuntime):
    """In-memory container runtime understanding the deployer's commands."""

    def __init__(self) -> None:
        self.containers: dict[str, FakeContainer] = {}
        self.exec_calls: list[tuple[str, list[str], str | None]] = []
        self.copies: list[tuple[str, Path, str]] = []
        self.host_calls: list[list[str]] = []
        self.host_exit_code = 0
        self.shell_exit_code = 0
        self.fail_listing = False
        self.vanished: set[str] = set()
        self.fail_copy_suffix: str | None = None

    def add(self, cid: str, labels: dict[str, str], name: str | None = None) -> FakeContainer:
        container = FakeContainer(cid, labels, name)
        self.containers[cid] = container
        return container

    def shell_commands(self, cid: str) -> list[str]:
        return [argv[2] for c, argv, _ in self.exec_calls if c == cid and argv[:2] == ["sh", "-c"]]

    # -- ContainerRuntime ---------------------------------------------------

    def list_containers_by_label(self, key: str) -> list[str]:
        if self.fail_listing:
            msg = "docker ps timed out after 30s"
            raise ContainerRuntimeError(msg, retryable=True)
        return [c.id for c in self.containers.values() if key in c.labels]

    def inspect_container(self, container_id: str) -> ContainerInfo:
        if container_id in self.vanished:
            msg = f"docker inspect failed (1): No such container: {container_id}"
            raise ContainerRuntimeError(msg)
        c = self.containers[container_id]
        return ContainerInfo(dict(c.labels), c.name)

    def exec_in_container(self, container_id, argv, *, user=None) -> ExecResult:
        argv = list(argv)
        self.exec_calls.append((container_id, argv, user))
        c = self.containers[container_id]
        match argv:
            case ["test", "-f", path]:
                return ExecResult(0 if path in c.files else 1)
            case ["test", "-d", path]:
                return ExecResult(0 if path in c.dirs else 1)
            case ["cat", path]:
                if path in c.files:
                    return ExecResult(0, c.files[path])
                return ExecResult(1, stderr=b"No such file or directory")
            case ["rm", "-f", path]:
                c.files.pop(path, None)
                return ExecResult(0)
            case ["mkdir", "-p", path]:
                c.dirs.add(path)
                return ExecResult(0)
            case ["sh", "-c", _]:
                return ExecResult(self.shell_exit_code, stderr=b"reload failed")
        return ExecResult(127, stderr=f"unknown command {shlex.join(argv)}".encode())

    def copy_file_to_container(self, container_id, local_path, remote_path) -> None:
        if self.fail_copy_suffix and remote_path.endswith(self.fail_copy_suffix):
            msg = f"docker cp failed (1): no space left on device: {remote_path}"
            raise ContainerRuntimeError(msg)
        self.copies.append((container_id, local_path, remote_path))
        c = self.containers[container_id]
        c.files[remote_path] = Path(local_path).read_bytes()

    def run_on_host(self, argv, *, timeout) -> ExecResult:
        self.host_calls.append(list(argv))
        return ExecResult(self.host_exit_code, stderr=b"host command failed")


@pytest.fixture()
def runtime() -> FakeRuntime:
    return FakeRuntime()


# ---------------------------------------------------------------------------
# Fake ACME client
# ---------------------------------------------------------------------------


_LOCAL_FILES = {
    ArtifactKind.CRT: "{d}.cer",
    ArtifactKind.KEY: "{d}.key",
    ArtifactKind.PEM: "fullchain.cer",
    ArtifactKind.CA: "ca.cer",
    ArtifactKind.CSR: "{d}.csr",
}


class FakeAcmeClient(AcmeClient):
    """ACME client writing fake artifacts below a temporary home."""

    def __init__(self, settings, home: Path, clock=lambda: NOW) -> None:
        super().__init__(settings)
        self.home = home
        self.clock = clock
        self.records: dict[str, CertificateRecord] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: set[tuple[str, str]] = set()
        self.list_error: AcmeClientError | None = None
        self._serial = 0

    def _write(self, domain: str) -> None:
        self._serial += 1
        directory = self.home / f"{domain}_ecc"
        directory.mkdir(parents=True, exist_ok=True)
        paths = {}
        for kind, pattern in _LOCAL_FILES.items():
            path = directory / pattern.format(d=domain)
            path.write_bytes(f"{kind.value} {domain} #{self._serial}\n".encode())
            paths[kind] = path
        now = self.clock()
        self.records[domain] = CertificateRecord(
            domain=domain,
            issued_at=now,
            renew_after=now + timedelta(days=60),
            artifact_paths=paths,
            expires_at=now + timedelta(days=90),
        )

    def _call(self, action: str, domain: str) -> None:
        self.calls.append((action, domain))
        if (action, domain) in self.failures:
            msg = f"acme.sh --{action} exited with 1: rate limited"
            raise AcmeClientError(msg)

    def list_certificates(self) -> dict[str, CertificateRecord]:
        if self.list_error is not None:
            raise self.list_error
        return dict(self.records)

    def issue(self, domain: str) -> None:
        self._call("issue", domain)
        self._write(domain)

    def renew(self, domain: str) -> None:
        self._call("renew", domain)
        self._write(domain)

    def revoke(self, domain: str) -> None:
        self._call("revoke", domain)
        self.records.pop(domain, None)


@pytest.fixture()
def acme(settings, tmp_path: Path) -> FakeAcmeClient:
    return FakeAcmeClient(settings.acme, tmp_path / "acme")


# ---------------------------------------------------------------------------
# Process environment and logging state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Start every test from an environment without any option set."""
    for name in (*KNOWN_OPTIONS, "CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_logger():
    """Undo ``configure_logging`` side effects on the package logger."""
    root = logging.getLogger("certmanager")
    saved = (root.level, list(root.handlers), root.propagate)
    yield
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]
    root.propagate = saved[2]


@pytest.fixture()
def configured_env(monkeypatch, tmp_path: Path) -> Path:
    """Set the required options in the environment plus a temporary pid file."""
    for name, value in BASE_OPTIONS.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("ACME_HOME", str(tmp_path / "acme"))
    pid_file = tmp_path / "run" / "certificate-manager.pid"
    monkeypatch.setenv("PID_FILE", str(pid_file))
    return pid_file
