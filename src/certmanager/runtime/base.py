"""Abstract base class for container runtime adapters.

The engine needs five primitives from the runtime: find containers by
label, inspect one for its labels and name, run a command inside one, copy a
file into one, and run a command on the host.  File checks inside a
container are built on :meth:`ContainerRuntime.exec_in_container` by
the deployer.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


@dataclass(frozen=True)
class ExecResult:
    """Exit status and raw output of a command."""

    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def error_text(self) -> str:
        """Return stderr (or stdout) decoded for log and error messages."""
        raw = self.stderr or self.stdout
        return raw.decode("utf-8", errors="replace").strip()


@dataclass(frozen=True)
class ContainerInfo:
    """Labels and name of one container, read in a single call."""

    labels: dict[str, str] = field(default_factory=dict)
    name: str | None = None


class ContainerRuntime(abc.ABC):
    """Base class for all container runtime adapters.

    Every method raises
    :class:`~certmanager.core.errors.ContainerRuntimeError` when the
    runtime itself cannot be reached or a call times out.  A command
    that runs and exits non-zero is *not* an error at this level; the
    caller inspects :class:`ExecResult`.
    """

    @abc.abstractmethod
    def list_containers_by_label(self, key: str) -> list[str]:
        """Return the ids of running containers carrying label *key*."""

    @abc.abstractmethod
    def inspect_container(self, container_id: str) -> ContainerInfo:
        """Return the labels and human-friendly name of a container."""

    @abc.abstractmethod
    def exec_in_container(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        user: str | None = None,
    ) -> ExecResult:
        """Run *argv* inside a container, optionally as *user*."""

    @abc.abstractmethod
    def copy_file_to_container(
        self,
        container_id: str,
        local_path: Path,
        remote_path: str,
    ) -> None:
        """Copy a local file to *remote_path* inside a container."""

    @abc.abstractmethod
    def run_on_host(self, argv: Sequence[str], *, timeout: int) -> ExecResult:
        """Run *argv* on the host (used for host-context reload commands)."""
