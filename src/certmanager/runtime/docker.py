"""Container runtime adapter for the Docker CLI.

Every call is a ``docker`` subprocess with an argument list and a
bounded timeout.  ``docker inspect`` output is parsed as JSON.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import TYPE_CHECKING, Any

from certmanager.core.errors import ContainerRuntimeError
from certmanager.runtime.base import ContainerInfo, ContainerRuntime, ExecResult

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from certmanager.config.settings import RuntimeSettings

log = logging.getLogger(__name__)


class DockerCliRuntime(ContainerRuntime):
    """Talk to the Docker daemon through the ``docker`` executable.

    Parameters
    ----------
    settings:
        The ``runtime`` configuration section.

    """

    def __init__(self, settings: RuntimeSettings) -> None:
        self._settings = settings

    def _execute(self, argv: Sequence[str], *, timeout: int) -> ExecResult:
        try:
            result = subprocess.run(  # noqa: S603
                list(argv),
                check=False,
                timeout=timeout,
                capture_output=True,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"{argv[0]} {argv[1] if len(argv) > 1 else ''} timed out after {timeout}s"
            raise ContainerRuntimeError(msg.strip(), retryable=True) from exc
        except OSError as exc:
            msg = f"Cannot execute {argv[0]}: {exc}"
            raise ContainerRuntimeError(msg) from exc
        return ExecResult(result.returncode, result.stdout or b"", result.stderr or b"")

    def _docker(self, *args: str) -> ExecResult:
        return self._execute(
            [self._settings.binary, *args],
            timeout=self._settings.timeout_seconds,
        )

    def _docker_checked(self, *args: str) -> ExecResult:
        result = self._docker(*args)
        if not result.ok:
            msg = f"docker {args[0]} failed ({result.exit_code}): {result.error_text()}"
            raise ContainerRuntimeError(msg)
        return result

    def _inspect(self, container_id: str) -> dict[str, Any]:
        result = self._docker_checked("inspect", "--type", "container", container_id)
        try:
            data = json.loads(result.stdout)
        except ValueError as exc:
            msg = f"docker inspect returned invalid JSON for {container_id}"
            raise ContainerRuntimeError(msg) from exc
        if not data:
            msg = f"docker inspect returned nothing for {container_id}"
            raise ContainerRuntimeError(msg)
        return data[0]

    # -- ContainerRuntime ---------------------------------------------------

    def list_containers_by_label(self, key: str) -> list[str]:
        result = self._docker_checked(
            "ps",
            "--format",
            "{{.ID}}",
            "--filter",
            f"label={key}",
        )
        text = result.stdout.decode("utf-8", errors="replace")
        return [line.strip() for line in text.splitlines() if line.strip()]

    def inspect_container(self, container_id: str) -> ContainerInfo:
        data = self._inspect(container_id)
        config = data.get("Config") or {}
        name = (data.get("Name") or "").lstrip("/")
        return ContainerInfo(dict(config.get("Labels") or {}), name or None)

    def exec_in_container(
        self,
        container_id: str,
        argv: Sequence[str],
        *,
        user: str | None = None,
    ) -> ExecResult:
        args = ["exec"]
        if user is not None:
            args.extend(["-u", user])
        args.append(container_id)
        args.extend(argv)
        return self._docker(*args)

    def copy_file_to_container(
        self,
        container_id: str,
        local_path: Path,
        remote_path: str,
    ) -> None:
        log.debug("docker cp %s %s:%s", local_path, container_id, remote_path)
        self._docker_checked("cp", str(local_path), f"{container_id}:{remote_path}")

    def run_on_host(self, argv: Sequence[str], *, timeout: int) -> ExecResult:
        return self._execute(argv, timeout=timeout)
