"""Reload dispatcher: tell a container's service about new certificates.

A reload command comes from the container's labels and is classified
before anything runs:

- ``docker compose restart mail`` manages containers from outside.
  It runs on the host as an argument list, with the container id
  appended as the last argument.
- ``apachectl -k graceful`` runs inside the container as
  ``sh -c '<command>'``.

The command is never evaluated by a host shell.
"""

from __future__ import annotations

import logging
import shlex
from typing import TYPE_CHECKING

from certmanager.core.errors import ContainerRuntimeError, ReloadError
from certmanager.core.types import ReloadContext

if TYPE_CHECKING:
    from certmanager.models import ContainerTarget
    from certmanager.runtime import ContainerRuntime

log = logging.getLogger(__name__)

_QUOTES = "\"'"
_HOST_PROGRAMS = frozenset({"docker", "docker-compose"})


def strip_quotes(command: str) -> str:
    """Remove one leading and one trailing quote character, if present."""
    text = command.strip()
    if text[:1] in _QUOTES:
        text = text[1:]
    if text[-1:] in _QUOTES:
        text = text[:-1]
    return text.strip()


def classify_reload_command(command: str) -> tuple[ReloadContext, list[str]]:
    """Decide where *command* runs and build its argument list.

    Host commands are tokenised with :func:`shlex.split`; the container
    id is appended by the dispatcher.  Container commands are wrapped
    in ``sh -c``.

    Raises
    ------
    ValueError
        If a host command cannot be tokenised (unbalanced quotes).

    """
    text = strip_quotes(command)
    words = text.split()
    if words and words[0] in _HOST_PROGRAMS:
        return ReloadContext.HOST, shlex.split(text)
    return ReloadContext.CONTAINER, ["sh", "-c", text]


class ReloadDispatcher:
    """Run the reload command of a container.

    Parameters
    ----------
    runtime:
        Container runtime adapter.
    timeout_seconds:
        Upper bound for a host-context reload command.

    """

    def __init__(self, runtime: ContainerRuntime, timeout_seconds: int = 120) -> None:
        self._runtime = runtime
        self._timeout = timeout_seconds

    def dispatch(self, container: ContainerTarget, command: str | None) -> bool:
        """Run *command* for *container*.

        Returns True if a command ran successfully, False if there was
        nothing to run.

        Raises
        ------
        ReloadError
            If the command could not be started, timed out or exited
            non-zero.  Certificate files already copied stay in place.

        """
        extra = {"container": container.display_name}
        if not command or not strip_quotes(command):
            log.debug("No reload command configured", extra=extra)
            return False

        try:
            context, argv = classify_reload_command(command)
        except ValueError as exc:
            raise ReloadError(container.id, f"cannot parse {command!r}: {exc}") from exc

        try:
            if context is ReloadContext.HOST:
                argv = [*argv, container.id]
                log.info("Executing `%s` on the host", shlex.join(argv), extra=extra)
                result = self._runtime.run_on_host(argv, timeout=self._timeout)
            else:
                log.info("Executing `%s` in the container", shlex.join(argv), extra=extra)
                result = self._runtime.exec_in_container(container.id, argv)
        except ContainerRuntimeError as exc:
            raise ReloadError(container.id, exc.detail) from exc

        if not result.ok:
            detail = f"exit code {result.exit_code}: {result.error_text()}"
            raise ReloadError(container.id, detail)

        log.info("Reload command succeeded", extra=extra)
        return True
