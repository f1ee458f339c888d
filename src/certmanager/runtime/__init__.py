"""Container runtime collaborator.

Exports the abstract adapter interface, the command result type, and
the Docker CLI adapter.
"""

from certmanager.runtime.base import ContainerInfo, ContainerRuntime, ExecResult
from certmanager.runtime.docker import DockerCliRuntime

__all__ = [
    "ContainerInfo",
    "ContainerRuntime",
    "DockerCliRuntime",
    "ExecResult",
]
