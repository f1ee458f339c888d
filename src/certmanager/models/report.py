"""Outcome entities collected during a reconciliation pass."""

from __future__ import annotations

from dataclasses import dataclass, field

from certmanager.core.types import (
    ActionResult,
    ActionType,
    ArtifactKind,
    DeploymentResult,
    LifecycleStatus,
)


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one issue / renew / revoke.

    ``retryable`` marks a transient failure (a timeout, an unreachable
    CA) that the next pass is expected to clear.
    """

    domain: str
    action: ActionType
    result: ActionResult
    error: str | None = None
    retryable: bool = False

    @property
    def failed(self) -> bool:
        return self.result is ActionResult.FAILED


@dataclass(frozen=True)
class DeploymentOutcome:
    """Result of deploying one domain into one container."""

    domain: str
    container_id: str
    result: DeploymentResult
    copied: tuple[ArtifactKind, ...] = ()
    removed: tuple[ArtifactKind, ...] = ()
    error: str | None = None
    retryable: bool = False

    @property
    def changed(self) -> bool:
        """True when any file in the container was written or deleted.

        A failed deployment can still have changed files before it
        stopped.
        """
        return self.result is DeploymentResult.CHANGED or bool(self.copied or self.removed)


@dataclass(frozen=True)
class ContainerDeployment:
    """All deployments into one container plus its reload outcome."""

    container_id: str
    outcomes: tuple[DeploymentOutcome, ...] = ()
    reloaded: bool = False
    reload_error: str | None = None
    error: str | None = None

    @property
    def changed(self) -> bool:
        return any(o.changed for o in self.outcomes)

    @property
    def failed(self) -> bool:
        if self.error is not None or self.reload_error is not None:
            return True
        return any(
            o.result is DeploymentResult.FAILED for o in self.outcomes
        )


@dataclass
class PassReport:
    """Aggregate view of one reconciliation pass.

    ``errors`` holds pass-level problems: an aborted pass or a container
    that could not be inspected.  ``failed`` is True when ``errors`` is
    not empty, any domain action failed, any domain could not be
    classified, or any container deployment or reload failed.
    Blocked deployments are reported but do not fail the pass.
    """

    statuses: dict[str, LifecycleStatus] = field(default_factory=dict)
    unclassified: list[str] = field(default_factory=list)
    actions: list[ActionOutcome] = field(default_factory=list)
    deployments: list[ContainerDeployment] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def failed_actions(self) -> list[ActionOutcome]:
        return [a for a in self.actions if a.failed]

    @property
    def failed(self) -> bool:
        return (
            bool(self.errors)
            or bool(self.unclassified)
            or bool(self.failed_actions)
            or any(d.failed for d in self.deployments)
        )

    def summary(self) -> str:
        """Return a one-line summary suitable for a log message."""
        counts: dict[str, int] = {}
        for action in self.actions:
            key = f"{action.action.value}:{action.result.value}"
            counts[key] = counts.get(key, 0) + 1
        reloaded = sum(1 for d in self.deployments if d.reloaded)
        changed = sum(1 for d in self.deployments if d.changed)
        parts = [f"{len(self.statuses)} domain(s) classified"]
        if self.unclassified:
            parts.append(f"{len(self.unclassified)} unclassified")
        parts.extend(f"{k}={v}" for k, v in sorted(counts.items()))
        retrying = sum(1 for a in self.failed_actions if a.retryable)
        if retrying:
            parts.append(f"{retrying} to retry")
        parts.append(f"{changed} container(s) changed")
        parts.append(f"{reloaded} reloaded")
        return ", ".join(parts)
