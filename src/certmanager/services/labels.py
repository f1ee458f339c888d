"""Label reader: which containers want which certificates.

Queries the container runtime for containers carrying the domains
label and turns their labels into :class:`ContainerTarget` objects.
Malformed label values never raise; they degrade to "no domains" or
to the configured defaults.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from certmanager.config.settings import parse_artifacts
from certmanager.core.errors import ContainerRuntimeError
from certmanager.models import ContainerTarget

if TYPE_CHECKING:
    from collections.abc import Mapping

    from certmanager.config.settings import LabelSettings
    from certmanager.runtime import ContainerRuntime

log = logging.getLogger(__name__)


def parse_domains(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated domain label, keeping first occurrences.

    Whitespace around entries and empty entries are dropped, so
    ``" a.com, ,b.com,a.com"`` yields ``("a.com", "b.com")``.
    Whitespace inside the value also separates domains.
    """
    if not value:
        return ()
    seen: dict[str, None] = {}
    for name in value.replace(",", " ").split():
        seen.setdefault(name, None)
    return tuple(seen)


class LabelReader:
    """Read per-container certificate configuration from labels.

    Parameters
    ----------
    runtime:
        Container runtime adapter.
    settings:
        The ``labels`` configuration section.

    """

    def __init__(self, runtime: ContainerRuntime, settings: LabelSettings) -> None:
        self._runtime = runtime
        self._settings = settings

    def list_managed_containers(
        self,
        errors: list[str] | None = None,
    ) -> list[ContainerTarget]:
        """Return every running container tagged with the domains label.

        A container that cannot be inspected (usually one that stopped
        after it was listed) is logged and left out; its error is
        appended to *errors* when a list is given.

        Raises
        ------
        ContainerRuntimeError
            If the containers cannot be listed at all.

        """
        ids = self._runtime.list_containers_by_label(self._settings.domains)
        log.debug("Found %d managed container(s)", len(ids))
        targets: list[ContainerTarget] = []
        for cid in ids:
            try:
                targets.append(self.read_container_config(cid))
            except ContainerRuntimeError as exc:
                log.warning(
                    "Cannot read labels, skipping container: %s",
                    exc.detail,
                    extra={"container": cid[:12]},
                )
                if errors is not None:
                    errors.append(exc.detail)
        return targets

    def read_container_config(self, container_id: str) -> ContainerTarget:
        """Build the :class:`ContainerTarget` for one container."""
        info = self._runtime.inspect_container(container_id)
        return self.from_labels(container_id, info.labels, name=info.name)

    def from_labels(
        self,
        container_id: str,
        labels: Mapping[str, str],
        *,
        name: str | None = None,
    ) -> ContainerTarget:
        """Interpret a label mapping using the configured label keys."""
        s = self._settings
        extra = {"container": name or container_id[:12]}

        domains = parse_domains(labels.get(s.domains))
        if not domains:
            log.warning(
                "Label %s is empty; container requests no domains",
                s.domains,
                extra=extra,
            )

        directory = (labels.get(s.certificate_path) or "").strip()
        if not directory:
            directory = s.default_certificate_path

        artifacts = s.default_artifacts
        deploy_label = labels.get(s.deploy)
        if deploy_label is not None and deploy_label.strip():
            kinds, unknown = parse_artifacts(deploy_label)
            if unknown:
                log.warning(
                    "Ignoring unknown artifact kind(s) %s in label %s",
                    ", ".join(unknown),
                    s.deploy,
                    extra=extra,
                )
            if kinds:
                artifacts = kinds
            else:
                log.warning(
                    "Label %s names no valid artifact kinds; using defaults",
                    s.deploy,
                    extra=extra,
                )

        reload_command = (labels.get(s.reload_command) or "").strip() or None

        return ContainerTarget(
            id=container_id,
            domains=domains,
            certificate_directory=directory,
            requested_artifacts=artifacts,
            reload_command=reload_command,
            name=name,
        )
