"""Domain set builder.

Merges the domains requested by every managed container with the
primary domain into one ordered, de-duplicated list.  The primary
domain always comes first; the others follow in the order they were
first seen (containers in runtime order, domains in label order).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from certmanager.models import Domain

if TYPE_CHECKING:
    from collections.abc import Iterable

    from certmanager.models import ContainerTarget


def build_domain_set(
    primary_domain: str,
    containers: Iterable[ContainerTarget],
) -> list[Domain]:
    """Return the managed domain set for this pass.

    Parameters
    ----------
    primary_domain:
        The configured main domain.  Always present, even when no
        container requests it.
    containers:
        The managed containers read this pass.

    Returns
    -------
    list[Domain]
        Primary first, then first-seen order.  Each domain carries the
        ids of the containers that requested it.

    """
    required_by: dict[str, set[str]] = {primary_domain: set()}
    for container in containers:
        for name in container.domains:
            required_by.setdefault(name, set()).add(container.id)

    return [
        Domain(
            name=name,
            is_primary=name == primary_domain,
            required_by=frozenset(ids),
        )
        for name, ids in required_by.items()
    ]
