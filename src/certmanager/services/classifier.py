"""Status classifier: derive a lifecycle status for every domain.

Precedence, first match wins:

1. no certificate record                        -> ``missing``
2. record, nobody requires it, not primary      -> ``unused``
3. record, now >= renew_after                   -> ``expired``
4. otherwise                                    -> ``valid``

``unused`` deliberately beats ``expired`` so that a stale certificate
nobody needs is revoked rather than renewed.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from certmanager.core.errors import AcmeClientError, TransientClassificationError
from certmanager.core.types import LifecycleStatus
from certmanager.models import Domain

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from certmanager.acme import AcmeClient
    from certmanager.models import CertificateRecord

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def classify(
    domain: Domain,
    inventory: Mapping[str, CertificateRecord],
    now: datetime,
) -> LifecycleStatus:
    """Classify one domain against an inventory snapshot (total, pure)."""
    record = inventory.get(domain.name)
    if record is None:
        return LifecycleStatus.MISSING
    if not domain.is_required:
        return LifecycleStatus.UNUSED
    if record.renewal_due(now):
        return LifecycleStatus.EXPIRED
    return LifecycleStatus.VALID


class StatusClassifier:
    """Classify domains against the ACME client's certificate inventory.

    Parameters
    ----------
    acme:
        ACME client adapter whose store is the source of truth.
    clock:
        Returns the current UTC time; injectable for tests.

    """

    def __init__(
        self,
        acme: AcmeClient,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._acme = acme
        self._clock = clock

    def load_inventory(self) -> dict[str, CertificateRecord]:
        """Read the inventory once for the pass.

        Raises
        ------
        TransientClassificationError
            If the ACME client's store could not be queried.  Callers
            must not treat this as "no certificates".

        """
        try:
            return self._acme.list_certificates()
        except AcmeClientError as exc:
            msg = f"Cannot read certificate inventory: {exc.detail}"
            raise TransientClassificationError(msg) from exc

    @staticmethod
    def managed_domains(
        domain_set: Iterable[Domain],
        inventory: Mapping[str, CertificateRecord],
    ) -> list[Domain]:
        """Extend the required domain set with inventory-only domains.

        Certificates in the store that no container requests become
        domains with an empty ``required_by``, appended in inventory
        order after the required ones.
        """
        domains = list(domain_set)
        known = {d.name for d in domains}
        domains.extend(Domain(name=name) for name in inventory if name not in known)
        return domains

    def classify_all(
        self,
        domains: Iterable[Domain],
        inventory: Mapping[str, CertificateRecord],
    ) -> dict[str, LifecycleStatus]:
        """Classify every domain with a single clock reading."""
        now = self._clock()
        statuses = {d.name: classify(d, inventory, now) for d in domains}
        for name, status in statuses.items():
            log.info("Certificate is %s", status.value, extra={"domain": name})
        return statuses
