"""Engine factory: wire the concrete adapters to the engine.

Usage::

    from certmanager.config import load_settings
    from certmanager.factory import create_engine

    engine = create_engine(load_settings(os.environ))
    report = engine.run_pass()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from certmanager.acme import AcmeShClient
from certmanager.runtime import DockerCliRuntime
from certmanager.services.engine import ReconciliationEngine

if TYPE_CHECKING:
    from certmanager.config.settings import Settings

log = logging.getLogger(__name__)


def create_engine(settings: Settings, *, prepare: bool = False) -> ReconciliationEngine:
    """Build a :class:`ReconciliationEngine` for acme.sh and Docker.

    Parameters
    ----------
    settings:
        Fully built configuration.
    prepare:
        Set the default CA and register the ACME account before
        returning.  Needed by every action that may issue, renew or
        revoke.

    Raises
    ------
    AcmeClientError
        If *prepare* is set and account registration fails.

    """
    acme = AcmeShClient(settings.acme)
    runtime = DockerCliRuntime(settings.runtime)
    if prepare:
        acme.prepare()
    log.debug(
        "Engine created (primary=%s, acme_home=%s)",
        settings.acme.primary_domain,
        settings.acme.home,
    )
    return ReconciliationEngine(settings, acme, runtime)
