"""Configuration loader: environment plus an optional YAML file.

Lifecycle::

    # 1. CLI builds the settings once, at startup
    settings = load_settings(os.environ)

    # 2. Every component receives the frozen tree (or a section of it)
    engine = ReconciliationEngine(settings, acme, runtime)

Precedence is environment, then the YAML file named by ``CONFIG_FILE``
(or passed explicitly), then the defaults in :mod:`.settings`.  String
values in the file may reference ``${VAR}`` or ``${VAR:-default}``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from certmanager.config.settings import KNOWN_OPTIONS, Settings, build_settings
from certmanager.core.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

# Loose sanity check only; the CA is the authority on what it accepts.
_DOMAIN_RE = re.compile(r"^[A-Za-z0-9*_-]+(\.[A-Za-z0-9_-]+)+\.?$")

_REQUIRED = ("PRIMARY_DOMAIN", "CONTACT_EMAIL", "DNS_PROVIDER")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, key: str, environ: Mapping[str, str]) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with the env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigurationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"by '{key}' is not set and has no default",
        ],
    )


def _read_file(path: Path, environ: Mapping[str, str]) -> dict[str, Any]:
    """Read a flat YAML mapping of option names to values."""
    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        msg = f"Cannot read config file {path}: {exc}"
        raise ConfigurationError([msg]) from exc
    except yaml.YAMLError as exc:
        msg = f"Config file {path} is not valid YAML: {exc}"
        raise ConfigurationError([msg]) from exc

    if not isinstance(raw, dict):
        msg = f"Config file {path} must contain a mapping of option names"
        raise ConfigurationError([msg])

    data: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in raw.items():
        name = str(key).upper()
        if name not in KNOWN_OPTIONS:
            unknown.append(str(key))
            continue
        if isinstance(value, str):
            value = _resolve_value(value, name, environ)  # noqa: PLW2901
        data[name] = value
    for key in unknown:
        log.warning("Ignoring unknown option %r in %s", key, path)
    return data


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_settings(
    environ: Mapping[str, str],
    config_file: str | Path | None = None,
) -> Settings:
    """Merge all configuration sources into a frozen :class:`Settings`.

    Parameters
    ----------
    environ:
        The process environment (or a test double).  Only option names
        listed in :data:`KNOWN_OPTIONS` are read from it.
    config_file:
        Optional YAML file.  Defaults to ``environ["CONFIG_FILE"]``.

    Raises
    ------
    ConfigurationError
        Listing every missing or invalid option.

    """
    data: dict[str, Any] = {}

    path = config_file or environ.get("CONFIG_FILE")
    if path:
        data.update(_read_file(Path(path), environ))

    for name in KNOWN_OPTIONS:
        if name in environ:
            data[name] = environ[name]

    errors = [f"{name} is not set" for name in _REQUIRED if not str(data.get(name, "")).strip()]

    settings, build_errors = build_settings(data)
    errors.extend(build_errors)

    primary = str(data.get("PRIMARY_DOMAIN", "")).strip()
    if primary and not _DOMAIN_RE.match(primary):
        errors.append(f"PRIMARY_DOMAIN {primary!r} is not a valid domain name")

    if errors or settings is None:
        raise ConfigurationError(errors)
    return settings
