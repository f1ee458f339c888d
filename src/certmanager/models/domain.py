"""Managed domain entity."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Domain:
    name: str
    is_primary: bool = False
    required_by: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_required(self) -> bool:
        """True when the domain must keep a certificate this pass."""
        return self.is_primary or bool(self.required_by)
