"""Module id to analysis role mapping.

Opinions carry free-form module ids; rules that care about *kind* of
analysis (fundamental vs technical, ...) look the role up here.  Lookup
is case-insensitive and a role name is accepted as its own module id.
"""

from __future__ import annotations

from collections.abc import Mapping

from trading_council.core.enums import ModuleRole
from trading_council.core.errors import InvalidConfig

DEFAULT_MODULE_ROLES: dict[str, ModuleRole] = {
    "atlas": ModuleRole.FUNDAMENTAL,
    "orion": ModuleRole.TECHNICAL,
    "hermes": ModuleRole.SENTIMENT,
    "aether": ModuleRole.MACRO,
    "cronos": ModuleRole.TIMING,
    "demeter": ModuleRole.SECTOR,
    "athena": ModuleRole.FACTOR,
    "phoenix": ModuleRole.STRATEGY,
    "chiron": ModuleRole.RISK,
    "poseidon": ModuleRole.ALLOCATION,
    "prometheus": ModuleRole.SECOND_ORDER,
}


class RoleMap:
    """Resolves module ids to :class:`ModuleRole`."""

    def __init__(self, overrides: Mapping[str, ModuleRole | str] | None = None) -> None:
        self._roles = dict(DEFAULT_MODULE_ROLES)
        for module, role in (overrides or {}).items():
            try:
                self._roles[module.lower()] = ModuleRole(role)
            except ValueError as exc:
                raise InvalidConfig(f"Unknown module role {role!r} for {module!r}") from exc

    def role_of(self, module: str) -> ModuleRole | None:
        key = module.lower()
        if key in self._roles:
            return self._roles[key]
        try:
            return ModuleRole(key)
        except ValueError:
            return None
