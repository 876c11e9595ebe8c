"""Setting type registry — name ↔ constructor ↔ error domain.

The registry is an explicit context object: the host application builds one
(usually via :func:`build_registry`), lets plugins extend it, and passes it to
every Connection. There is no hidden process-wide instance.

INVARIANT: Registration must finish before any Connection uses the registry.
The registry is not thread-safe; concurrent register/lookup needs an external
lock. Unregistering a type while Connections still hold settings of that type
is the caller's responsibility.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from netprofile.domain.errors import UnknownSettingType
from netprofile.domain.kinds import BUILTIN_SETTINGS
from netprofile.domain.setting import Setting

logger = logging.getLogger(__name__)

SettingFactory = Callable[[], Setting]


class SettingRegistry:
    """Maps setting names to constructors and error domains back to names."""

    def __init__(self) -> None:
        self._constructors: dict[str, SettingFactory] = {}
        self._domains: dict[str, str] = {}

    def register(
        self,
        name: str,
        constructor: SettingFactory,
        *,
        error_domain: str | None = None,
    ) -> None:
        """Register *constructor* under *name*.

        *error_domain* defaults to the constructor's ``ERROR_DOMAIN`` when it
        is a Setting subclass. Re-registering the same constructor is a no-op.

        Raises:
            ValueError: Empty name, or name already bound to a different
                constructor, or error domain already claimed by another name.
        """
        normalized = name.strip()
        if not normalized:
            msg = "Setting name must not be empty"
            raise ValueError(msg)

        existing = self._constructors.get(normalized)
        if existing is not None and existing is not constructor:
            msg = f"Setting type {normalized!r} is already registered"
            raise ValueError(msg)

        domain = error_domain or getattr(constructor, "ERROR_DOMAIN", "") or f"netprofile.setting.{normalized}"
        owner = self._domains.get(domain)
        if owner is not None and owner != normalized:
            msg = f"Error domain {domain!r} already belongs to setting type {owner!r}"
            raise ValueError(msg)

        self._constructors[normalized] = constructor
        self._domains[domain] = normalized
        logger.debug("Registered setting type: %s", normalized)

    def unregister(self, name: str) -> None:
        """Remove *name*. Unknown names are ignored."""
        normalized = name.strip()
        if self._constructors.pop(normalized, None) is None:
            return
        for domain, owner in list(self._domains.items()):
            if owner == normalized:
                del self._domains[domain]
        logger.debug("Unregistered setting type: %s", normalized)

    def lookup_type(self, name: str) -> SettingFactory:
        """Return the constructor registered under *name*.

        Raises:
            UnknownSettingType: If *name* is not registered.
        """
        normalized = name.strip()
        try:
            return self._constructors[normalized]
        except KeyError:
            raise UnknownSettingType(normalized) from None

    def create(self, name: str) -> Setting:
        """Instantiate an empty setting of type *name*."""
        return self.lookup_type(name)()

    def lookup_type_by_error_domain(self, domain: str) -> str | None:
        """Resolve an error domain back to its setting type name."""
        return self._domains.get(domain)

    def names(self) -> list[str]:
        return sorted(self._constructors)

    def __contains__(self, name: object) -> bool:
        return name in self._constructors

    def __len__(self) -> int:
        return len(self._constructors)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())


def build_registry(extra: dict[str, type[Setting]] | None = None) -> SettingRegistry:
    """Return a registry holding the built-in setting kinds plus *extra*."""
    registry = SettingRegistry()
    for setting_cls in BUILTIN_SETTINGS:
        registry.register(setting_cls.NAME, setting_cls)
    for name, setting_cls in (extra or {}).items():
        registry.register(name, setting_cls)
    return registry
