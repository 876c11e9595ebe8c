"""Connection — one network profile as a collection of settings.

A Connection holds at most one setting per name, plus scope and an external
identity path. It aggregates the per-setting compare, verify, serialize and
secrets operations and adds the cross-setting checks.

The generic map ``{setting_name: {property_name: Value}}`` is the only
serialization contract.

INVARIANT: ``replace_all_settings`` is atomic. Every setting is staged and
validated before anything is committed; on failure the Connection is left
exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any, TypeVar

from netprofile.domain.compare import FLOAT_TOLERANCE
from netprofile.domain.errors import MalformedValue
from netprofile.domain.registry import SettingRegistry
from netprofile.domain.setting import CompareFlags, Problem, SecretHint, Setting, Severity
from netprofile.domain.values import Value

logger = logging.getLogger(__name__)

GenericMap = Mapping[str, Mapping[str, Any]]
SecretsListener = Callable[["Connection", str], None]
S = TypeVar("S", bound=Setting)

CONNECTION_SETTING = "connection"


class ConnectionScope(StrEnum):
    """Whether a profile applies system-wide or to one user."""

    UNKNOWN = "unknown"
    SYSTEM = "system"
    USER = "user"


class PropertyTraversal:
    """Lazy, restartable walk over ``(setting, property, value)`` triples.

    Settings are visited by name, properties in schema order. Each call to
    ``iter()`` starts a fresh pass over the Connection's current state.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def __iter__(self) -> Iterator[tuple[str, str, Value]]:
        settings = self._connection._settings
        for setting_name in sorted(settings):
            for property_name, value in settings[setting_name].iter_properties():
                yield setting_name, property_name, value


class Connection:
    """A network profile.

    Parameters:
        registry: Setting registry used to construct settings by name.
        scope: System-wide or per-user profile.
        path: External identity handle. Not part of the profile data and
            never serialized.
    """

    def __init__(
        self,
        registry: SettingRegistry,
        *,
        scope: ConnectionScope = ConnectionScope.UNKNOWN,
        path: str | None = None,
    ) -> None:
        self._registry = registry
        self._scope = ConnectionScope(scope)
        self._path = path
        self._settings: dict[str, Setting] = {}
        self._secrets_listeners: list[SecretsListener] = []

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_generic_map(
        cls,
        mapping: GenericMap,
        registry: SettingRegistry,
        *,
        scope: ConnectionScope = ConnectionScope.UNKNOWN,
        path: str | None = None,
    ) -> Connection:
        """Parse a generic map into a new Connection.

        Raises:
            UnknownSettingType: A setting name is not registered.
            SchemaViolation: A property is not part of its setting's schema.
            MalformedValue: A value does not fit its property.
        """
        connection = cls(registry, scope=scope, path=path)
        connection.replace_all_settings(mapping)
        return connection

    def duplicate(self) -> Connection:
        """Deep copy: settings, scope and path. Listeners are not copied."""
        clone = Connection(self._registry, scope=self._scope, path=self._path)
        for setting in self._settings.values():
            clone.add_setting(setting.duplicate())
        return clone

    def create_setting(self, name: str) -> Setting:
        """Instantiate an unowned setting of type *name* from the registry."""
        return self._registry.create(name)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def registry(self) -> SettingRegistry:
        return self._registry

    @property
    def scope(self) -> ConnectionScope:
        return self._scope

    @scope.setter
    def scope(self, value: ConnectionScope) -> None:
        self._scope = ConnectionScope(value)

    @property
    def path(self) -> str | None:
        return self._path

    @path.setter
    def path(self, value: str | None) -> None:
        self._path = value

    # ------------------------------------------------------------------
    # Setting membership
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Mapping[str, Setting]:
        """Read-only view of the contained settings by name."""
        return MappingProxyType(self._settings)

    def __len__(self) -> int:
        return len(self._settings)

    def __contains__(self, name: object) -> bool:
        return name in self._settings

    def add_setting(self, setting: Setting) -> None:
        """Insert *setting*, replacing any setting of the same name wholesale.

        Raises:
            ValueError: If *setting* already belongs to another Connection.
        """
        setting._attach(self)
        previous = self._settings.get(setting.name)
        if previous is not None and previous is not setting:
            previous._release()
        self._settings[setting.name] = setting

    def remove_setting(self, name: str) -> Setting | None:
        """Remove and release the setting called *name*, if present."""
        setting = self._settings.pop(name, None)
        if setting is not None:
            setting._release()
        return setting

    def get_setting(self, name: str) -> Setting | None:
        return self._settings.get(name)

    def get_setting_by_type(self, setting_cls: type[S]) -> S | None:
        """Return the first contained setting that is an instance of *setting_cls*."""
        for setting in self._settings.values():
            if isinstance(setting, setting_cls):
                return setting
        return None

    def replace_all_settings(self, mapping: GenericMap) -> None:
        """Replace every setting with those built from *mapping*, atomically.

        Raises:
            UnknownSettingType: A setting name is not registered.
            SchemaViolation: A property is not part of its setting's schema.
            MalformedValue: A value does not fit its property, or a setting
                entry is not a mapping.
        """
        if not isinstance(mapping, Mapping):
            msg = f"expected a mapping of settings, got {type(mapping).__name__}"
            raise MalformedValue(msg)
        staged: dict[str, Setting] = {}
        for setting_name, properties in mapping.items():
            setting = self._registry.create(setting_name)
            if not isinstance(properties, Mapping):
                msg = f"expected a property mapping, got {type(properties).__name__}"
                raise MalformedValue(msg, setting=setting_name, property_name="*")
            for property_name, value in properties.items():
                setting.set(property_name, value)
            if setting.name != setting_name:
                msg = f"constructor registered as {setting_name!r} built {setting.name!r}"
                raise MalformedValue(msg, setting=setting_name, property_name="*")
            staged[setting_name] = setting

        # Commit: nothing below can fail.
        for setting in self._settings.values():
            setting._release()
        self._settings = {}
        for setting in staged.values():
            setting._attach(self)
            self._settings[setting.name] = setting
        logger.debug("Replaced settings: %s", sorted(staged))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_generic_map(self, *, include_secrets: bool = True) -> dict[str, dict[str, Value]]:
        """Serialize to ``{setting: {property: Value}}``.

        Settings that serialize to no entries are omitted.
        """
        out: dict[str, dict[str, Value]] = {}
        for name, setting in self._settings.items():
            properties = setting.to_generic_map(include_secrets=include_secrets)
            if properties:
                out[name] = properties
        return out

    def iter_properties(self) -> PropertyTraversal:
        return PropertyTraversal(self)

    def for_each_property(self, callback: Callable[[str, str, Value], None]) -> None:
        """Call *callback* with every ``(setting, property, value)`` triple."""
        for setting_name, property_name, value in self.iter_properties():
            callback(setting_name, property_name, value)

    def dump(self, level: int = logging.INFO) -> None:
        """Log every property for diagnostics. Secret values are masked."""
        logger.log(level, "Connection path=%s scope=%s", self._path, self._scope.value)
        for setting_name, property_name, value in self.iter_properties():
            setting = self._settings[setting_name]
            shown: Any = value.to_python()
            if setting.spec(property_name).secret and not value.is_empty():
                shown = "<hidden>"
            logger.log(level, "  %s.%s = %r", setting_name, property_name, shown)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def diff(
        self,
        other: Connection,
        flags: CompareFlags = CompareFlags.EXACT,
        *,
        tolerance: float = FLOAT_TOLERANCE,
    ) -> dict[str, list[str]]:
        """Differing properties per setting name.

        A setting present on only one side lists all of its properties.
        Settings with no differences are omitted.
        """
        result: dict[str, list[str]] = {}
        for name in sorted(self._settings.keys() | other._settings.keys()):
            mine = self._settings.get(name)
            theirs = other._settings.get(name)
            if mine is None:
                result[name] = theirs.property_names()
                continue
            if theirs is None:
                result[name] = mine.property_names()
                continue
            differing = mine.diff(theirs, flags, tolerance=tolerance)
            if differing:
                result[name] = differing
        return result

    def compare(
        self,
        other: Connection,
        flags: CompareFlags = CompareFlags.EXACT,
        *,
        tolerance: float = FLOAT_TOLERANCE,
    ) -> bool:
        """True iff both hold the same setting names and no property differs."""
        if self is other:
            return True
        if self._settings.keys() != other._settings.keys():
            return False
        return all(
            not setting.diff(other._settings[name], flags, tolerance=tolerance)
            for name, setting in self._settings.items()
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self) -> list[Problem]:
        """Collect every problem across settings plus cross-setting checks.

        Warnings and fatal problems are reported together; nothing raises.
        """
        problems: list[Problem] = []
        for setting in self._settings.values():
            problems.extend(setting.verify(self))
        problems.extend(self._verify_cross_settings())
        return problems

    def _verify_cross_settings(self) -> list[Problem]:
        problems: list[Problem] = []
        base = self._settings.get(CONNECTION_SETTING)
        if base is None:
            problems.append(
                Problem(Severity.FATAL, CONNECTION_SETTING, None, "connection setting is missing")
            )
        else:
            primary = base.get("type").payload if "type" in base else None
            if primary and primary not in self._settings:
                problems.append(
                    Problem(
                        Severity.FATAL,
                        CONNECTION_SETTING,
                        "type",
                        f"connection type {primary!r} has no matching setting",
                        base.ERROR_DOMAIN,
                    )
                )

        for setting in self._settings.values():
            for companion in setting.required_companions():
                if companion not in self._settings:
                    problems.append(
                        setting.fatal(None, f"requires setting {companion!r} to be present")
                    )
        return problems

    @staticmethod
    def is_usable(problems: list[Problem]) -> bool:
        """True when *problems* contains no fatal entries."""
        return not any(problem.is_fatal for problem in problems)

    def setting_for_problem(self, problem: Problem) -> str | None:
        """Resolve a problem's error domain back to its setting type name."""
        return self._registry.lookup_type_by_error_domain(problem.domain)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def need_secrets(self) -> dict[str, list[SecretHint]]:
        """Secret hints per setting, for settings still missing secrets."""
        needed: dict[str, list[SecretHint]] = {}
        for name in sorted(self._settings):
            hints = self._settings[name].need_secrets()
            if hints:
                needed[name] = hints
        return needed

    def clear_secrets(self) -> None:
        for setting in self._settings.values():
            setting.clear_secrets()

    def update_secrets(self, secrets: Mapping[str, Mapping[str, Any]]) -> dict[str, list[str]]:
        """Merge secret values per setting and notify subscribers.

        Unknown setting names are ignored.

        Returns:
            Names of the properties updated, per setting.
        """
        updated: dict[str, list[str]] = {}
        for setting_name, values in secrets.items():
            setting = self._settings.get(setting_name)
            if setting is None:
                logger.debug("Ignoring secrets for absent setting %s", setting_name)
                continue
            changed = setting.update_secrets(values)
            if changed:
                updated[setting_name] = changed
        for setting_name in updated:
            self._notify_secrets_updated(setting_name)
        return updated

    def subscribe_secrets_updated(self, listener: SecretsListener) -> None:
        if listener not in self._secrets_listeners:
            self._secrets_listeners.append(listener)

    def unsubscribe_secrets_updated(self, listener: SecretsListener) -> None:
        if listener in self._secrets_listeners:
            self._secrets_listeners.remove(listener)

    def _notify_secrets_updated(self, setting_name: str) -> None:
        """INVARIANT: A failing listener never stops the others."""
        for listener in list(self._secrets_listeners):
            try:
                listener(self, setting_name)
            except Exception:
                logger.warning(
                    "Secrets listener failed for setting %s",
                    setting_name,
                    exc_info=True,
                )

    def __repr__(self) -> str:
        return f"<Connection path={self._path!r} settings={sorted(self._settings)}>"
