"""Setting base class — a schema-fixed group of typed properties.

Each concrete setting kind declares ``NAME`` and a ``PROPERTIES`` tuple of
:class:`PropertySpec`. Instances hold exactly those properties; there are no
ad hoc keys.

INVARIANT: A setting is owned by at most one Connection. Sharing requires
:meth:`Setting.duplicate`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Flag, StrEnum, auto
from typing import TYPE_CHECKING, Any, ClassVar, Self

from netprofile.domain.compare import FLOAT_TOLERANCE, compare_values
from netprofile.domain.errors import MalformedValue, SchemaViolation, UnsupportedComparison
from netprofile.domain.values import Value, ValueKind

if TYPE_CHECKING:
    from netprofile.domain.connection import Connection

logger = logging.getLogger(__name__)


class CompareFlags(Flag):
    """Modifiers for :meth:`Setting.diff`."""

    EXACT = 0
    IGNORE_SECRETS = auto()
    IGNORE_IDENTITY = auto()
    EXACT_FLOATS = auto()
    FUZZY = IGNORE_SECRETS | IGNORE_IDENTITY


class Severity(StrEnum):
    """Problem severity. Fatal problems make a profile unusable."""

    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True)
class Problem:
    """One verification finding."""

    severity: Severity
    setting: str
    property: str | None
    message: str
    domain: str = ""

    @property
    def is_fatal(self) -> bool:
        return self.severity is Severity.FATAL


@dataclass(frozen=True)
class SecretHint:
    """A secret property with no value yet."""

    property: str
    required: bool


@dataclass(frozen=True)
class PropertySpec:
    """Schema entry for one property.

    Attributes:
        name: Property name as it appears in the generic map.
        kind: Value kind every assigned value must carry.
        default: Initial value; defaults to the kind's empty value.
        secret: Sensitive value, handled through the secrets operations.
        secret_required: ``need_secrets`` reports the property as required.
        identity: Bookkeeping value (uuid, timestamp) skipped by
            ``CompareFlags.IGNORE_IDENTITY``.
        required: Verification fails when the value is empty.
    """

    name: str
    kind: ValueKind
    default: Value | None = None
    secret: bool = False
    secret_required: bool = False
    identity: bool = False
    required: bool = False
    description: str = ""
    initial: Value = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        initial = self.default if self.default is not None else Value.empty(self.kind)
        if initial.kind is not self.kind:
            msg = f"Default for {self.name!r} must be {self.kind.name}, got {initial.kind.name}"
            raise ValueError(msg)
        object.__setattr__(self, "initial", initial)


class Setting:
    """Base class for every setting kind.

    Subclasses set :attr:`NAME` and :attr:`PROPERTIES`, and may override
    :meth:`_verify`, :meth:`need_secrets` and :meth:`required_companions`
    for kind-specific rules.
    """

    NAME: ClassVar[str] = ""
    ERROR_DOMAIN: ClassVar[str] = ""
    PROPERTIES: ClassVar[tuple[PropertySpec, ...]] = ()

    _specs: ClassVar[dict[str, PropertySpec]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._specs = {spec.name: spec for spec in cls.PROPERTIES}
        if cls.NAME and not cls.__dict__.get("ERROR_DOMAIN"):
            cls.ERROR_DOMAIN = f"netprofile.setting.{cls.NAME}"

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Value] = {spec.name: spec.initial for spec in self.PROPERTIES}
        self._owner: Connection | None = None
        if values:
            for name, value in values.items():
                self.set(name, value)

    # ------------------------------------------------------------------
    # Schema access
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.NAME

    @classmethod
    def property_names(cls) -> list[str]:
        return [spec.name for spec in cls.PROPERTIES]

    @classmethod
    def spec(cls, property_name: str) -> PropertySpec:
        """Return the schema entry for *property_name*.

        Raises:
            SchemaViolation: If the property is not declared.
        """
        try:
            return cls._specs[property_name]
        except KeyError:
            raise SchemaViolation(cls.NAME, property_name) from None

    def __contains__(self, property_name: object) -> bool:
        return property_name in self._specs

    def get(self, property_name: str) -> Value:
        self.spec(property_name)
        return self._values[property_name]

    def set(self, property_name: str, value: Any) -> None:
        """Assign *value* (a Value or a plain object) to *property_name*.

        Raises:
            SchemaViolation: Unknown property.
            MalformedValue: The value does not fit the property's kind.
        """
        spec = self.spec(property_name)
        self._values[property_name] = self._coerce(spec, value)

    def _coerce(self, spec: PropertySpec, value: Any) -> Value:
        try:
            return Value.coerce(spec.kind, value)
        except MalformedValue as exc:
            raise MalformedValue(exc.reason, setting=self.NAME, property_name=spec.name) from exc

    def iter_properties(self) -> Iterator[tuple[str, Value]]:
        """Yield ``(name, value)`` pairs in schema order."""
        for spec in self.PROPERTIES:
            yield spec.name, self._values[spec.name]

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    @property
    def owner(self) -> Connection | None:
        """The Connection holding this setting, if any."""
        return self._owner

    def _attach(self, connection: Connection) -> None:
        if self._owner is not None and self._owner is not connection:
            msg = f"Setting {self.NAME!r} already belongs to another connection; duplicate it first"
            raise ValueError(msg)
        self._owner = connection

    def _release(self) -> None:
        self._owner = None

    def duplicate(self) -> Self:
        """Return an unowned copy with the same property values."""
        clone = type(self)()
        # Values are immutable and may be shared.
        clone._values = dict(self._values)
        return clone

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def diff(
        self,
        other: Setting,
        flags: CompareFlags = CompareFlags.EXACT,
        *,
        tolerance: float = FLOAT_TOLERANCE,
    ) -> list[str]:
        """Return the names of properties whose values differ, in schema order.

        Values the comparator cannot order are reported as different.

        Raises:
            ValueError: If *other* is a different setting kind.
        """
        if other.NAME != self.NAME:
            msg = f"Cannot diff setting {self.NAME!r} against {other.NAME!r}"
            raise ValueError(msg)
        if CompareFlags.EXACT_FLOATS in flags:
            tolerance = 0.0

        differing: list[str] = []
        for spec in self.PROPERTIES:
            if spec.secret and CompareFlags.IGNORE_SECRETS in flags:
                continue
            if spec.identity and CompareFlags.IGNORE_IDENTITY in flags:
                continue
            left = self._values[spec.name]
            right = other._values[spec.name]
            try:
                equal = not compare_values(left, right, tolerance=tolerance)
            except UnsupportedComparison:
                logger.warning(
                    "Cannot compare %s.%s; treating values as different",
                    self.NAME,
                    spec.name,
                )
                equal = False
            if not equal:
                differing.append(spec.name)
        return differing

    def compare(
        self,
        other: Setting,
        flags: CompareFlags = CompareFlags.EXACT,
        *,
        tolerance: float = FLOAT_TOLERANCE,
    ) -> bool:
        """True if *other* is the same kind and no property differs."""
        if other.NAME != self.NAME:
            return False
        return not self.diff(other, flags, tolerance=tolerance)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, context: Connection | None = None) -> list[Problem]:
        """Collect every problem with this setting. Never raises.

        *context* is the Connection the setting is checked within, for rules
        that depend on sibling settings.
        """
        problems: list[Problem] = []
        for spec in self.PROPERTIES:
            if spec.required and self._values[spec.name].is_empty():
                problems.append(self.fatal(spec.name, "property is missing"))
        problems.extend(self._verify(context))
        return problems

    def _verify(self, context: Connection | None) -> list[Problem]:
        return []

    def warning(self, property_name: str | None, message: str) -> Problem:
        return Problem(Severity.WARNING, self.NAME, property_name, message, self.ERROR_DOMAIN)

    def fatal(self, property_name: str | None, message: str) -> Problem:
        return Problem(Severity.FATAL, self.NAME, property_name, message, self.ERROR_DOMAIN)

    def required_companions(self) -> list[str]:
        """Names of settings that must sit beside this one in a Connection."""
        return []

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def secret_names(self) -> list[str]:
        return [spec.name for spec in self.PROPERTIES if spec.secret]

    def clear_secrets(self) -> None:
        """Reset every secret property to its empty value."""
        for spec in self.PROPERTIES:
            if spec.secret:
                self._values[spec.name] = Value.empty(spec.kind)

    def update_secrets(self, values: Mapping[str, Any]) -> list[str]:
        """Merge *values* into secret properties only.

        Non-secret and unknown keys are ignored, as are values that do not
        fit the property's kind.

        Returns:
            Names of the properties actually assigned.
        """
        updated: list[str] = []
        for name, raw in values.items():
            spec = self._specs.get(name)
            if spec is None or not spec.secret:
                logger.debug("Ignoring non-secret key %s.%s in secrets update", self.NAME, name)
                continue
            try:
                self._values[name] = self._coerce(spec, raw)
            except MalformedValue:
                logger.warning("Skipping malformed secret %s.%s", self.NAME, name, exc_info=True)
                continue
            updated.append(name)
        return updated

    def need_secrets(self) -> list[SecretHint]:
        """Secret properties that currently have no value."""
        return [
            SecretHint(spec.name, spec.secret_required)
            for spec in self.PROPERTIES
            if spec.secret and self._values[spec.name].is_empty()
        ]

    # ------------------------------------------------------------------
    # Generic map
    # ------------------------------------------------------------------

    def to_generic_map(self, *, include_secrets: bool = True) -> dict[str, Value]:
        """Serialize set properties.

        Unset values and values still equal to the schema default are omitted.
        """
        out: dict[str, Value] = {}
        for spec in self.PROPERTIES:
            if spec.secret and not include_secrets:
                continue
            value = self._values[spec.name]
            if value.payload is None or self._is_default(spec, value):
                continue
            out[spec.name] = value
        return out

    @staticmethod
    def _is_default(spec: PropertySpec, value: Value) -> bool:
        try:
            return not compare_values(value, spec.initial, tolerance=0.0)
        except UnsupportedComparison:
            return False

    @classmethod
    def from_generic_map(cls, mapping: Mapping[str, Any]) -> Self:
        """Build a populated instance from a property mapping.

        Raises:
            SchemaViolation: Unknown property name.
            MalformedValue: A value does not fit its property.
        """
        if not isinstance(mapping, Mapping):
            msg = f"expected a property mapping, got {type(mapping).__name__}"
            raise MalformedValue(msg, setting=cls.NAME, property_name="*")
        return cls(mapping)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.NAME!r}>"
