"""Domain error taxonomy.

Construction and parsing failures raise; they abort the operation and leave
existing state untouched. Verification never raises; it returns problems.
"""

from __future__ import annotations


class ProfileError(Exception):
    """Base type for every error raised by the profile model."""


class SchemaViolation(ProfileError):
    """A property name is not part of the setting's fixed schema."""

    def __init__(self, setting: str, property_name: str) -> None:
        self.setting = setting
        self.property_name = property_name
        super().__init__(f"Setting {setting!r} has no property {property_name!r}")


class UnknownSettingType(ProfileError):
    """A setting name has no registered constructor."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown setting type: {name!r}")


class MalformedValue(ProfileError):
    """A value does not match the kind its property (or constructor) expects.

    ``setting`` and ``property_name`` are filled in when the failure happens
    while populating a setting; bare value construction leaves them ``None``.
    """

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        property_name: str | None = None,
    ) -> None:
        self.setting = setting
        self.property_name = property_name
        self.reason = message
        if setting is not None and property_name is not None:
            message = f"{setting}.{property_name}: {message}"
        super().__init__(message)


class UnsupportedComparison(ProfileError):
    """Two values of a kind with no defined ordering reached the comparator."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Comparison is not supported for values of kind {kind!r}")
