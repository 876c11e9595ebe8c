"""In-memory network profile model.

A :class:`Connection` is a named collection of :class:`Setting` objects;
:func:`compare_values` orders the self-describing :class:`Value` payloads
they carry.
"""

from netprofile.domain.compare import FLOAT_TOLERANCE, Ordering, compare_values
from netprofile.domain.connection import Connection, ConnectionScope
from netprofile.domain.errors import (
    MalformedValue,
    ProfileError,
    SchemaViolation,
    UnknownSettingType,
    UnsupportedComparison,
)
from netprofile.domain.registry import SettingRegistry, build_registry
from netprofile.domain.setting import (
    CompareFlags,
    Problem,
    PropertySpec,
    SecretHint,
    Setting,
    Severity,
)
from netprofile.domain.values import Value, ValueKind

__all__ = [
    "FLOAT_TOLERANCE",
    "CompareFlags",
    "Connection",
    "ConnectionScope",
    "MalformedValue",
    "Ordering",
    "Problem",
    "ProfileError",
    "PropertySpec",
    "SchemaViolation",
    "SecretHint",
    "Setting",
    "SettingRegistry",
    "Severity",
    "UnknownSettingType",
    "UnsupportedComparison",
    "Value",
    "ValueKind",
    "build_registry",
    "compare_values",
]
