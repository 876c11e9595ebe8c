"""Structural comparator for :class:`~netprofile.domain.values.Value`.

Total and deterministic over every kind except STRUCT, which raises
:class:`~netprofile.domain.errors.UnsupportedComparison` instead of
pretending to be equal.

Ordering rules, highest priority first:

1. Identical objects are equal.
2. An absent side (``None``, or an unset boxed payload) sorts **after** a
   present one.
3. Mixed kinds order by :class:`ValueKind` ordinal.
4. Scalars compare numerically; doubles are equal within ``tolerance``.
5. Strings compare as UTF-8 bytes; string lists element-wise with the
   shorter prefix first.
6. Byte arrays and lists compare by length, then content.
7. Maps compare by size, then walk the left map's keys in sorted order; a key
   missing on the right makes the left side greater. Two equal-sized maps
   with different key sets can therefore both compare greater than each
   other.
8. Nested values unwrap one level.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from enum import IntEnum

from netprofile.domain.errors import UnsupportedComparison
from netprofile.domain.values import Value, ValueKind

FLOAT_TOLERANCE = 1e-8


class Ordering(IntEnum):
    """Three-way comparison result."""

    LESS = -1
    EQUAL = 0
    GREATER = 1

    def invert(self) -> Ordering:
        return Ordering(-self.value)


def _order(a: object, b: object) -> Ordering:
    if a < b:  # type: ignore[operator]
        return Ordering.LESS
    if a > b:  # type: ignore[operator]
        return Ordering.GREATER
    return Ordering.EQUAL


def compare_values(
    a: Value | None,
    b: Value | None,
    *,
    tolerance: float = FLOAT_TOLERANCE,
) -> Ordering:
    """Compare two values structurally.

    Args:
        a: Left value, or ``None`` when absent.
        b: Right value, or ``None`` when absent.
        tolerance: Absolute tolerance for DOUBLE comparisons. ``0.0`` makes
            the comparison exact.

    Raises:
        UnsupportedComparison: If both sides are STRUCT values.
    """
    if a is b:
        return Ordering.EQUAL
    if a is None:
        return Ordering.GREATER
    if b is None:
        return Ordering.LESS

    if a.kind is not b.kind:
        return _order(a.kind.value, b.kind.value)

    kind = a.kind
    if kind is ValueKind.STRUCT:
        raise UnsupportedComparison(kind.name.lower())
    if kind is ValueKind.NESTED:
        return compare_values(a.payload, b.payload, tolerance=tolerance)

    # Unset boxed payloads follow the absent-sorts-last rule.
    if a.payload is b.payload:
        return Ordering.EQUAL
    if a.payload is None:
        return Ordering.GREATER
    if b.payload is None:
        return Ordering.LESS

    if kind in (ValueKind.BOOL, ValueKind.INT64, ValueKind.UINT64):
        return _order(a.payload, b.payload)
    if kind is ValueKind.DOUBLE:
        return _compare_double(a.payload, b.payload, tolerance)
    if kind is ValueKind.STRING:
        return _order(a.payload.encode("utf-8"), b.payload.encode("utf-8"))
    if kind is ValueKind.STRING_LIST:
        return _compare_string_lists(a.payload, b.payload)
    if kind is ValueKind.BYTE_ARRAY:
        return _order(len(a.payload), len(b.payload)) or _order(a.payload, b.payload)
    if kind is ValueKind.LIST:
        return _compare_lists(a.payload, b.payload, tolerance)
    if kind is ValueKind.MAP:
        return _compare_maps(a.payload, b.payload, tolerance)
    raise UnsupportedComparison(kind.name.lower())


def values_equal(
    a: Value | None,
    b: Value | None,
    *,
    tolerance: float = FLOAT_TOLERANCE,
) -> bool:
    """Shorthand for ``compare_values(a, b) is Ordering.EQUAL``."""
    return compare_values(a, b, tolerance=tolerance) is Ordering.EQUAL


def _compare_double(a: float, b: float, tolerance: float) -> Ordering:
    # NaN equals NaN and sorts after every number.
    a_nan, b_nan = math.isnan(a), math.isnan(b)
    if a_nan or b_nan:
        return _order(a_nan, b_nan)
    if abs(a - b) <= tolerance:
        return Ordering.EQUAL
    return _order(a, b)


def _compare_string_lists(a: Sequence[str], b: Sequence[str]) -> Ordering:
    for left, right in zip(a, b):
        result = _order(left.encode("utf-8"), right.encode("utf-8"))
        if result:
            return result
    return _order(len(a), len(b))


def _compare_lists(a: Sequence[Value], b: Sequence[Value], tolerance: float) -> Ordering:
    result = _order(len(a), len(b))
    if result:
        return result
    for left, right in zip(a, b):
        result = compare_values(left, right, tolerance=tolerance)
        if result:
            return result
    return Ordering.EQUAL


def _compare_maps(a: Mapping[str, Value], b: Mapping[str, Value], tolerance: float) -> Ordering:
    result = _order(len(a), len(b))
    if result:
        return result
    for key in sorted(a):
        if key not in b:
            return Ordering.GREATER
        result = compare_values(a[key], b[key], tolerance=tolerance)
        if result:
            return result
    return Ordering.EQUAL
