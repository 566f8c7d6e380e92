"""Value kinds, equality and ordering used by the sequence operators.

Python has no runtime type tags of its own that line up with the kinds a
query wants to filter or coerce by (``bool`` is an ``int``, a ``namedtuple``
is a ``tuple``, ...), so this module defines a closed set of value kinds and
the helpers built on it:

* :class:`ValueKind` and :func:`kind_of` for ``of_type``.
* :func:`converter_for` for ``cast``.
* :func:`loose_equals` and :func:`strict_equals`, the two default equality
  comparers.
* :func:`compare_values`, a total ordering across mixed kinds for ``min`` and
  ``max``.
"""
import numbers
from enum import Enum
from typing import Any, Callable, Optional, Union


class ValueKind(Enum):
    """Closed set of value kinds recognized by of_type and cast."""
    NONE = "none"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    COMPLEX = "complex"
    STR = "str"
    BYTES = "bytes"
    LIST = "list"
    TUPLE = "tuple"
    DICT = "dict"
    SET = "set"
    OBJECT = "object"


# Order matters: bool must be tested before int.
_KIND_TYPES = (
    (ValueKind.BOOL, bool),
    (ValueKind.INT, int),
    (ValueKind.FLOAT, float),
    (ValueKind.COMPLEX, complex),
    (ValueKind.STR, str),
    (ValueKind.BYTES, (bytes, bytearray)),
    (ValueKind.LIST, list),
    (ValueKind.TUPLE, tuple),
    (ValueKind.DICT, dict),
    (ValueKind.SET, (set, frozenset)),
)


def kind_of(value: Any) -> ValueKind:
    """Return the ValueKind of value.

    Subclasses map to the kind of their builtin base, so a namedtuple is a
    TUPLE and an OrderedDict is a DICT.  Anything outside the builtin kinds
    is an OBJECT.

    >>> kind_of(True)
    <ValueKind.BOOL: 'bool'>
    >>> kind_of(1.0)
    <ValueKind.FLOAT: 'float'>
    """
    if value is None:
        return ValueKind.NONE
    for kind, types in _KIND_TYPES:
        if isinstance(value, types):
            return kind
    return ValueKind.OBJECT


def as_kind(kind: Union[ValueKind, str]) -> ValueKind:
    """Accept a ValueKind or its string value ("int", "float", ...)."""
    if isinstance(kind, ValueKind):
        return kind
    try:
        return ValueKind(str(kind).lower())
    except ValueError:
        valid = ", ".join(k.value for k in ValueKind)
        raise ValueError(f"Unknown value kind '{kind}'. Valid kinds: {valid}") from None


def _to_none(value: Any) -> None:
    return None


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, int):
        # bytes(5) would build five zero bytes rather than convert
        raise TypeError(f"Cannot convert {type(value).__name__} to bytes")
    return bytes(value)


def _to_object(value: Any) -> Any:
    return value


_CONVERTERS = {
    ValueKind.NONE: _to_none,
    ValueKind.BOOL: bool,
    ValueKind.INT: int,
    ValueKind.FLOAT: float,
    ValueKind.COMPLEX: complex,
    ValueKind.STR: str,
    ValueKind.BYTES: _to_bytes,
    ValueKind.LIST: list,
    ValueKind.TUPLE: tuple,
    ValueKind.DICT: dict,
    ValueKind.SET: set,
    ValueKind.OBJECT: _to_object,
}


def converter_for(target: Union[ValueKind, str, Callable[[Any], Any]]) -> Callable[[Any], Any]:
    """Return the coercion function for a cast target.

    The target is a ValueKind, the string value of one, or any callable that
    converts a single value (``float``, ``Decimal``, a user function).
    """
    if isinstance(target, (ValueKind, str)):
        return _CONVERTERS[as_kind(target)]
    if callable(target):
        return target
    raise TypeError(f"Cast target must be a ValueKind, kind name or callable, not {type(target).__name__}")


def loose_equals(a: Any, b: Any) -> bool:
    """Default equality: plain Python ``==`` (so ``1 == 1.0``)."""
    return a == b


def strict_equals(a: Any, b: Any) -> bool:
    """Strict equality: same object, or same exact type and equal value."""
    return a is b or (type(a) is type(b) and a == b)


def resolve_comparer(comparer: Optional[Callable[[Any, Any], bool]] = None,
                     strict: bool = False) -> Callable[[Any, Any], bool]:
    """Pick the equality function; a custom comparer overrides strict."""
    if comparer is not None:
        return comparer
    return strict_equals if strict else loose_equals


def _rank(value: Any) -> int:
    """Position of a value's kind in the cross-kind ordering."""
    kind = kind_of(value)
    if kind is ValueKind.NONE:
        return 0
    if kind in (ValueKind.BOOL, ValueKind.INT, ValueKind.FLOAT):
        return 1
    # Fraction is Real; Decimal is a Number but not Complex
    if kind is ValueKind.OBJECT and isinstance(value, numbers.Number) and (
            isinstance(value, numbers.Real) or not isinstance(value, numbers.Complex)):
        return 1
    if kind is ValueKind.COMPLEX:
        return 2
    if kind is ValueKind.STR:
        return 3
    if kind is ValueKind.BYTES:
        return 4
    if kind in (ValueKind.LIST, ValueKind.TUPLE):
        return 5
    if kind is ValueKind.DICT:
        return 6
    if kind is ValueKind.SET:
        return 7
    return 8


def _compare_sequences(a, b) -> int:
    for left, right in zip(a, b):
        result = compare_values(left, right)
        if result:
            return result
    return (len(a) > len(b)) - (len(a) < len(b))


def compare_values(a: Any, b: Any) -> int:
    """Three-way comparison that is total across mixed value kinds.

    Values of different kinds order by kind: None < numbers < complex <
    str < bytes < list/tuple < dict < set < other objects.  Within a kind the
    natural ``<`` is used; lists and tuples compare element by element with
    this same function.  Values that cannot be ordered compare as equal.

    Returns:
        -1 if a < b, 1 if a > b, otherwise 0.
    """
    rank_a, rank_b = _rank(a), _rank(b)
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1
    if rank_a == 0:
        return 0
    if rank_a == 2:
        a, b = (a.real, a.imag), (b.real, b.imag)
    elif rank_a == 5:
        return _compare_sequences(a, b)
    try:
        if a < b:
            return -1
        if b < a:
            return 1
    except TypeError:
        pass
    return 0
