"""Source materialization for pipelines.

Turns whatever a caller hands to ``Sequence.from_`` into a single-pass
iterable, and builds the numeric range and repeat sources.
"""
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Iterator, List, Union

logger = logging.getLogger(__name__)

LAZY_RANGE_MIN_COUNT = 101
"""Element count from which range() produces a lazy generator instead of a list.

Below this count a list of ints costs less than the fixed overhead of a
generator; from it on the list grows linearly while the generator stays the
same size.
"""


def require_int(name: str, value: Any) -> int:
    """Reject non-integer counts and indexes (bool included)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, not {type(value).__name__}")
    return value


def materialize(source: Any, *args: Any) -> Iterable:
    """Turn a source descriptor into a single-pass iterable.

    - list and tuple are wrapped as they are.
    - str, bytes and bytearray are scalars, not character sequences.
    - A mapping contributes its values, in insertion order.
    - Any other iterable (generators, iterators, sets, other sequences) is
      adopted.  Ownership moves to the caller.
    - A callable is called with args and its result is materialized again;
      this is how generator functions become sources.
    - Anything else, None included, becomes a one-element list.

    Args:
        source: The value to materialize.
        *args: Positional arguments passed to source when it is callable.

    Returns:
        An iterable the pipeline can drive exactly once.
    """
    if isinstance(source, (list, tuple)):
        return source

    if isinstance(source, (str, bytes, bytearray)):
        return [source]

    if isinstance(source, Mapping):
        return source.values()

    if isinstance(source, Iterable):
        return source

    if callable(source):
        logger.debug(f"Materializing source from callable {getattr(source, '__name__', source)!r}")
        return materialize(source(*args))

    return [source]


def _lazy_range(start: int, count: int) -> Iterator[int]:
    value = start
    while count > 0:
        yield value
        value += 1
        count -= 1


def range_source(start: int, count: int) -> Union[List[int], Iterator[int]]:
    """Build count consecutive integers from start.

    Counts under LAZY_RANGE_MIN_COUNT are built eagerly as a list; larger
    counts are produced by a generator.  A count of zero or less is empty.
    """
    require_int("start", start)
    require_int("count", count)
    if count < LAZY_RANGE_MIN_COUNT:
        return list(range(start, start + max(count, 0)))
    return _lazy_range(start, count)


def _lazy_repeat(value: Any, count: int) -> Iterator[Any]:
    while count > 0:
        yield value
        count -= 1


def repeat_source(value: Any, count: int) -> Iterator[Any]:
    """Yield value count times.  Always lazy."""
    require_int("count", count)
    return _lazy_repeat(value, count)
