"""LINQ-style operators over a lazy pipeline.

A :class:`Sequence` wraps one :class:`~lazylinq.pipe.core.Pipeline`.
Non-terminal operators attach stages to the pipeline (or replace its
source) and return the same sequence; terminal operators drain the pipeline
and return a concrete value.  A sequence can be consumed once.

Examples:
    Sequence.from_([1, 1, 2, 3, 3, 1]).distinct().to_list()     # [1, 2, 3, 1]
    Sequence.range(1, 10).where(lambda x: x % 2).sum()          # 25
    Sequence.from_(["a", "b"]).zip(Sequence.range(1, 5)).to_list()
    # [['a', 1], ['b', 2]]
"""
import json
import logging
from typing import Annotated, Any, Callable, Iterable, Iterator, List, Optional, Union

from lazylinq.errors import ArgumentNullError, ArgumentOutOfRangeError, InvalidOperationError
from lazylinq.linq.registry import Operator, register_operator
from lazylinq.pipe.core import Pipeline, PipelineState
from lazylinq.pipe.sources import materialize, range_source, repeat_source, require_int
from lazylinq.util.values import (
    ValueKind, as_kind, compare_values, converter_for, kind_of,
    loose_equals, resolve_comparer, strict_equals
)

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], Any]
Selector = Callable[[Any], Any]
Comparer = Callable[[Any, Any], bool]

_MISSING = object()
_OUT_OF_RANGE = object()


class _Previous:
    """State cell for distinct: the last element emitted."""
    __slots__ = ("seen", "value")

    def __init__(self):
        self.seen = False
        self.value = None


class _Counter:
    """State cell for skip: elements bypassed so far."""
    __slots__ = ("count",)

    def __init__(self):
        self.count = 0


class _Bypass:
    """State cell for skip_while: still bypassing or not."""
    __slots__ = ("active",)

    def __init__(self):
        self.active = True


class _Excluded:
    """State cell for except_: the excluded values, read once on first use."""
    __slots__ = ("source", "values")

    def __init__(self, source):
        self.source = source
        self.values = None

    def get(self) -> List[Any]:
        if self.values is None:
            self.values = list(materialize(self.source))
            self.source = None
        return self.values


def _cast_step(convert: Callable[[Any], Any]):
    def step(value):
        try:
            return (convert(value),)
        except (TypeError, ValueError, ArithmeticError):
            return ()
    return step


def _class_matcher(cls: Union[type, str]) -> Callable[[Any], bool]:
    if isinstance(cls, type):
        return lambda value: type(value) is cls
    if isinstance(cls, str):
        def matches(value):
            value_type = type(value)
            return cls in (value_type.__name__,
                           value_type.__qualname__,
                           f"{value_type.__module__}.{value_type.__qualname__}")
        return matches
    raise TypeError(f"of_class expects a class or a class name, not {type(cls).__name__}")


class Sequence:
    """A lazy, single-pass query over a source of values.

    Build one with from_(), empty(), range() or repeat(), chain non-terminal
    operators, then call a terminal operator or iterate it.  Nothing is read
    from the source until a terminal operator runs, and a terminal operator
    reads only as much as it needs.

    The sequence is consumed by the first terminal operator.  Any later
    operator call or iteration raises SequenceClosedError.
    """

    def __init__(self, source: Optional[Iterable[Any]] = None):
        self._pipeline = Pipeline(source)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_(cls, source: Any, *args: Any) -> 'Sequence':
        """Build a sequence from a list, an iterable, a callable or a scalar.

        A callable is called with args and its result is used instead, so
        generator functions can be passed directly.  A scalar, None
        included, becomes a one-element sequence.
        """
        return cls(materialize(source, *args))

    @classmethod
    def empty(cls) -> 'Sequence':
        return cls.from_([])

    @classmethod
    def range(cls, start: Annotated[int, "The first integer yielded."],
              count: Annotated[int, "How many integers to yield."]) -> 'Sequence':
        """count consecutive integers from start."""
        return cls(range_source(start, count))

    @classmethod
    def repeat(cls, value: Annotated[Any, "The element to repeat."],
               count: Annotated[int, "How many times to yield it."]) -> 'Sequence':
        """value, count times."""
        return cls(repeat_source(value, count))

    @property
    def state(self) -> PipelineState:
        return self._pipeline.state

    # ------------------------------------------------------------------
    # Non-terminal operators
    # ------------------------------------------------------------------

    @register_operator(Operator.SELECT)
    def select(self, selector: Selector) -> 'Sequence':
        """Project each element with selector.

        If selector is a generator function, whatever it yields for an
        element replaces that element (zero, one or many values).
        """
        self._pipeline.map(selector)
        return self

    @register_operator(Operator.MAP)
    def map(self, func: Selector) -> 'Sequence':
        """Alias of select()."""
        return self.select(func)

    @register_operator(Operator.SELECT_MANY)
    def select_many(self, selector: Optional[Selector] = None) -> 'Sequence':
        """Project each element to an iterable and flatten the results."""
        if selector is not None:
            self._pipeline.map(selector)
        self._pipeline.unpack()
        return self

    @register_operator(Operator.UNPACK)
    def unpack(self, func: Optional[Callable[..., Any]] = None) -> 'Sequence':
        """Flatten one level, or call func with each element's members as arguments."""
        self._pipeline.unpack(func)
        return self

    @register_operator(Operator.WHERE)
    def where(self, predicate: Predicate) -> 'Sequence':
        self._pipeline.filter(predicate)
        return self

    @register_operator(Operator.FILTER)
    def filter(self, predicate: Optional[Predicate] = None) -> 'Sequence':
        """Like where(), but with no predicate keeps truthy elements."""
        self._pipeline.filter(predicate)
        return self

    @register_operator(Operator.DISTINCT)
    def distinct(self,
                 comparer: Annotated[Optional[Comparer], "Equality test used instead of value equality."] = None,
                 strict: Annotated[bool, "Use same-type equality when no comparer is given."] = False) -> 'Sequence':
        """Drop elements equal to the element right before them.

        Only adjacent duplicates are removed: [1, 1, 2, 1] becomes
        [1, 2, 1].  comparer(value, previous) decides equality; without one,
        == is used, or same-type equality when strict is True.
        """
        equals = resolve_comparer(comparer, strict)
        previous = _Previous()

        def step(value):
            if previous.seen and equals(value, previous.value):
                return ()
            previous.seen = True
            previous.value = value
            return (value,)

        self._pipeline.flat_map(step)
        return self

    @register_operator(Operator.EXCEPT)
    def except_(self, other: Any, comparer: Optional[Comparer] = None, strict: bool = False) -> 'Sequence':
        """Drop elements equal to any element of other, then apply distinct().

        With a plain list or tuple and no comparer a membership test is used.
        Otherwise every element is compared with comparer(value, excluded)
        against each element of other; other is read once, when the first
        element is checked.
        """
        if comparer is None and isinstance(other, (list, tuple)):
            if strict:
                def keep(value):
                    return not any(strict_equals(value, excluded) for excluded in other)
            else:
                def keep(value):
                    return value not in other
        else:
            equals = resolve_comparer(comparer, strict)
            excluded_values = _Excluded(other)

            def keep(value):
                return not any(equals(value, excluded) for excluded in excluded_values.get())

        self._pipeline.filter(keep)
        return self.distinct(None, strict)

    @register_operator(Operator.CAST)
    def cast(self, kind: Union[ValueKind, str, Callable[[Any], Any]]) -> 'Sequence':
        """Coerce each element to kind, dropping elements that cannot be coerced.

        kind is a ValueKind, its name ("float", "int", ...) or a callable
        such as Decimal.
        """
        self._pipeline.flat_map(_cast_step(converter_for(kind)))
        return self

    @register_operator(Operator.OF_TYPE)
    def of_type(self, kind: Union[ValueKind, str]) -> 'Sequence':
        """Keep elements of the given ValueKind."""
        wanted = as_kind(kind)
        self._pipeline.filter(lambda value: kind_of(value) is wanted)
        return self

    @register_operator(Operator.OF_CLASS)
    def of_class(self, cls: Union[type, str]) -> 'Sequence':
        """Keep elements whose exact class is cls.

        cls may be the class itself or its name, qualified name or
        module-qualified name.  Instances of subclasses are dropped.
        """
        self._pipeline.filter(_class_matcher(cls))
        return self

    @register_operator(Operator.CONCAT)
    def concat(self, other: Any) -> 'Sequence':
        """Append the elements of other after the elements of this sequence."""
        def concatenated(previous):
            yield from previous
            yield from materialize(other)

        self._pipeline.replace(concatenated)
        return self

    @register_operator(Operator.APPEND)
    def append(self, value: Any) -> 'Sequence':
        def appended(previous):
            yield from previous
            yield value

        self._pipeline.replace(appended)
        return self

    @register_operator(Operator.PREPEND)
    def prepend(self, value: Any) -> 'Sequence':
        def prepended(previous):
            yield value
            yield from previous

        self._pipeline.replace(prepended)
        return self

    @register_operator(Operator.SKIP)
    def skip(self, count: Annotated[int, "The number of leading elements to drop."]) -> 'Sequence':
        """Bypass the first count elements."""
        require_int("count", count)
        skipped = _Counter()

        def past_skip(value):
            if skipped.count >= count:
                return True
            skipped.count += 1
            return False

        self._pipeline.filter(past_skip)
        return self

    @register_operator(Operator.SKIP_WHILE)
    def skip_while(self, predicate: Predicate) -> 'Sequence':
        """Bypass elements while predicate holds, then keep everything."""
        bypass = _Bypass()

        def past_skip(value):
            if bypass.active and predicate(value):
                return False
            bypass.active = False
            return True

        self._pipeline.filter(past_skip)
        return self

    @register_operator(Operator.TAKE)
    def take(self, count: Annotated[int, "The number of leading elements to keep."]) -> 'Sequence':
        """Keep the first count elements.

        No element past the count is pulled from upstream.
        """
        require_int("count", count)

        def taking(previous):
            remaining = count
            if remaining <= 0:
                return
            for value in previous:
                yield value
                remaining -= 1
                if remaining <= 0:
                    return

        self._pipeline.replace(taking)
        return self

    @register_operator(Operator.TAKE_WHILE)
    def take_while(self, predicate: Predicate) -> 'Sequence':
        """Keep elements until predicate first fails."""
        def taking(previous):
            for value in previous:
                if not predicate(value):
                    return
                yield value

        self._pipeline.replace(taking)
        return self

    @register_operator(Operator.ZIP)
    def zip(self, other: Any, result_selector: Optional[Callable[[Any, Any], Any]] = None) -> 'Sequence':
        """Pair elements by position with the elements of other.

        Pairs are [first, second] lists, or result_selector(first, second).
        Stops at the end of the shorter sequence.  other is read through a
        single cursor that advances once per pair and is never restarted,
        so single-pass sources work.
        """
        def zipped(previous):
            cursor = None
            try:
                for first in previous:
                    if cursor is None:
                        cursor = iter(materialize(other))
                    second = next(cursor, _MISSING)
                    if second is _MISSING:
                        return
                    yield [first, second]
            finally:
                close = getattr(cursor, "close", None)
                if close is not None:
                    close()

        self._pipeline.replace(zipped)
        if result_selector is not None:
            self._pipeline.unpack(result_selector)
        return self

    # ------------------------------------------------------------------
    # Terminal operators
    # ------------------------------------------------------------------

    def to_list(self) -> List[Any]:
        return self._pipeline.to_list()

    def aggregate(self, seed: Any, func: Callable[[Any, Any], Any],
                  result_selector: Optional[Selector] = None) -> Any:
        """Fold with func starting from seed, optionally transforming the result."""
        result = self._pipeline.reduce(func, seed)
        if result_selector is not None:
            return result_selector(result)
        return result

    def reduce(self, func: Optional[Callable[[Any, Any], Any]] = None, initial: Any = None) -> Any:
        """Fold with func; without func, sum the elements."""
        return self._pipeline.reduce(func, initial)

    def all(self, predicate: Optional[Predicate] = None) -> bool:
        """True if every element satisfies predicate (or is truthy).  Stops at the first failure."""
        with self._pipeline.draining() as items:
            for value in items:
                if not (value if predicate is None else predicate(value)):
                    return False
        return True

    def any(self, predicate: Optional[Predicate] = None) -> bool:
        """True if there is any element (satisfying predicate).  Stops at the first match."""
        if predicate is not None:
            self._pipeline.filter(predicate)
        with self._pipeline.draining() as items:
            for _ in items:
                return True
        return False

    def contains(self, value: Any, comparer: Optional[Comparer] = None) -> bool:
        """True if some element equals value, per comparer(element, value) or ==."""
        equals = comparer or loose_equals
        with self._pipeline.draining() as items:
            for sample in items:
                if equals(sample, value):
                    return True
        return False

    def contains_exactly(self, value: Any) -> bool:
        """contains() with strict equality: same object, or same type and equal value."""
        return self.contains(value, strict_equals)

    def count(self, predicate: Optional[Predicate] = None) -> int:
        if predicate is not None:
            self._pipeline.filter(predicate)
        total = 0
        with self._pipeline.draining() as items:
            for _ in items:
                total += 1
        return total

    def _element_at(self, index: int) -> Any:
        require_int("index", index)
        with self._pipeline.draining() as items:
            if index < 0:
                return _OUT_OF_RANGE
            position = 0
            for value in items:
                if position == index:
                    return value
                position += 1
        if position == 0:
            raise ArgumentNullError("Source is empty")
        return _OUT_OF_RANGE

    def element_at(self, index: Annotated[int, "Zero-based position of the element."]) -> Any:
        """The element at index.

        Raises:
            ArgumentOutOfRangeError: index is negative or past the end
            ArgumentNullError: the sequence is empty
        """
        value = self._element_at(index)
        if value is _OUT_OF_RANGE:
            raise ArgumentOutOfRangeError(f"Index {index} is out of range")
        return value

    def element_at_or_default(self, index: Annotated[int, "Zero-based position of the element."]) -> Any:
        """The element at index, or None when index is negative or past the end.

        Raises:
            ArgumentNullError: the sequence is empty
        """
        value = self._element_at(index)
        if value is _OUT_OF_RANGE:
            return None
        return value

    def first(self, predicate: Optional[Predicate] = None) -> Any:
        """The first element (satisfying predicate), or None."""
        if predicate is not None:
            self._pipeline.filter(predicate)
        with self._pipeline.draining() as items:
            for value in items:
                return value
        return None

    def last(self, predicate: Optional[Predicate] = None) -> Any:
        """The last element (satisfying predicate), or None."""
        if predicate is not None:
            self._pipeline.filter(predicate)
        value = None
        with self._pipeline.draining() as items:
            for value in items:
                pass
        return value

    def single(self, predicate: Optional[Predicate] = None) -> Any:
        """The only element (satisfying predicate), or None if there is none.

        Raises:
            InvalidOperationError: as soon as a second element is found
        """
        if predicate is not None:
            self._pipeline.filter(predicate)
        found = False
        result = None
        with self._pipeline.draining() as items:
            for value in items:
                if found:
                    raise InvalidOperationError("The sequence does not contain exactly one element")
                found = True
                result = value
        return result

    def sum(self, selector: Optional[Selector] = None) -> Any:
        """Sum of the elements (or of selector(element)); 0 when empty."""
        if selector is not None:
            self._pipeline.map(selector)
        return self._pipeline.reduce()

    def average(self, selector: Optional[Selector] = None) -> float:
        """Arithmetic mean of the elements (or of selector(element)).

        Raises:
            InvalidOperationError: the sequence is empty
        """
        if selector is not None:
            self._pipeline.map(selector)
        total = 0
        count = 0
        with self._pipeline.draining() as items:
            for value in items:
                total += value
                count += 1
        if count == 0:
            raise InvalidOperationError("Cannot average an empty sequence")
        return total / count

    def _extreme(self, selector: Optional[Selector], sign: int) -> Any:
        if selector is not None:
            self._pipeline.map(selector)
        best = _MISSING
        with self._pipeline.draining() as items:
            for value in items:
                if best is _MISSING or compare_values(value, best) == sign:
                    best = value
        return None if best is _MISSING else best

    def min(self, selector: Optional[Selector] = None) -> Any:
        """Smallest element (or selector(element)) under compare_values; None when empty."""
        return self._extreme(selector, -1)

    def max(self, selector: Optional[Selector] = None) -> Any:
        """Largest element (or selector(element)) under compare_values; None when empty."""
        return self._extreme(selector, 1)

    def to_json(self, **kwargs) -> str:
        """Serialize the elements as a JSON array.  kwargs go to json.dumps."""
        return json.dumps(self.to_list(), **kwargs)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._pipeline)

    def __call__(self) -> Iterator[Any]:
        """A one-shot generator over the sequence.

        Nothing is read until the generator is pulled.  It does not
        restart a consumed sequence.
        """
        yield from self._pipeline

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(state={self.state.value}, stages={len(self._pipeline.stages)})"
