"""Queue-and-replay wrapper around a Sequence.

A :class:`DeferredSequence` records non-terminal operator calls as
:class:`~lazylinq.linq.registry.Command` objects instead of applying them.
The first terminal call replays the queue onto the wrapped sequence, in call
order, and then delegates.  Until then the wrapped sequence and its source
are not touched at all.
"""
import logging
from typing import Any, Callable, Iterator, List, Optional, Tuple

from lazylinq.linq.registry import Command, Operator, apply_command
from lazylinq.linq.sequence import Sequence
from lazylinq.pipe.sources import require_int

logger = logging.getLogger(__name__)


class DeferredSequence:
    """Defers every non-terminal operator of a Sequence until first consumption.

    Examples:
        deferred = DeferredSequence.from_(read_rows())
        deferred.where(lambda row: row["ok"]).take(10)   # nothing read yet
        deferred.to_list()                               # replay, then drain
    """

    def __init__(self, target: Optional[Sequence] = None):
        self._target = target if target is not None else Sequence()
        self._queue: List[Command] = []

    @classmethod
    def from_(cls, source: Any, *args: Any) -> 'DeferredSequence':
        return cls(Sequence.from_(source, *args))

    @classmethod
    def empty(cls) -> 'DeferredSequence':
        return cls(Sequence.empty())

    @classmethod
    def range(cls, start: int, count: int) -> 'DeferredSequence':
        return cls(Sequence.range(start, count))

    @classmethod
    def repeat(cls, value: Any, count: int) -> 'DeferredSequence':
        return cls(Sequence.repeat(value, count))

    @property
    def target(self) -> Sequence:
        return self._target

    @property
    def pending(self) -> Tuple[Command, ...]:
        """Commands recorded and not yet replayed."""
        return tuple(self._queue)

    def _defer(self, op: Operator, *args: Any, **kwargs: Any) -> 'DeferredSequence':
        self._queue.append(Command(op=op, args=args, kwargs=kwargs))
        return self

    def _flush(self) -> Sequence:
        queue, self._queue = self._queue, []
        if queue:
            logger.debug(f"Replaying {len(queue)} deferred commands: {', '.join(str(c) for c in queue)}")
        for command in queue:
            apply_command(self._target, command)
        return self._target

    # Non-terminal operators: recorded, not applied

    def select(self, selector: Callable[[Any], Any]) -> 'DeferredSequence':
        return self._defer(Operator.SELECT, selector)

    def map(self, func: Callable[[Any], Any]) -> 'DeferredSequence':
        return self._defer(Operator.MAP, func)

    def select_many(self, selector: Optional[Callable[[Any], Any]] = None) -> 'DeferredSequence':
        return self._defer(Operator.SELECT_MANY, selector=selector)

    def unpack(self, func: Optional[Callable[..., Any]] = None) -> 'DeferredSequence':
        return self._defer(Operator.UNPACK, func=func)

    def where(self, predicate: Callable[[Any], Any]) -> 'DeferredSequence':
        return self._defer(Operator.WHERE, predicate)

    def filter(self, predicate: Optional[Callable[[Any], Any]] = None) -> 'DeferredSequence':
        return self._defer(Operator.FILTER, predicate=predicate)

    def distinct(self, comparer=None, strict: bool = False) -> 'DeferredSequence':
        return self._defer(Operator.DISTINCT, comparer=comparer, strict=strict)

    def except_(self, other: Any, comparer=None, strict: bool = False) -> 'DeferredSequence':
        return self._defer(Operator.EXCEPT, other, comparer=comparer, strict=strict)

    def cast(self, kind) -> 'DeferredSequence':
        return self._defer(Operator.CAST, kind)

    def of_type(self, kind) -> 'DeferredSequence':
        return self._defer(Operator.OF_TYPE, kind)

    def of_class(self, cls) -> 'DeferredSequence':
        return self._defer(Operator.OF_CLASS, cls)

    def concat(self, other: Any) -> 'DeferredSequence':
        return self._defer(Operator.CONCAT, other)

    def append(self, value: Any) -> 'DeferredSequence':
        return self._defer(Operator.APPEND, value)

    def prepend(self, value: Any) -> 'DeferredSequence':
        return self._defer(Operator.PREPEND, value)

    def skip(self, count: int) -> 'DeferredSequence':
        return self._defer(Operator.SKIP, require_int("count", count))

    def skip_while(self, predicate: Callable[[Any], Any]) -> 'DeferredSequence':
        return self._defer(Operator.SKIP_WHILE, predicate)

    def take(self, count: int) -> 'DeferredSequence':
        return self._defer(Operator.TAKE, require_int("count", count))

    def take_while(self, predicate: Callable[[Any], Any]) -> 'DeferredSequence':
        return self._defer(Operator.TAKE_WHILE, predicate)

    def zip(self, other: Any, result_selector=None) -> 'DeferredSequence':
        return self._defer(Operator.ZIP, other, result_selector=result_selector)

    # Terminal operators: replay, then delegate

    def to_list(self) -> List[Any]:
        return self._flush().to_list()

    def aggregate(self, seed: Any, func: Callable[[Any, Any], Any], result_selector=None) -> Any:
        return self._flush().aggregate(seed, func, result_selector)

    def reduce(self, func=None, initial: Any = None) -> Any:
        return self._flush().reduce(func, initial)

    def all(self, predicate=None) -> bool:
        return self._flush().all(predicate)

    def any(self, predicate=None) -> bool:
        return self._flush().any(predicate)

    def contains(self, value: Any, comparer=None) -> bool:
        return self._flush().contains(value, comparer)

    def contains_exactly(self, value: Any) -> bool:
        return self._flush().contains_exactly(value)

    def count(self, predicate=None) -> int:
        return self._flush().count(predicate)

    def element_at(self, index: int) -> Any:
        return self._flush().element_at(index)

    def element_at_or_default(self, index: int) -> Any:
        return self._flush().element_at_or_default(index)

    def first(self, predicate=None) -> Any:
        return self._flush().first(predicate)

    def last(self, predicate=None) -> Any:
        return self._flush().last(predicate)

    def single(self, predicate=None) -> Any:
        return self._flush().single(predicate)

    def sum(self, selector=None) -> Any:
        return self._flush().sum(selector)

    def average(self, selector=None) -> float:
        return self._flush().average(selector)

    def min(self, selector=None) -> Any:
        return self._flush().min(selector)

    def max(self, selector=None) -> Any:
        return self._flush().max(selector)

    def to_json(self, **kwargs) -> str:
        return self._flush().to_json(**kwargs)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._flush())

    def __call__(self) -> Iterator[Any]:
        """A one-shot generator; the queue is replayed when it is first pulled."""
        yield from self._flush()

    @property
    def state(self):
        return self._target.state

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._target!r}, pending={len(self._queue)})"
