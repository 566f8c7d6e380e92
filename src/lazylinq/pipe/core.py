"""Core definitions for lazylinq pipelines

This module contains the stage primitives and the Pipeline class.  A stage
turns one input element into a lazy sub-sequence of zero or more output
elements; map, filter and flat-map are all stages.  A Pipeline owns one
source plus the list of stages attached to it and drives them in a single
pass when a consumer pulls from it.
"""
import inspect
import logging
import operator
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from enum import Enum
from itertools import chain
from typing import (
    Any, TypeVar, Generic, Iterable, List, Iterator, Optional, Callable
)
from lazylinq.errors import SequenceClosedError
from lazylinq.pipe.sources import materialize

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')


class PipelineState(Enum):
    """Lifecycle of a pipeline."""
    OPEN = "open"              # stages may still be attached
    CONSUMING = "consuming"    # a consumer has started pulling
    CLOSED = "closed"          # drained or closed by a terminal operator


class AbstractStage(ABC, Generic[T, U]):
    """Abstract base class for the stages of a pipeline.

    A stage is one fusible operation: given one input element it produces
    a lazy sub-sequence of zero or more output elements.  The pipeline
    concatenates these sub-sequences in order.

    Stages may carry state across elements (a counter for skip, the
    previous element for distinct).  That state belongs to the stage
    instance, so a stage must never be shared between pipelines.
    """

    @abstractmethod
    def process(self, item: T) -> Iterable[U]:
        """Produce the outputs for a single input element.

        Returns:
            Iterable[U]: Zero or more output elements, in order.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class FlatMapStage(AbstractStage[T, U]):
    """The general stage: func returns an iterable of outputs per element."""

    def __init__(self, func: Callable[[T], Iterable[U]]):
        self.func = func

    def process(self, item: T) -> Iterable[U]:
        return self.func(item)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({getattr(self.func, '__name__', self.func)!r})"


class MapStage(FlatMapStage[T, U]):
    """Emit exactly func(item).

    If func is a generator function the stage emits whatever it yields
    instead, which lets one function both filter and transform.
    """

    def __init__(self, func: Callable[[T], U]):
        super().__init__(func)
        self.multi_emit = inspect.isgeneratorfunction(func)

    def process(self, item: T) -> Iterable[U]:
        if self.multi_emit:
            return self.func(item)
        return (self.func(item),)


class FilterStage(FlatMapStage[T, T]):
    """Emit the item unchanged when predicate(item) is truthy.

    With no predicate the item itself is tested for truthiness.
    """

    def __init__(self, predicate: Optional[Callable[[T], Any]] = None):
        super().__init__(predicate)

    def process(self, item: T) -> Iterable[T]:
        keep = item if self.func is None else self.func(item)
        return (item,) if keep else ()


def _unpack_members(item):
    return item


def _seeded(func: Callable[[], Any]) -> Iterator[Any]:
    yield from materialize(func)


def _replaced(func: Callable[[Iterator[Any]], Iterable[Any]], previous: Iterator[Any]) -> Iterator[Any]:
    # func is not called until the first pull; previous is closed as soon as
    # the replacement stops, even if it stopped early
    with closing(previous):
        yield from func(previous)


class Pipeline:
    """A single-pass source plus the stages composed onto it.

    Non-terminal operations mutate the pipeline in place, either by
    appending a stage or by replacing the source with a new generator
    that wraps the old source and stages.  Nothing is pulled from the
    source until the pipeline is iterated.

    A pipeline can be driven only once.  Its state moves from OPEN to
    CONSUMING on the first iteration and to CLOSED once the source is
    exhausted or close() is called.  Any operation on a pipeline that is
    not OPEN raises SequenceClosedError.

    Examples:
        pipeline = Pipeline([1, 2, 3, 4])
        pipeline.map(lambda x: x * 10).filter(lambda x: x > 15)
        pipeline.to_list()   # [20, 30, 40]
    """

    def __init__(self, source: Optional[Iterable[Any]] = None):
        self._source = source
        self._stages: List[AbstractStage] = []
        self._state = PipelineState.OPEN
        self._iterator: Optional[Iterator[Any]] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def stages(self) -> tuple:
        return tuple(self._stages)

    def _ensure_open(self, action: str):
        if self._state is PipelineState.CLOSED:
            raise SequenceClosedError(f"Cannot {action}: sequence already consumed")
        if self._state is PipelineState.CONSUMING:
            raise SequenceClosedError(f"Cannot {action}: sequence is already being consumed")

    def add_stage(self, stage: AbstractStage) -> 'Pipeline':
        """Attach a stage to the end of the pipeline."""
        self._ensure_open("add a stage")
        self._stages.append(stage)
        logger.debug(f"Attached {stage!r} as stage {len(self._stages)}")
        return self

    def map(self, func: Callable[[Any], Any]) -> 'Pipeline':
        """Apply func to each element.

        A pipeline created without a source is seeded by its first map:
        func is called with no arguments on first consumption and its
        result becomes the source.
        """
        if self._source is None and not self._stages:
            self._ensure_open("map")
            self._source = _seeded(func)
            logger.debug("Seeded empty pipeline from map function")
            return self
        return self.add_stage(MapStage(func))

    def filter(self, predicate: Optional[Callable[[Any], Any]] = None) -> 'Pipeline':
        """Keep elements for which predicate is truthy (the element itself if no predicate)."""
        return self.add_stage(FilterStage(predicate))

    def flat_map(self, func: Callable[[Any], Iterable[Any]]) -> 'Pipeline':
        """Replace each element with the members of func(element)."""
        return self.add_stage(FlatMapStage(func))

    def unpack(self, func: Optional[Callable[..., Any]] = None) -> 'Pipeline':
        """Flatten one level.

        Each element is an iterable of arguments.  With func, emit
        func(*element); otherwise emit the element's members.
        """
        if func is None:
            return self.flat_map(_unpack_members)
        return self.flat_map(lambda args: (func(*args),))

    def _compose(self) -> Iterator[Any]:
        """A lazy, unstarted iterator over the source and current stages."""
        source = self._source if self._source is not None else ()
        stages = list(self._stages)

        def drive():
            iterator = source_iter = iter(source)
            try:
                for stage in stages:
                    iterator = chain.from_iterable(map(stage.process, iterator))
                yield from iterator
            finally:
                close = getattr(source_iter, "close", None)
                if close is not None:
                    close()

        return drive()

    def replace(self, func: Callable[[Iterator[Any]], Iterable[Any]]) -> 'Pipeline':
        """Replace the source with func(previous).

        previous iterates the current source through the current stages;
        it is not started until the new source is pulled.  The stage list
        is cleared since previous already applies it.
        """
        self._ensure_open("replace the source")
        self._source = _replaced(func, self._compose())
        self._stages = []
        logger.debug(f"Replaced pipeline source with {getattr(func, '__name__', func)!r}")
        return self

    def __iter__(self) -> Iterator[Any]:
        self._ensure_open("iterate")
        self._state = PipelineState.CONSUMING
        self._iterator = self._compose()
        logger.debug(f"Started consuming pipeline with {len(self._stages)} stages")
        return self._pull(self._iterator)

    def _pull(self, iterator: Iterator[Any]) -> Iterator[Any]:
        try:
            yield from iterator
        finally:
            self.close()

    def close(self):
        """Mark the pipeline as consumed and release its source.

        Closing is final; a closed pipeline cannot be reopened.
        """
        if self._state is PipelineState.CLOSED:
            return
        self._state = PipelineState.CLOSED
        iterator, self._iterator = self._iterator, None
        self._source = None
        self._stages = []
        if iterator is not None:
            iterator.close()
        logger.debug("Pipeline closed")

    @contextmanager
    def draining(self):
        """Iterate the pipeline and close it when the block exits.

        Terminal operators use this so that the pipeline is closed whether
        they drain it, stop early or raise.
        """
        iterator = iter(self)
        try:
            yield iterator
        finally:
            self.close()

    def reduce(self, func: Optional[Callable[[Any, Any], Any]] = None, initial: Any = None) -> Any:
        """Left fold over the pipeline.

        With no func the elements are summed, starting from initial or 0.
        """
        if func is None:
            func = operator.add
            if initial is None:
                initial = 0
        result = initial
        with self.draining() as items:
            for item in items:
                result = func(result, item)
        return result

    def to_list(self) -> List[Any]:
        """Drain the pipeline into a list."""
        with self.draining() as items:
            return list(items)
