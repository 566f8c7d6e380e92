"""Lazy, single-pass LINQ-style queries over Python iterables."""
from lazylinq.errors import (
    LazyLinqError, ArgumentOutOfRangeError, ArgumentNullError,
    InvalidOperationError, SequenceClosedError
)
from lazylinq.pipe.sources import LAZY_RANGE_MIN_COUNT
from lazylinq.util.values import ValueKind
from lazylinq.util.config import LoggingSettings, configure_logging
from lazylinq.linq.sequence import Sequence
from lazylinq.linq.deferred import DeferredSequence

from_ = Sequence.from_
