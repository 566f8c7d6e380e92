"""Exceptions raised by lazylinq sequences."""


class LazyLinqError(Exception):
    """ Base class for all errors raised by lazylinq """
    pass


class ArgumentOutOfRangeError(LazyLinqError, IndexError):
    """ Raised when an index is negative or past the end of a sequence """
    pass


class ArgumentNullError(LazyLinqError, ValueError):
    """ Raised when an element is requested from an empty source """
    pass


class InvalidOperationError(LazyLinqError):
    """ Raised when a sequence does not satisfy the operation's precondition,
    e.g. single() finding a second match or average() on an empty sequence.
    """
    pass


class SequenceClosedError(LazyLinqError, RuntimeError):
    """ Raised on any attempt to operate on or iterate a pipeline that has
    already been consumed.  This signals a programming error; a consumed
    pipeline cannot be reset.
    """
    pass
