"""Shared fixtures for the lazylinq tests."""
import pytest

from lazylinq import DeferredSequence, Sequence


@pytest.fixture(params=[Sequence, DeferredSequence], ids=["direct", "deferred"])
def linq(request):
    """The sequence class under test.

    Operator tests take this fixture so they run once against Sequence and
    once against the DeferredSequence wrapper, which must behave the same.
    """
    return request.param


class SpySource:
    """An iterable that counts how often it is started and read."""

    def __init__(self, values=(), fail_after=None):
        self.values = list(values)
        self.fail_after = fail_after
        self.iter_calls = 0
        self.next_calls = 0

    def __iter__(self):
        self.iter_calls += 1
        return self._generate()

    def _generate(self):
        for position, value in enumerate(self.values):
            self.next_calls += 1
            if self.fail_after is not None and position >= self.fail_after:
                raise AssertionError(f"element {position} should never be read")
            yield value


@pytest.fixture
def spy():
    return SpySource
