"""Registry of replayable sequence operators.

Every non-terminal operator of :class:`lazylinq.linq.sequence.Sequence` is
registered here under a member of the :class:`Operator` enum by the
``register_operator`` decorator.  A deferred sequence records calls as
:class:`Command` objects and replays them through :func:`apply_command`,
which looks the handler up by enum member instead of by method name.
"""
from enum import Enum
from typing import Any, Callable, Dict, Generic, Tuple, TypeVar
import logging

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Operator(Enum):
    """Non-terminal operators that can be recorded and replayed."""
    SELECT = "select"
    MAP = "map"
    SELECT_MANY = "select_many"
    UNPACK = "unpack"
    WHERE = "where"
    FILTER = "filter"
    DISTINCT = "distinct"
    EXCEPT = "except_"
    CAST = "cast"
    OF_TYPE = "of_type"
    OF_CLASS = "of_class"
    CONCAT = "concat"
    APPEND = "append"
    PREPEND = "prepend"
    SKIP = "skip"
    SKIP_WHILE = "skip_while"
    TAKE = "take"
    TAKE_WHILE = "take_while"
    ZIP = "zip"


class Command(BaseModel):
    """One recorded operator call.

    Examples:
        Command(op=Operator.TAKE, args=(3,))
        Command(op=Operator.DISTINCT, kwargs={"strict": True})
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    op: Operator
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.op.value}/{len(self.args) + len(self.kwargs)}"


class OperatorRegistry(Generic[T]):
    """Maps Operator members to the functions that apply them.

    Handlers take the target as their first argument followed by the
    recorded arguments, which is exactly the shape of an unbound method.
    """

    def __init__(self):
        self._registry: Dict[Operator, Callable[..., T]] = {}

    def register(self, handler: Callable[..., T], op: Operator) -> None:
        """Register a handler (called by the decorator when the defining module is imported).

        Args:
            handler: Function applying the operator to a target
            op: The operator it implements
        """
        if op in self._registry:
            existing = self._registry[op]
            if existing is not handler:
                logger.warning(
                    f"Operator '{op.value}' already registered as {existing.__qualname__}. "
                    f"Overwriting with {handler.__qualname__}."
                )

        self._registry[op] = handler
        logger.debug(f"Registered '{op.value}' → {handler.__module__}.{handler.__qualname__}")

    def get(self, op: Operator) -> Callable[..., T]:
        """Get the handler for an operator.

        Raises:
            KeyError: If no handler is registered for op
        """
        if op in self._registry:
            return self._registry[op]

        available = sorted(o.value for o in self._registry)
        raise KeyError(
            f"Operator '{op.value}' not found in registry. "
            f"Available operators: {', '.join(available)}"
        )

    def __contains__(self, op: Operator) -> bool:
        return op in self._registry

    @property
    def all(self) -> Dict[Operator, Callable[..., T]]:
        return dict(self._registry)


operators = OperatorRegistry()


def register_operator(op: Operator):
    """Decorator registering a function as the handler of op.

    The function is returned unchanged, so it can decorate methods:

        class Sequence:
            @register_operator(Operator.TAKE)
            def take(self, count):
                ...
    """
    def decorator(func):
        operators.register(func, op)
        return func
    return decorator


def apply_command(target: Any, command: Command) -> Any:
    """Apply one recorded command to target and return the handler's result."""
    handler = operators.get(command.op)
    logger.debug(f"Applying {command} to {target!r}")
    return handler(target, *command.args, **command.kwargs)
