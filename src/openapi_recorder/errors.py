"""Error definitions for openapi-recorder."""


class RecorderError(Exception):
    """Base class for all openapi-recorder errors."""


class RecorderWarning(UserWarning):
    """Base class for non-fatal conditions reported through ``warnings``."""


class SelectorDepthMismatch(RecorderError, LookupError):
    """A concrete path descends past the nesting available in a tree.

    Selector evaluation treats this as "no match", never as a failure.
    """

    def __init__(self, path: tuple, depth: int) -> None:
        super().__init__(f"path {list(path)!r} does not resolve past depth {depth}")
        self.path = path
        self.depth = depth


class IncompatibleArrayCleanup(RecorderError, TypeError):
    """The node at an array-cleanup selector is not a list."""

    def __init__(self, path: tuple, side: str, found: object) -> None:
        super().__init__(
            f"expected a list at {list(path)!r} in {side}, found {type(found).__name__}"
        )
        self.path = path
        self.side = side


class SchemaConflictOverflow(RecorderWarning):
    """More incompatible shapes were observed than the oneOf cap allows."""


class MalformedExchange(RecorderError, ValueError):
    """An exchange carries a body that is not valid structured data."""

    def __init__(self, message: str, exchange: object = None) -> None:
        super().__init__(message)
        self.message = message
        self.exchange = exchange
