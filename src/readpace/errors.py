"""Error taxonomy shared by every readpace component.

- ValidationError: malformed input, rejected before any state changes
- NotFoundError: unknown session, content, question set or user id
- StateError: operation not legal in the current state (e.g. on a
  completed session, or grading a session twice)
"""


class ReadPaceError(Exception):
    """Base exception for readpace errors."""

    pass


class ValidationError(ReadPaceError):
    """Raised when input is out of range or malformed."""

    pass


class NotFoundError(ReadPaceError):
    """Raised when an id does not resolve to a stored record."""

    pass


class StateError(ReadPaceError):
    """Raised when an operation is invoked in a state that forbids it."""

    pass
