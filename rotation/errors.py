"""Error codes and the internal exceptions used by the rotation store.

The exceptions never escape :class:`~rotation.services.rotation_service.RotationStore`:
the store catches them, rolls the document back and reports the ``code`` in an
:class:`OperationResult`.
"""
from typing import Any, NamedTuple, Optional

VALIDATION_ERROR = 'validation_error'
CAPACITY_EXCEEDED = 'capacity_exceeded'
NO_PLAN = 'no_plan'
NO_GAME = 'no_game'
NOT_FOUND = 'not_found'


class RotationError(Exception):
    """Base class for recoverable, caller-facing rotation errors."""

    code = VALIDATION_ERROR


class ValidationError(RotationError):
    """A required field is empty or a value is not acceptable."""

    code = VALIDATION_ERROR


class CapacityExceeded(RotationError):
    """The console already holds the maximum number of active games."""

    code = CAPACITY_EXCEEDED


class NoPlan(RotationError):
    """There is no (console, game) pair to act on today."""

    code = NO_PLAN


class NoGame(RotationError):
    """Today's suggestion has no game."""

    code = NO_GAME


class NotFound(RotationError):
    """The referenced console or game does not exist."""

    code = NOT_FOUND


class OperationResult(NamedTuple):
    """Outcome of a store operation.

    Exactly one of ``value`` / ``error`` is meaningful: ``error`` is ``None``
    on success, otherwise one of the module-level error codes.
    """

    value: Any = None
    error: Optional[str] = None
    message: str = ''

    @property
    def ok(self) -> bool:
        return self.error is None
