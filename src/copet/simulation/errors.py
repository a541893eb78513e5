"""Simulation error taxonomy.

Every error carries a stable ``code`` string that the HTTP layer echoes
back to clients, so callers can branch on it without parsing messages.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for all expected simulation failures."""

    code = "SIMULATION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidActionError(SimulationError):
    """Unknown care action or mini-game type."""

    code = "INVALID_ACTION_TYPE"


class PetNotFoundError(SimulationError):
    code = "PET_NOT_FOUND"


class NotPetOwnerError(SimulationError):
    """Acting user is not a member of the couple that owns the pet."""

    code = "UNAUTHORIZED"


class CooldownActiveError(SimulationError):
    code = "COOLDOWN_ACTIVE"

    def __init__(self, message: str, remaining_seconds: int) -> None:
        super().__init__(message)
        self.remaining_seconds = remaining_seconds


class ConcurrencyConflictError(SimulationError):
    """Lost a race against a concurrent update of the same pet. Retryable."""

    code = "CONCURRENT_UPDATE"

    def __init__(self, message: str, retry_after: int = 1) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RateLimitedError(SimulationError):
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ImplausibleResultError(SimulationError):
    """Mini-game result failed the human-plausibility check."""

    code = "IMPLAUSIBLE_RESULT"


class SessionSealedError(SimulationError):
    code = "SESSION_SEALED"


class SessionNotFoundError(SimulationError):
    code = "SESSION_NOT_FOUND"


class CoupleError(SimulationError):
    """Couple linking or pet adoption rule violated."""

    code = "COUPLE_ERROR"
