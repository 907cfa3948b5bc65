"""Error taxonomy for the wager engine.

Every error carries a machine-readable ``code`` and an HTTP ``status`` so the
API layer can turn it into a ``{"error": ..., "message": ...}`` body.
"""


class EngineError(Exception):
    code = "engine_error"
    status = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(EngineError):
    code = "validation_error"


class UnknownGame(EngineError):
    code = "unknown_game"
    status = 404


class UnknownCurrency(EngineError):
    code = "unknown_currency"
    status = 404


class WagerRejected(EngineError):
    """A wager refused before any balance mutation."""
    code = "wager_rejected"


class GameDisabled(WagerRejected):
    code = "game_disabled"
    status = 403


class StakeOutOfRange(WagerRejected):
    code = "stake_out_of_range"


class InsufficientFunds(WagerRejected):
    code = "insufficient_funds"


class RoundInProgress(WagerRejected):
    code = "round_in_progress"
    status = 409


class RoundNotFound(EngineError):
    code = "round_not_found"
    status = 404


class Unauthorized(EngineError):
    code = "unauthorized"
    status = 401


class AuthError(EngineError):
    code = "invalid_pin"
    status = 401


class EngineFault(EngineError):
    """An outcome rule failed after the stake was debited; the debit was rolled back."""
    code = "engine_fault"
    status = 503
    retryable = True
