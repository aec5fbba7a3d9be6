"""Exceptions raised by the rebalancing engine and the planner.

Every engine operation is atomic: when one of these is raised the folio state
is exactly what it was before the call.
"""


class FolioError(Exception):
    """Base class for all folio errors."""


class MathError(FolioError):
    """Raised on fixed-point domain errors (negative input, zero divisor)."""


# Parameter validation


class FolioValidationError(FolioError):
    """Raised when call parameters are malformed."""


class InvalidLimitsError(FolioValidationError):
    pass


class InvalidWeightsError(FolioValidationError):
    pass


class InvalidPricesError(FolioValidationError):
    pass


class InvalidTokensError(FolioValidationError):
    pass


class InvalidTTLError(FolioValidationError):
    pass


class InvalidAuctionLengthError(FolioValidationError):
    pass


# Temporal


class FolioTemporalError(FolioError):
    """Raised when an operation is attempted at the wrong time."""


class AuctionNotOngoingError(FolioTemporalError):
    pass


class AuctionOngoingError(FolioTemporalError):
    pass


class RebalanceNotActiveError(FolioTemporalError):
    pass


class RestrictedWindowError(FolioTemporalError):
    pass


class NonceMismatchError(FolioTemporalError):
    pass


# Economic


class FolioEconomicError(FolioError):
    """Raised when a bid would hurt the bidder or the folio."""


class SlippageExceededError(FolioEconomicError):
    pass


class InsufficientBalanceError(FolioEconomicError):
    """Raised when a bid asks for more than the current lot."""


class InsufficientFundsError(FolioEconomicError):
    """Raised when a holder cannot cover a transfer."""


class InvariantViolationError(FolioEconomicError):
    """Raised when settlement would leave a balance outside its limits."""


# Authorization


class UnauthorizedError(FolioError):
    pass


# Planner


class PlannerError(FolioError):
    """Raised by the off-chain planner on bad inputs or non-convergence."""
