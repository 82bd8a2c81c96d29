"""Error taxonomy for index computation.

Every error is local to one trade date. The daily pipeline catches these and
records ``code`` as the date's skip reason so batch processing continues.
"""

from typing import Optional


class IndexComputationError(Exception):
    """Error during the index computation for a single trade date."""

    code = "COMPUTATION_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")


class InvalidQuoteError(IndexComputationError):
    """Malformed quote or inconsistent date ordering."""

    code = "INVALID_QUOTE"


class EmptyChainError(IndexComputationError):
    """Calls or puts are missing entirely for an expiration."""

    code = "EMPTY_CHAIN"


class NoReferenceStrikeError(IndexComputationError):
    """Forward price lies below every listed strike."""

    code = "NO_REFERENCE_STRIKE"


class InsufficientCohortError(IndexComputationError):
    """No expiration below, or none at/above, the target horizon."""

    code = "INSUFFICIENT_COHORT"


class DegenerateCohortError(IndexComputationError):
    """Near-term and next-term expirations coincide."""

    code = "DEGENERATE_COHORT"
