"""Error taxonomy for the ranking engine.

Fatal for the batch: ConfigurationError, CorrelationFailure, BatchCancelled.
Recovered locally: RateLimitError, ExtractionParseError.
Operator input: ValidationError, PlacementConflictError.
"""


class RankingError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(RankingError):
    """The extraction service is not usable (missing or rejected credentials)."""


class RateLimitError(RankingError):
    """The extraction service reported an exhausted quota."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ExtractionParseError(RankingError):
    """The extraction response could not be turned into ranking entries."""


class ValidationError(RankingError):
    """An operator-entered row or edit breaks a range or uniqueness rule."""


class PlacementConflictError(ValidationError):
    """Another row already holds the requested placement."""

    def __init__(self, placement: int, team_name: str):
        super().__init__(f'Placement {placement} is already held by {team_name}')
        self.placement = placement
        self.team_name = team_name


class CorrelationFailure(RankingError):
    """Nothing in the batch could be tied to a registered team."""

    def __init__(self, message: str, unmatched_labels: list[str] | None = None):
        super().__init__(message)
        self.unmatched_labels = unmatched_labels or []


class BatchCancelled(RankingError):
    """The caller abandoned the batch between two images."""
