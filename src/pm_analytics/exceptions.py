"""Exception hierarchy for PM analytics."""


class AnalyticsError(Exception):
    """Base exception for analytics errors."""

    pass


class ShapeError(AnalyticsError):
    """A snapshot record violates the input schema."""

    def __init__(self, entity: str, entity_id: int | str | None, message: str) -> None:
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConfigError(AnalyticsError):
    """A configuration option is invalid and was replaced by its default."""

    pass


class TemporalInconsistency(AnalyticsError):
    """A date field is unparseable or contradicts another date field."""

    pass


class ConfigNotFoundError(AnalyticsError):
    """Configuration file not found."""

    pass


class InvalidConfigError(AnalyticsError):
    """Configuration file cannot be read."""

    pass


class UnknownTableError(AnalyticsError):
    """Requested tabular projection does not exist."""

    pass
