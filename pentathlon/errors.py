"""Exception types raised by the scoring engine."""


class ScoringError(ValueError):
    """Base exception for scoring engine errors."""

    pass


class InvalidMeasurementError(ScoringError):
    """Raised when a raw measurement fails validation before scoring.

    Attributes:
        discipline: Discipline name the measurement was submitted for
        field: Offending field name, when a single field is at fault
    """

    def __init__(self, discipline: str, message: str, field: str | None = None) -> None:
        self.discipline = discipline
        self.field = field
        super().__init__(f"Invalid {discipline} measurement: {message}")


class UnknownDisciplineError(ScoringError):
    """Raised when a discipline name has no calculator."""

    def __init__(self, name) -> None:
        self.name = name
        super().__init__(f"Unknown discipline: {name}")
