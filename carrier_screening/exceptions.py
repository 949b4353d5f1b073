"""Exception hierarchy for carrier screening."""


class ScreeningError(Exception):
    """Base exception for all carrier screening errors."""


class InvalidInputError(ScreeningError):
    """Raised when an assessment request is rejected before entering the pipeline."""


class VocabularyViolationError(ScreeningError):
    """Raised when a record carries a tag outside the closed scoring vocabulary."""


class DocumentReadError(InvalidInputError):
    """Raised when a source document cannot be converted to text."""
