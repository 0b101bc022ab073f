"""Error types raised by the claim preprocessing pipeline."""

from typing import Any, List, Optional


class PreprocessingError(Exception):
    """Base class for preprocessing failures."""


class ConfigurationError(PreprocessingError):
    """Preprocessing bundle is missing, unreadable or malformed."""


class MismatchError(PreprocessingError):
    """Encoded vectors look like they came from a mismatched bundle."""

    def __init__(self, bad_count: int, rows: List[int], threshold: float):
        self.bad_count = bad_count
        self.rows = rows
        self.threshold = threshold
        super().__init__(
            f"preprocessing_mismatch: {bad_count} value(s) non-finite or above "
            f"{threshold:g} in row(s) {rows}; check encoder mappings & scaler arrays."
        )


class ScoringError(Exception):
    """Remote scoring endpoint is unset or returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
