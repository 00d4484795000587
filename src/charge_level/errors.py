class ChargeLevelError(Exception):
    """Base class for pipeline errors."""


class EncodingError(ChargeLevelError, ValueError):
    """A categorical field holds a value with no known code."""

    def __init__(self, column: str, value):
        self.column = column
        self.value = value
        super().__init__(f"Unrecognized value {value!r} for column '{column}'")


class TrainingPreconditionError(ChargeLevelError, ValueError):
    """Training data cannot be fitted: empty, missing values, or a single class."""

    EMPTY = "empty"
    MISSING_VALUES = "missing_values"
    SINGLE_CLASS = "single_class"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(f"[{reason}] {message}")
