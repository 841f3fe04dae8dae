"""
Error and warning types for the redd analysis pipeline.

Structural problems (absent columns, malformed keys) raise and stop the run.
Data-quality problems are warnings: they are logged, recorded on the frame
that carries them and the pipeline keeps going.
"""


class ReddAnalysisError(Exception):
    """Base class for pipeline errors."""


class MalformedInputError(ReddAnalysisError):
    """Input table cannot be interpreted (duplicate keys, unparseable values)."""


class MissingColumnsError(MalformedInputError):
    """A required column is absent from an input table."""

    def __init__(self, name: str, missing_columns):
        self.name = name
        self.missing_columns = list(missing_columns)
        super().__init__(f"{name} is missing required columns: {self.missing_columns}")


class MissingJoinKeyError(ReddAnalysisError):
    """A lookup key has no match on the other side of a join."""


class InsufficientDataError(ReddAnalysisError):
    """Fewer observations than a requested fit needs."""

    def __init__(self, message: str, n_observations: int = 0, n_required: int = 0):
        self.n_observations = n_observations
        self.n_required = n_required
        super().__init__(message)


class DataQualityWarning(UserWarning):
    """A data-quality issue that does not stop the pipeline."""


class AmbiguousLabelWarning(DataQualityWarning):
    """Conflicting population complex labels for one local population."""
