"""
Exception hierarchy for OOB curve computation.

Every error raised deliberately by the package derives from OOBCurveError.
Where an error is also a plain argument or type problem it additionally
subclasses the matching builtin, so ``except ValueError`` keeps working.
"""

from typing import Any, Optional


class OOBCurveError(Exception):
    """Base class for all errors raised by oobcurve."""


class UnsupportedModelError(OOBCurveError, TypeError):
    """The model is not a recognized bagged-tree ensemble."""


class MissingBookkeepingError(OOBCurveError, ValueError):
    """The ensemble did not retain per-tree in-bag counts at training time."""


class UnsupportedTaskTypeError(OOBCurveError, ValueError):
    """The task is neither classification nor regression."""


class MeasureEvaluationError(OOBCurveError):
    """A performance measure rejected the aggregated predictions."""


class TrainingError(OOBCurveError):
    """The external trainer failed for a sweep grid point."""

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        value: Any = None,
    ):
        super().__init__(message)
        self.parameter = parameter
        self.value = value

    def __reduce__(self):
        return (self.__class__, (str(self), self.parameter, self.value))


class SweepCancelledError(OOBCurveError):
    """A hyperparameter sweep was cancelled between grid points."""

    def __init__(self, message: str, completed: int = 0):
        super().__init__(message)
        self.completed = completed
