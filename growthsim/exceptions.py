"""
Exceptions raised by the growth curve simulation study.

Sampling, design and configuration errors are fatal to a study. FitFailure is
recoverable: the replication is dropped and counted.
"""

from typing import Optional


class GrowthSimError(Exception):
    """Base class for all study errors."""


class InvalidCovariance(GrowthSimError, ValueError):
    """Covariance matrix is malformed or not positive semi-definite."""


class EmptyDesign(GrowthSimError, ValueError):
    """The design has no conditions to run."""


class ConfigError(GrowthSimError, ValueError):
    """The study configuration is invalid."""


class ParameterNotFound(GrowthSimError, KeyError):
    """A model variant does not estimate the requested parameter."""

    def __init__(self, parameter: str, model_label: Optional[str] = None):
        self.parameter = parameter
        self.model_label = model_label
        super().__init__(parameter)

    def __str__(self) -> str:
        if self.model_label is None:
            return f"Parameter '{self.parameter}' not found in fit result"
        return (f"Parameter '{self.parameter}' is not a free parameter of "
                f"model '{self.model_label}'")

    def __reduce__(self):
        return (ParameterNotFound, (self.parameter, self.model_label))


class FitFailure(GrowthSimError, RuntimeError):
    """
    A single model fit did not converge.

    The fitting backend knows only the model label; the replication driver
    attaches the condition and replication identifiers with `with_context`.
    """

    def __init__(self,
                 message: str,
                 model_label: Optional[str] = None,
                 condition_id: Optional[int] = None,
                 replication: Optional[int] = None):
        self.message = message
        self.model_label = model_label
        self.condition_id = condition_id
        self.replication = replication
        super().__init__(message)

    def with_context(self, condition_id: int, replication: int) -> 'FitFailure':
        """Return a copy tagged with the condition and replication."""
        return FitFailure(self.message, self.model_label, condition_id, replication)

    def __str__(self) -> str:
        where = []
        if self.model_label is not None:
            where.append(f"model={self.model_label}")
        if self.condition_id is not None:
            where.append(f"condition={self.condition_id}")
        if self.replication is not None:
            where.append(f"replication={self.replication}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message

    def __reduce__(self):
        return (FitFailure, (self.message, self.model_label,
                             self.condition_id, self.replication))
