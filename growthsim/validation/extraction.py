"""
Target Parameter Extraction
===========================

Pulls the target coefficient and its standard error out of a fit, and checks
once, before any replication runs, that every model variant estimates it.
"""

from typing import Iterable, Tuple

from growthsim.exceptions import ParameterNotFound
from growthsim.models.fitting import FitResult
from growthsim.models.specification import GrowthModelSpec


def extract_parameter(fit_result: FitResult, target: str) -> Tuple[float, float]:
    """
    Estimate and standard error of `target`.

    Raises:
        ParameterNotFound: If the fit has no free parameter named `target`
    """
    try:
        return fit_result.estimate(target), fit_result.std_error(target)
    except ParameterNotFound:
        raise ParameterNotFound(target, fit_result.model_label) from None


def validate_target_parameter(models: Iterable[GrowthModelSpec], target: str) -> None:
    """
    Fail fast if any model variant fixes the target parameter.

    Raises:
        ParameterNotFound: Naming the first model that does not estimate it
    """
    for spec in models:
        if not spec.estimates(target):
            raise ParameterNotFound(target, spec.label)
