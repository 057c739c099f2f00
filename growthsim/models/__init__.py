"""
Growth Models
=============

Model specifications and the ML fitting backend.

- specification.py: GrowthModelSpec and the two study variants
- fitting.py: FitResult, FittingBackend and MLGrowthModelFitter
"""

from .specification import (
    GrowthModelSpec,
    CompiledModel,
    build_model_variants,
    all_parameter_names,
    parameter_kind,
)
from .fitting import FitResult, FittingBackend, FitterConfig, MLGrowthModelFitter

__all__ = [
    'GrowthModelSpec',
    'CompiledModel',
    'build_model_variants',
    'all_parameter_names',
    'parameter_kind',
    'FitResult',
    'FittingBackend',
    'FitterConfig',
    'MLGrowthModelFitter',
]
