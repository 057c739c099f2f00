"""
Data Simulation
===============

Components for generating synthetic growth curve data:
- sampler.py: Seeded multivariate normal draws
- dgp.py: Latent growth data generating process
- design.py: Factorial design enumeration
"""

from .sampler import MultivariateSampler, check_covariance, sample_mvn
from .design import DesignCondition, enumerate_design, conditions_by_id, design_to_frame
from .dgp import (
    GeneratingParameters,
    derive_generating_parameters,
    check_generating_parameters,
    latent_covariance,
    observed_columns,
    simulate_components,
    generate_growth_data,
    generate_condition_data,
)

__all__ = [
    'MultivariateSampler',
    'check_covariance',
    'sample_mvn',
    'DesignCondition',
    'enumerate_design',
    'conditions_by_id',
    'design_to_frame',
    'GeneratingParameters',
    'derive_generating_parameters',
    'check_generating_parameters',
    'latent_covariance',
    'observed_columns',
    'simulate_components',
    'generate_growth_data',
    'generate_condition_data',
]
