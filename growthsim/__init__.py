"""
growthsim: Monte Carlo Study of Latent Growth Curve Estimators
==============================================================

Simulates panel data from a linear latent growth model under a factorial
design (sample size, slope variance, slope mean), fits a correctly specified
and a misspecified growth model to each data set, and summarizes the bias
and efficiency of the mean-slope estimate.

Key Components:
- simulation: sampler, data generating process, design enumeration
- models: growth model specifications and the ML fitting backend
- validation: replication driver, extraction, summary statistics
- config_schema: study configuration and validation

Usage:
    from growthsim import MonteCarloStudy, StudyConfig

    study = MonteCarloStudy(StudyConfig(n_replications=200))
    result = study.run()
    print(result.summary_table())
"""

from .config_schema import FixedParameters, StudyConfig, load_study_config, validate_config
from .exceptions import (
    GrowthSimError,
    InvalidCovariance,
    EmptyDesign,
    ConfigError,
    ParameterNotFound,
    FitFailure,
)
from .simulation import DesignCondition, MultivariateSampler, enumerate_design, generate_growth_data
from .models import GrowthModelSpec, FitResult, FittingBackend, MLGrowthModelFitter, build_model_variants
from .validation import (
    UNDEFINED,
    ReplicationRecord,
    SummaryRecord,
    MonteCarloStudy,
    StudyResult,
    extract_parameter,
    run_condition,
    run_study,
    summarize,
    summary_table,
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    'FixedParameters',
    'StudyConfig',
    'load_study_config',
    'validate_config',
    # Errors
    'GrowthSimError',
    'InvalidCovariance',
    'EmptyDesign',
    'ConfigError',
    'ParameterNotFound',
    'FitFailure',
    # Simulation
    'DesignCondition',
    'MultivariateSampler',
    'enumerate_design',
    'generate_growth_data',
    # Models
    'GrowthModelSpec',
    'FitResult',
    'FittingBackend',
    'MLGrowthModelFitter',
    'build_model_variants',
    # Study
    'UNDEFINED',
    'ReplicationRecord',
    'SummaryRecord',
    'MonteCarloStudy',
    'StudyResult',
    'extract_parameter',
    'run_condition',
    'run_study',
    'summarize',
    'summary_table',
]
