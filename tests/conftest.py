"""
Pytest Configuration and Shared Fixtures
=========================================

Provides common test fixtures for the growth curve simulation study.
"""

import logging
from pathlib import Path
import sys

import numpy as np
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from growthsim.config_schema import FixedParameters, StudyConfig
from growthsim.models.fitting import FitResult, FittingBackend, MLGrowthModelFitter
from growthsim.models.specification import build_model_variants
from growthsim.simulation.design import DesignCondition, enumerate_design
from growthsim.simulation.dgp import derive_generating_parameters, generate_condition_data
from growthsim.simulation.sampler import MultivariateSampler
from growthsim.exceptions import FitFailure


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root():
    """Return project root path."""
    return PROJECT_ROOT


@pytest.fixture
def fixed_params():
    """Default fixed generating values (T = 5)."""
    return FixedParameters()


@pytest.fixture
def factor_levels():
    """The 3 x 2 x 2 design used throughout the study."""
    return {'N': [50, 100, 200], 'phi22': [0.1, 0.5], 'alpha2': [1.0, 0.5]}


@pytest.fixture
def small_config():
    """A two-condition study that runs in seconds."""
    return StudyConfig(
        factor_levels={'N': [80], 'phi22': [0.5], 'alpha2': [1.0, 0.5]},
        n_replications=4,
        seed=123,
    )


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo setup_logging() calls made inside a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# =============================================================================
# Design and Model Fixtures
# =============================================================================

@pytest.fixture
def conditions(factor_levels):
    return enumerate_design(factor_levels)


@pytest.fixture
def condition():
    """A single condition with a sizeable slope variance."""
    return DesignCondition(id=1, N=300, phi22=0.5, alpha2=1.0)


@pytest.fixture
def model_variants(fixed_params):
    return build_model_variants(fixed_params.time_scores)


@pytest.fixture
def models(model_variants):
    """(correct, misspecified) in model1/model2 order."""
    return [model_variants['correct'], model_variants['misspecified']]


@pytest.fixture(scope="session")
def ml_fitter():
    return MLGrowthModelFitter()


# =============================================================================
# Data Fixtures - Synthetic Data with Known Parameters
# =============================================================================

@pytest.fixture
def growth_data(condition, fixed_params):
    """One data set from the condition fixture (N = 300)."""
    params = derive_generating_parameters(condition, fixed_params)
    return generate_condition_data(params, condition.N, MultivariateSampler(2024))


@pytest.fixture
def large_growth_data(fixed_params):
    """A large data set (N = 2000) for parameter recovery."""
    params = derive_generating_parameters(
        DesignCondition(id=1, N=2000, phi22=0.5, alpha2=1.0), fixed_params
    )
    return generate_condition_data(params, 2000, MultivariateSampler(7))


# =============================================================================
# Fake Fitting Backends
# =============================================================================

class SlopeDifferenceFitter(FittingBackend):
    """
    Fast stand-in for ML: alpha2 is the mean first difference, SE fixed.

    Deterministic in the data, so it exposes any change in generated data.
    """

    def fit(self, spec, data):
        diffs = np.diff(data.to_numpy(), axis=1).mean(axis=1)
        estimate = float(diffs.mean())
        return FitResult(
            model_label=spec.label,
            estimates={'alpha1': float(data['y1'].mean()), 'alpha2': estimate},
            covariance={('alpha1', 'alpha1'): 0.04, ('alpha2', 'alpha2'): 0.01,
                        ('alpha1', 'alpha2'): 0.0, ('alpha2', 'alpha1'): 0.0},
            n_observations=len(data),
        )


class FlakyFitter(SlopeDifferenceFitter):
    """Raises FitFailure on the given 1-based call numbers."""

    def __init__(self, fail_on_calls):
        self.fail_on_calls = set(fail_on_calls)
        self.n_calls = 0

    def fit(self, spec, data):
        self.n_calls += 1
        if self.n_calls in self.fail_on_calls:
            raise FitFailure("did not converge", spec.label)
        return super().fit(spec, data)


class AlwaysFailFitter(FittingBackend):
    def fit(self, spec, data):
        raise FitFailure("did not converge", spec.label)


class CountingFitter(SlopeDifferenceFitter):
    def __init__(self):
        self.n_calls = 0

    def fit(self, spec, data):
        self.n_calls += 1
        return super().fit(spec, data)


@pytest.fixture
def fake_fitter():
    return SlopeDifferenceFitter()


@pytest.fixture
def flaky_fitter_factory():
    return FlakyFitter


@pytest.fixture
def failing_fitter():
    return AlwaysFailFitter()


@pytest.fixture
def counting_fitter():
    return CountingFitter()


# =============================================================================
# Record Helpers
# =============================================================================

def make_records(condition_id, model1, model2=None):
    """Build ReplicationRecords from (estimate, se) pairs."""
    from growthsim.validation.monte_carlo import ReplicationRecord

    model2 = model2 if model2 is not None else model1
    return [
        ReplicationRecord(condition_id, i, e1, s1, e2, s2)
        for i, ((e1, s1), (e2, s2)) in enumerate(zip(model1, model2), start=1)
    ]


@pytest.fixture
def record_factory():
    return make_records
