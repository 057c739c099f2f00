"""
Growth Model Specifications
===========================

Linear latent growth curve models with an intercept and a slope factor.
Loadings are fixed: the intercept loads 1 on every occasion, the slope loads
the time score.

Parameters (T occasions):
    alpha1, alpha2         factor means (intercept, slope)
    phi11, phi21, phi22    factor variances and covariance
    theta1 .. thetaT       residual variances

A specification lists the free parameters; every other parameter is fixed at
zero. Both the implied mean and the implied covariance are linear in the
parameters:

    mu(p)    = sum_k p_k dmu_k
    Sigma(p) = sum_k p_k dSigma_k

so a compiled model is just the stacked derivative arrays.

Model variants used in the study:
    correct       all parameters free
    misspecified  slope variance and intercept-slope covariance fixed to zero
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from growthsim.constants import MODEL_CORRECT, MODEL_MISSPECIFIED


LATENT_MEANS = ('alpha1', 'alpha2')
LATENT_COVARIANCES = ('phi11', 'phi21', 'phi22')


def residual_names(n_occasions: int) -> List[str]:
    return [f'theta{t}' for t in range(1, n_occasions + 1)]


def all_parameter_names(n_occasions: int) -> List[str]:
    """Every parameter a growth model over `n_occasions` can estimate."""
    return list(LATENT_MEANS) + list(LATENT_COVARIANCES) + residual_names(n_occasions)


def parameter_kind(name: str) -> str:
    """'mean', 'variance' or 'covariance'."""
    if name in LATENT_MEANS:
        return 'mean'
    if name == 'phi21':
        return 'covariance'
    return 'variance'


@dataclass(frozen=True)
class CompiledModel:
    """Derivative arrays of the implied moments with respect to free parameters."""
    label: str
    names: Tuple[str, ...]
    kinds: Tuple[str, ...]
    dmu: np.ndarray      # (q, T)
    dsigma: np.ndarray   # (q, T, T)

    @property
    def n_parameters(self) -> int:
        return len(self.names)

    def implied_moments(self, params: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Model-implied mean vector and covariance matrix."""
        mu = params @ self.dmu
        sigma = np.tensordot(params, self.dsigma, axes=1)
        return mu, sigma


@dataclass(frozen=True)
class GrowthModelSpec:
    """
    A growth model variant: which parameters are free.

    Example:
        >>> spec = GrowthModelSpec('random_intercept', ('alpha1', 'alpha2', 'phi11',
        ...                        'theta1', 'theta2', 'theta3'), (0, 1, 2))
        >>> spec.estimates('alpha2')
        True
    """
    label: str
    free_parameters: Tuple[str, ...]
    time_scores: Tuple[float, ...]
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'free_parameters', tuple(self.free_parameters))
        object.__setattr__(self, 'time_scores', tuple(float(t) for t in self.time_scores))

        valid = set(all_parameter_names(self.n_occasions))
        unknown = [p for p in self.free_parameters if p not in valid]
        if unknown:
            raise ValueError(f"Model '{self.label}': unknown parameters {unknown}")
        if len(set(self.free_parameters)) != len(self.free_parameters):
            raise ValueError(f"Model '{self.label}': duplicate free parameters")

    @property
    def n_occasions(self) -> int:
        return len(self.time_scores)

    @property
    def loadings(self) -> np.ndarray:
        return np.column_stack([np.ones(self.n_occasions),
                                np.asarray(self.time_scores, dtype=float)])

    def estimates(self, parameter: str) -> bool:
        """Whether `parameter` is free in this model."""
        return parameter in self.free_parameters

    def compile(self) -> CompiledModel:
        """Build the derivative arrays for the free parameters."""
        lam = self.loadings
        n_occ = self.n_occasions
        intercept, slope = lam[:, 0], lam[:, 1]

        dmu = np.zeros((len(self.free_parameters), n_occ))
        dsigma = np.zeros((len(self.free_parameters), n_occ, n_occ))

        for k, name in enumerate(self.free_parameters):
            if name == 'alpha1':
                dmu[k] = intercept
            elif name == 'alpha2':
                dmu[k] = slope
            elif name == 'phi11':
                dsigma[k] = np.outer(intercept, intercept)
            elif name == 'phi22':
                dsigma[k] = np.outer(slope, slope)
            elif name == 'phi21':
                dsigma[k] = np.outer(intercept, slope) + np.outer(slope, intercept)
            else:
                t = int(name[len('theta'):]) - 1
                dsigma[k, t, t] = 1.0

        return CompiledModel(
            label=self.label,
            names=self.free_parameters,
            kinds=tuple(parameter_kind(p) for p in self.free_parameters),
            dmu=dmu,
            dsigma=dsigma,
        )


def build_model_variants(time_scores: Sequence[float]) -> Dict[str, GrowthModelSpec]:
    """The two competing specifications, keyed by label."""
    n_occ = len(time_scores)
    residuals = tuple(residual_names(n_occ))

    correct = GrowthModelSpec(
        label=MODEL_CORRECT,
        free_parameters=LATENT_MEANS + LATENT_COVARIANCES + residuals,
        time_scores=tuple(time_scores),
        description="Random intercept and slope with free covariance",
    )
    misspecified = GrowthModelSpec(
        label=MODEL_MISSPECIFIED,
        free_parameters=LATENT_MEANS + ('phi11',) + residuals,
        time_scores=tuple(time_scores),
        description="Random intercept, fixed slope (phi22 = phi21 = 0)",
    )
    return {correct.label: correct, misspecified.label: misspecified}
