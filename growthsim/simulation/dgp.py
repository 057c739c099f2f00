"""
Latent Growth Data Generating Process
=====================================

Generates observed panel scores from a linear latent growth curve model:

    eta_i ~ N(alpha, Phi)            latent intercept and slope
    e_i   ~ N(0, Theta)              occasion-specific residuals
    y_i   = Lambda eta_i + e_i       observed scores at T occasions

The generator holds no design logic. Everything condition-specific reaches it
through alpha and Phi, which `derive_generating_parameters` builds from a
DesignCondition and the fixed generating values:

    alpha = (alpha1, alpha2)
    Phi   = [[phi11,     phi22 / 2],
             [phi22 / 2, phi22    ]]

Functions:
- derive_generating_parameters: Condition + fixed values -> GeneratingParameters
- simulate_components: Draw latent scores and residuals
- generate_growth_data: Observed data set with columns y1..yT
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd

from growthsim.config_schema import FixedParameters
from growthsim.constants import SLOPE_COVARIANCE_RATIO
from growthsim.simulation.design import DesignCondition
from growthsim.simulation.sampler import MultivariateSampler, check_covariance


@dataclass(frozen=True)
class GeneratingParameters:
    """Population values for one design condition."""
    alpha: np.ndarray     # (2,) latent means
    phi: np.ndarray       # (2, 2) latent covariance
    loadings: np.ndarray  # (T, 2) Lambda
    theta: np.ndarray     # (T, T) residual covariance

    @property
    def n_occasions(self) -> int:
        return self.loadings.shape[0]

    def implied_moments(self) -> Tuple[np.ndarray, np.ndarray]:
        """Population mean vector and covariance of the observed scores."""
        mu = self.loadings @ self.alpha
        sigma = self.loadings @ self.phi @ self.loadings.T + self.theta
        return mu, sigma


def latent_covariance(phi11: float, phi22: float) -> np.ndarray:
    """Phi with the intercept-slope covariance tied to half the slope variance."""
    phi21 = SLOPE_COVARIANCE_RATIO * phi22
    return np.array([[phi11, phi21],
                     [phi21, phi22]])


def derive_generating_parameters(condition: DesignCondition,
                                 fixed: FixedParameters) -> GeneratingParameters:
    """Build the population values for a condition."""
    return GeneratingParameters(
        alpha=np.array([fixed.alpha1, condition.alpha2], dtype=float),
        phi=latent_covariance(fixed.phi11, condition.phi22),
        loadings=fixed.loadings,
        theta=fixed.theta,
    )


def check_generating_parameters(params: GeneratingParameters) -> None:
    """Raise InvalidCovariance if Phi or Theta cannot be sampled from."""
    check_covariance(params.alpha, params.phi)
    check_covariance(np.zeros(params.n_occasions), params.theta)


def observed_columns(n_occasions: int) -> List[str]:
    """Column labels y1..yT."""
    return [f'y{t}' for t in range(1, n_occasions + 1)]


def simulate_components(n: int,
                        alpha: np.ndarray,
                        phi: np.ndarray,
                        theta: np.ndarray,
                        sampler: MultivariateSampler) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draw latent factor scores and residuals.

    Latent scores are drawn first, residuals second; the order is part of the
    reproducibility contract.

    Returns:
        (eta, residuals) with shapes (n, 2) and (n, T)
    """
    eta = sampler.sample(n, alpha, phi)
    theta = np.asarray(theta, dtype=float)
    residuals = sampler.sample(n, np.zeros(theta.shape[0]), theta)
    return eta, residuals


def generate_growth_data(n: int,
                         alpha,
                         phi,
                         loadings,
                         theta,
                         sampler: MultivariateSampler) -> pd.DataFrame:
    """
    Generate one simulated data set.

    Args:
        n: Number of persons (rows)
        alpha: Latent means (2,)
        phi: Latent covariance (2, 2)
        loadings: Lambda (T, 2)
        theta: Residual covariance (T, T)
        sampler: Seeded sampler; its state advances by two draws

    Returns:
        DataFrame with n rows and columns y1..yT
    """
    if n < 1:
        raise ValueError(f"Sample size must be at least 1, got {n}")
    loadings = np.asarray(loadings, dtype=float)
    theta = np.asarray(theta, dtype=float)
    if theta.shape != (loadings.shape[0], loadings.shape[0]):
        raise ValueError(
            f"Theta shape {theta.shape} does not match {loadings.shape[0]} occasions"
        )

    eta, residuals = simulate_components(n, alpha, phi, theta, sampler)
    y = eta @ loadings.T + residuals

    return pd.DataFrame(y, columns=observed_columns(loadings.shape[0]))


def generate_condition_data(params: GeneratingParameters,
                            n: int,
                            sampler: MultivariateSampler) -> pd.DataFrame:
    """Generate a data set from derived GeneratingParameters."""
    return generate_growth_data(n, params.alpha, params.phi, params.loadings,
                                params.theta, sampler)
