"""
Growth Model Fitting
====================

Maximum likelihood estimation of linear latent growth curve models from the
sample mean vector and covariance matrix.

The fitting function minimized is the normal-theory ML discrepancy

    F(p) = log|Sigma(p)| + tr(Sigma(p)^-1 W),   W = S + (ybar - mu(p))(ybar - mu(p))'

where S is the ML (divide by N) sample covariance. The log-likelihood is
-N/2 (T log(2 pi) + F). Since mu and Sigma are linear in the parameters, the
gradient has a closed form:

    dF/dp_k = tr[(Sigma^-1 - Sigma^-1 W Sigma^-1) dSigma_k] - 2 (ybar - mu)' Sigma^-1 dmu_k

Standard errors come from the inverse expected information

    I_kl = N [dmu_k' Sigma^-1 dmu_l + 1/2 tr(Sigma^-1 dSigma_k Sigma^-1 dSigma_l)]

Any fitting backend can be plugged into the study by subclassing
FittingBackend.

Author: Growth Curve Simulation Team
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from scipy import optimize

from growthsim.constants import (
    OPTIMIZER_METHOD,
    OPTIMIZER_MAXITER,
    OPTIMIZER_GTOL,
    GRADIENT_TOLERANCE,
    INFEASIBLE_OBJECTIVE,
    MIN_START_VARIANCE,
)
from growthsim.exceptions import FitFailure, ParameterNotFound
from growthsim.models.specification import CompiledModel, GrowthModelSpec
from growthsim.simulation.dgp import observed_columns
from growthsim.utils.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# FIT RESULT
# =============================================================================

@dataclass
class FitResult:
    """Estimates and their covariance from one model fit."""
    model_label: str
    estimates: Dict[str, float]
    covariance: Dict[Tuple[str, str], float]
    log_likelihood: float = np.nan
    n_observations: int = 0
    n_iterations: int = 0
    converged: bool = True
    message: str = ""

    @property
    def parameter_names(self) -> List[str]:
        return list(self.estimates.keys())

    @property
    def n_parameters(self) -> int:
        return len(self.estimates)

    @property
    def aic(self) -> float:
        return 2 * self.n_parameters - 2 * self.log_likelihood

    @property
    def bic(self) -> float:
        return self.n_parameters * np.log(self.n_observations) - 2 * self.log_likelihood

    def estimate(self, name: str) -> float:
        """Point estimate of a free parameter."""
        try:
            return self.estimates[name]
        except KeyError:
            raise ParameterNotFound(name) from None

    def variance(self, name: str) -> float:
        """Sampling variance of a free parameter's estimate."""
        try:
            return self.covariance[(name, name)]
        except KeyError:
            raise ParameterNotFound(name) from None

    def std_error(self, name: str) -> float:
        """Standard error: square root of the diagonal covariance entry."""
        return float(np.sqrt(self.variance(name)))

    def vcov_frame(self) -> pd.DataFrame:
        """Estimate covariance as a labeled square DataFrame."""
        names = self.parameter_names
        return pd.DataFrame(
            [[self.covariance[(a, b)] for b in names] for a in names],
            index=names, columns=names
        )

    def to_frame(self) -> pd.DataFrame:
        """Parameter table with estimate, SE and z-value."""
        rows = []
        for name in self.parameter_names:
            est = self.estimates[name]
            se = self.std_error(name)
            rows.append({
                'parameter': name,
                'estimate': est,
                'se': se,
                'z': est / se if se > 0 else np.nan,
            })
        return pd.DataFrame(rows)


# =============================================================================
# BACKEND INTERFACE
# =============================================================================

class FittingBackend(ABC):
    """
    Interface consumed by the replication driver.

    Implementations return a FitResult or raise FitFailure; they must never
    return degenerate estimates silently.
    """

    @abstractmethod
    def fit(self, spec: GrowthModelSpec, data: pd.DataFrame) -> FitResult:
        ...


@dataclass
class FitterConfig:
    """Configuration for ML estimation."""
    method: str = OPTIMIZER_METHOD
    maxiter: int = OPTIMIZER_MAXITER
    gtol: float = OPTIMIZER_GTOL
    gradient_tolerance: float = GRADIENT_TOLERANCE
    options: Dict = field(default_factory=dict)


# =============================================================================
# MAXIMUM LIKELIHOOD BACKEND
# =============================================================================

class MLGrowthModelFitter(FittingBackend):
    """
    Normal-theory ML estimator for growth models.

    Example:
        >>> fitter = MLGrowthModelFitter()
        >>> result = fitter.fit(spec, data)
        >>> result.estimate('alpha2'), result.std_error('alpha2')
    """

    def __init__(self, config: FitterConfig = None):
        self.config = config or FitterConfig()

    # -------------------------------------------------------------------------
    # Sample moments
    # -------------------------------------------------------------------------

    @staticmethod
    def sample_moments(spec: GrowthModelSpec,
                       data: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray, int]:
        """Mean vector, ML covariance and N for the model's observed columns."""
        columns = observed_columns(spec.n_occasions)
        missing = [c for c in columns if c not in data.columns]
        if missing:
            raise ValueError(f"Data is missing columns {missing} for model '{spec.label}'")

        y = data[columns].to_numpy(dtype=float)
        if not np.all(np.isfinite(y)):
            raise ValueError("Data contains missing or non-finite values")

        n = y.shape[0]
        ybar = y.mean(axis=0)
        centered = y - ybar
        s = centered.T @ centered / n
        return ybar, s, n

    # -------------------------------------------------------------------------
    # Objective, gradient and information
    # -------------------------------------------------------------------------

    @staticmethod
    def discrepancy(params: np.ndarray,
                    model: CompiledModel,
                    ybar: np.ndarray,
                    s: np.ndarray) -> Tuple[float, np.ndarray]:
        """ML discrepancy F and its gradient."""
        mu, sigma = model.implied_moments(params)

        if not np.all(np.isfinite(sigma)):
            return INFEASIBLE_OBJECTIVE, np.zeros_like(params)
        try:
            chol = np.linalg.cholesky(sigma)
        except np.linalg.LinAlgError:
            return INFEASIBLE_OBJECTIVE, np.zeros_like(params)
        logdet = 2.0 * np.sum(np.log(np.diag(chol)))
        sigma_inv = np.linalg.inv(sigma)

        d = ybar - mu
        w = s + np.outer(d, d)
        value = logdet + np.sum(sigma_inv * w)

        a = sigma_inv - sigma_inv @ w @ sigma_inv
        grad = (np.einsum('ij,kji->k', a, model.dsigma)
                - 2.0 * model.dmu @ (sigma_inv @ d))
        return value, grad

    @staticmethod
    def expected_information(params: np.ndarray,
                             model: CompiledModel,
                             n: int) -> np.ndarray:
        """Expected Fisher information for the full sample."""
        _, sigma = model.implied_moments(params)
        sigma_inv = np.linalg.inv(sigma)
        m = np.einsum('ij,kjl->kil', sigma_inv, model.dsigma)

        info_mean = model.dmu @ sigma_inv @ model.dmu.T
        info_cov = 0.5 * np.einsum('kij,lji->kl', m, m)
        return n * (info_mean + info_cov)

    # -------------------------------------------------------------------------
    # Starting values
    # -------------------------------------------------------------------------

    @staticmethod
    def starting_values(model: CompiledModel,
                        ybar: np.ndarray,
                        s: np.ndarray) -> np.ndarray:
        """
        Least-squares starting values.

        Regresses the sample means and the lower triangle of S on the
        derivative arrays, then floors variances. If the implied covariance
        is not positive definite, covariances are reset to zero.
        """
        rows, cols = np.tril_indices(s.shape[0])
        design = np.vstack([model.dmu.T, model.dsigma[:, rows, cols].T])
        target = np.concatenate([ybar, s[rows, cols]])
        start, *_ = np.linalg.lstsq(design, target, rcond=None)

        kinds = np.array(model.kinds)
        is_variance = kinds == 'variance'
        start[is_variance] = np.maximum(start[is_variance], MIN_START_VARIANCE)

        _, sigma = model.implied_moments(start)
        if np.linalg.eigvalsh(sigma).min() <= 0:
            start[kinds == 'covariance'] = 0.0
        return start

    # -------------------------------------------------------------------------
    # Estimation
    # -------------------------------------------------------------------------

    def fit(self, spec: GrowthModelSpec, data: pd.DataFrame) -> FitResult:
        """
        Estimate a growth model.

        Args:
            spec: Model variant
            data: Observed scores with columns y1..yT

        Returns:
            FitResult for the free parameters

        Raises:
            FitFailure: If the optimizer does not converge, the solution is
                not admissible, or the information matrix is singular
        """
        ybar, s, n = self.sample_moments(spec, data)
        n_params = len(spec.free_parameters)
        if n < 2:
            raise FitFailure(f"Too few observations to fit (N={n})", spec.label)

        model = spec.compile()
        start = self.starting_values(model, ybar, s)

        options = {'maxiter': self.config.maxiter, 'gtol': self.config.gtol}
        options.update(self.config.options)

        with np.errstate(over='ignore', invalid='ignore'):
            result = optimize.minimize(
                self.discrepancy,
                start,
                args=(model, ybar, s),
                jac=True,
                method=self.config.method,
                options=options,
            )

        params = result.x
        if not np.all(np.isfinite(params)) or not np.isfinite(result.fun):
            raise FitFailure("Optimizer returned non-finite estimates", spec.label)
        if result.fun >= INFEASIBLE_OBJECTIVE:
            raise FitFailure("Implied covariance is not positive definite", spec.label)

        _, grad = self.discrepancy(params, model, ybar, s)
        max_grad = float(np.max(np.abs(grad)))
        converged = bool(result.success) or max_grad < self.config.gradient_tolerance
        if not converged:
            raise FitFailure(
                f"Optimizer did not converge: {result.message} "
                f"(max |gradient| = {max_grad:.2e})",
                spec.label
            )

        try:
            vcov = np.linalg.inv(self.expected_information(params, model, n))
        except np.linalg.LinAlgError as e:
            raise FitFailure(f"Information matrix is singular: {e}", spec.label) from e

        diag = np.diag(vcov)
        if not np.all(np.isfinite(diag)) or np.any(diag <= 0):
            raise FitFailure("Estimate covariance has non-positive variances", spec.label)

        names = model.names
        estimates = {name: float(params[i]) for i, name in enumerate(names)}
        covariance = {(a, b): float(vcov[i, j])
                      for i, a in enumerate(names)
                      for j, b in enumerate(names)}

        n_occ = spec.n_occasions
        log_likelihood = -0.5 * n * (n_occ * np.log(2 * np.pi) + result.fun)

        logger.debug(
            "Fitted %s: N=%d, k=%d, LL=%.3f, iterations=%d",
            spec.label, n, n_params, log_likelihood, result.nit
        )

        return FitResult(
            model_label=spec.label,
            estimates=estimates,
            covariance=covariance,
            log_likelihood=float(log_likelihood),
            n_observations=n,
            n_iterations=int(getattr(result, 'nit', 0)),
            converged=converged,
            message=str(result.message),
        )
