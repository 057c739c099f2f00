"""
Multivariate Normal Sampler
===========================

Thin wrapper around `numpy.random.Generator.multivariate_normal` that validates
distributional parameters before drawing and reports problems as
InvalidCovariance.
"""

from typing import Optional, Union

import numpy as np

from growthsim.exceptions import InvalidCovariance


SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator]


def check_covariance(mean: np.ndarray, cov: np.ndarray) -> None:
    """
    Validate a mean vector and covariance matrix.

    Raises:
        InvalidCovariance: on dimension mismatch, asymmetry, non-finite
            entries, or a negative eigenvalue beyond rounding error.
    """
    if mean.ndim != 1:
        raise InvalidCovariance(f"Mean must be a vector, got shape {mean.shape}")
    k = mean.shape[0]
    if cov.shape != (k, k):
        raise InvalidCovariance(
            f"Covariance shape {cov.shape} does not match mean length {k}"
        )
    if not np.all(np.isfinite(cov)):
        raise InvalidCovariance("Covariance contains non-finite entries")
    if not np.allclose(cov, cov.T):
        raise InvalidCovariance("Covariance is not symmetric")

    eigenvalues = np.linalg.eigvalsh(cov)
    tol = 1e-10 * max(1.0, np.max(np.abs(eigenvalues)))
    if eigenvalues.min() < -tol:
        raise InvalidCovariance(
            f"Covariance is not positive semi-definite "
            f"(smallest eigenvalue {eigenvalues.min():.3g})"
        )


class MultivariateSampler:
    """
    Draws rows from Normal(mean, cov) with a seeded generator.

    Given the same seed and the same sequence of calls, output is identical.

    Example:
        >>> sampler = MultivariateSampler(seed=42)
        >>> draws = sampler.sample(100, [0.0, 1.0], [[1.0, 0.5], [0.5, 1.0]])
        >>> draws.shape
        (100, 2)
    """

    def __init__(self, seed: SeedLike = None):
        if isinstance(seed, np.random.Generator):
            self.rng = seed
        else:
            self.rng = np.random.default_rng(seed)

    def sample(self, n: int, mean, cov) -> np.ndarray:
        """
        Draw `n` independent rows.

        Args:
            n: Number of draws
            mean: Mean vector of length k
            cov: k x k covariance matrix

        Returns:
            Array of shape (n, k)
        """
        mean = np.asarray(mean, dtype=float)
        cov = np.asarray(cov, dtype=float)
        if n < 0:
            raise ValueError(f"Number of draws must be non-negative, got {n}")
        check_covariance(mean, cov)

        try:
            return self.rng.multivariate_normal(mean, cov, size=n,
                                                check_valid='raise')
        except (ValueError, np.linalg.LinAlgError) as e:
            raise InvalidCovariance(f"Covariance decomposition failed: {e}") from e


def sample_mvn(n: int, mean, cov, seed: Optional[int] = None) -> np.ndarray:
    """One-shot convenience wrapper around MultivariateSampler."""
    return MultivariateSampler(seed).sample(n, mean, cov)
