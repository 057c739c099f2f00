"""
Tests for Simulation Module
===========================

Tests for the multivariate sampler and the growth data generating process.
"""

import numpy as np
import pandas as pd
import pytest

from growthsim.exceptions import InvalidCovariance
from growthsim.simulation.design import DesignCondition
from growthsim.simulation.dgp import (
    derive_generating_parameters,
    check_generating_parameters,
    generate_growth_data,
    simulate_components,
)
from growthsim.simulation.sampler import MultivariateSampler, sample_mvn


COV_2D = np.array([[1.0, 0.25], [0.25, 0.5]])


@pytest.mark.unit
class TestMultivariateSampler:
    """Tests for seeded multivariate normal draws."""

    def test_shape(self):
        draws = MultivariateSampler(1).sample(25, [0.0, 1.0], COV_2D)
        assert draws.shape == (25, 2)

    def test_same_seed_same_draws(self):
        a = sample_mvn(100, [0.0, 1.0], COV_2D, seed=42)
        b = sample_mvn(100, [0.0, 1.0], COV_2D, seed=42)
        np.testing.assert_array_equal(a, b)

    def test_different_seed_different_draws(self):
        a = sample_mvn(100, [0.0, 1.0], COV_2D, seed=1)
        b = sample_mvn(100, [0.0, 1.0], COV_2D, seed=2)
        assert not np.allclose(a, b)

    def test_accepts_generator(self):
        rng = np.random.default_rng(5)
        sampler = MultivariateSampler(rng)
        assert sampler.rng is rng

    def test_singular_psd_covariance_allowed(self):
        """Zero slope variance is a valid (degenerate) distribution."""
        cov = np.array([[1.0, 0.0], [0.0, 0.0]])
        draws = MultivariateSampler(3).sample(50, [0.0, 2.0], cov)
        np.testing.assert_allclose(draws[:, 1], 2.0)

    def test_not_psd_raises(self):
        cov = np.array([[1.0, 2.0], [2.0, 1.0]])
        with pytest.raises(InvalidCovariance, match="positive semi-definite"):
            MultivariateSampler(1).sample(10, [0.0, 0.0], cov)

    def test_asymmetric_raises(self):
        cov = np.array([[1.0, 0.3], [0.1, 1.0]])
        with pytest.raises(InvalidCovariance, match="symmetric"):
            MultivariateSampler(1).sample(10, [0.0, 0.0], cov)

    def test_dimension_mismatch_raises(self):
        with pytest.raises(InvalidCovariance, match="does not match"):
            MultivariateSampler(1).sample(10, [0.0, 0.0, 0.0], COV_2D)

    def test_invalid_covariance_is_value_error(self):
        assert issubclass(InvalidCovariance, ValueError)


@pytest.mark.simulation
class TestGeneratingParameters:
    """Tests for deriving population values from a condition."""

    def test_latent_covariance_is_half_slope_variance(self, fixed_params):
        params = derive_generating_parameters(
            DesignCondition(id=1, N=50, phi22=0.5, alpha2=1.0), fixed_params
        )
        assert params.phi[0, 1] == pytest.approx(0.25)
        assert params.phi[1, 0] == pytest.approx(0.25)
        assert params.phi[1, 1] == pytest.approx(0.5)
        assert params.phi[0, 0] == pytest.approx(fixed_params.phi11)

    def test_means(self, fixed_params):
        params = derive_generating_parameters(
            DesignCondition(id=3, N=50, phi22=0.1, alpha2=0.5), fixed_params
        )
        np.testing.assert_allclose(params.alpha, [fixed_params.alpha1, 0.5])

    def test_fixed_parts_shared(self, fixed_params):
        a = derive_generating_parameters(DesignCondition(1, 50, 0.1, 1.0), fixed_params)
        b = derive_generating_parameters(DesignCondition(2, 200, 0.5, 0.5), fixed_params)
        np.testing.assert_array_equal(a.loadings, b.loadings)
        np.testing.assert_array_equal(a.theta, b.theta)
        assert a.loadings.shape == (5, 2)

    def test_invalid_latent_covariance_detected(self):
        from growthsim.config_schema import FixedParameters

        fixed = FixedParameters(phi11=0.01)
        params = derive_generating_parameters(DesignCondition(1, 50, 1.0, 1.0), fixed)
        with pytest.raises(InvalidCovariance):
            check_generating_parameters(params)


@pytest.mark.simulation
class TestGrowthDataGeneration:
    """Tests for the observed data generator."""

    @pytest.mark.parametrize("n", [1, 7, 50, 333])
    def test_shape(self, n, fixed_params):
        params = derive_generating_parameters(DesignCondition(1, n, 0.5, 1.0), fixed_params)
        df = generate_growth_data(n, params.alpha, params.phi, params.loadings,
                                  params.theta, MultivariateSampler(0))
        assert isinstance(df, pd.DataFrame)
        assert df.shape == (n, 5)
        assert list(df.columns) == ['y1', 'y2', 'y3', 'y4', 'y5']

    def test_columns_follow_loadings(self, fixed_params):
        loadings = np.column_stack([np.ones(3), [0.0, 1.0, 2.0]])
        df = generate_growth_data(10, [0.0, 1.0], np.eye(2), loadings,
                                  0.5 * np.eye(3), MultivariateSampler(0))
        assert list(df.columns) == ['y1', 'y2', 'y3']

    def test_reproducible(self, fixed_params):
        params = derive_generating_parameters(DesignCondition(1, 100, 0.5, 1.0), fixed_params)
        args = (100, params.alpha, params.phi, params.loadings, params.theta)
        df1 = generate_growth_data(*args, MultivariateSampler(99))
        df2 = generate_growth_data(*args, MultivariateSampler(99))
        pd.testing.assert_frame_equal(df1, df2)

    def test_theta_mismatch_raises(self, fixed_params):
        with pytest.raises(ValueError, match="Theta shape"):
            generate_growth_data(10, [0.0, 1.0], np.eye(2), fixed_params.loadings,
                                 np.eye(3), MultivariateSampler(0))

    def test_zero_rows_rejected(self, fixed_params):
        with pytest.raises(ValueError):
            generate_growth_data(0, [0.0, 1.0], np.eye(2), fixed_params.loadings,
                                 fixed_params.theta, MultivariateSampler(0))

    def test_observed_equals_loadings_times_latent_plus_residual(self, fixed_params):
        params = derive_generating_parameters(DesignCondition(1, 20, 0.5, 1.0), fixed_params)
        eta, resid = simulate_components(20, params.alpha, params.phi, params.theta,
                                         MultivariateSampler(11))
        df = generate_growth_data(20, params.alpha, params.phi, params.loadings,
                                  params.theta, MultivariateSampler(11))
        np.testing.assert_allclose(df.to_numpy(), eta @ params.loadings.T + resid)


@pytest.mark.simulation
@pytest.mark.slow
class TestMomentRecovery:
    """Large-sample moments match the generating values."""

    N = 100_000

    @pytest.fixture
    def components(self, fixed_params):
        params = derive_generating_parameters(DesignCondition(1, self.N, 0.5, 1.0), fixed_params)
        eta, resid = simulate_components(self.N, params.alpha, params.phi, params.theta,
                                         MultivariateSampler(2024))
        return params, eta, resid

    def test_latent_moments(self, components):
        params, eta, _ = components
        np.testing.assert_allclose(eta.mean(axis=0), params.alpha, atol=0.05)
        np.testing.assert_allclose(np.cov(eta, rowvar=False), params.phi, atol=0.05)

    def test_residual_moments(self, components):
        params, _, resid = components
        np.testing.assert_allclose(resid.mean(axis=0), np.zeros(5), atol=0.05)
        np.testing.assert_allclose(np.cov(resid, rowvar=False), params.theta, atol=0.05)

    def test_observed_moments_match_implied(self, components):
        params, eta, resid = components
        y = eta @ params.loadings.T + resid
        mu, sigma = params.implied_moments()
        np.testing.assert_allclose(y.mean(axis=0), mu, atol=0.05)
        np.testing.assert_allclose(np.cov(y, rowvar=False), sigma, rtol=0.05, atol=0.1)
