"""
Centralized Constants for the Growth Curve Simulation Study
============================================================

This module defines the fixed design values and numerical settings used across
the study. Import from here instead of hardcoding values in modules.

Usage:
    from growthsim.constants import DEFAULT_TIME_SCORES, TARGET_PARAMETER
    # or
    import growthsim.constants as C
    n_occasions = len(C.DEFAULT_TIME_SCORES)

Author: Growth Curve Simulation Team
"""

# =============================================================================
# FIXED GENERATING VALUES (shared by every design condition)
# =============================================================================

# Mean and variance of the latent intercept. Not manipulated by the design.
ALPHA1 = 1.0
PHI11 = 1.0

# Slope loadings: five equally spaced measurement occasions, first at zero so
# the intercept is the expected score at the first occasion.
DEFAULT_TIME_SCORES = (0.0, 1.0, 2.0, 3.0, 4.0)

# Residual variance of each observed score (diagonal of Theta)
DEFAULT_RESIDUAL_VARIANCE = 0.5

# Intercept-slope covariance is always half the slope variance
SLOPE_COVARIANCE_RATIO = 0.5


# =============================================================================
# DESIGN FACTORS
# =============================================================================

# Declaration order is the enumeration order (outer to inner)
DESIGN_FACTORS = ('N', 'phi22', 'alpha2')

DEFAULT_FACTOR_LEVELS = {
    'N': [50, 100, 200],        # Sample size
    'phi22': [0.1, 0.5],        # Slope variance
    'alpha2': [1.0, 0.5],       # Slope mean (true value of the target)
}


# =============================================================================
# MODEL VARIANTS AND TARGET
# =============================================================================

MODEL_CORRECT = 'correct'
MODEL_MISSPECIFIED = 'misspecified'

# Order matters: first label is "model1" in replication records
MODEL_LABELS = (MODEL_CORRECT, MODEL_MISSPECIFIED)

# Mean slope
TARGET_PARAMETER = 'alpha2'


# =============================================================================
# STUDY SETTINGS
# =============================================================================

DEFAULT_N_REPLICATIONS = 500
DEFAULT_SEED = 42

# Conditions losing more than this share of replications are flagged
MAX_FAILURE_RATE = 0.10

# Wald interval used for coverage
CONFIDENCE_LEVEL = 0.95


# =============================================================================
# OPTIMIZER SETTINGS
# =============================================================================

OPTIMIZER_METHOD = 'BFGS'
OPTIMIZER_MAXITER = 1000
OPTIMIZER_GTOL = 1e-6

# A fit whose optimizer reports failure is still accepted if the largest
# absolute gradient entry is below this value (BFGS precision-loss exits).
GRADIENT_TOLERANCE = 1e-4

# Objective value returned when the implied covariance is not positive definite
INFEASIBLE_OBJECTIVE = 1e10

# Lower bound for variance starting values
MIN_START_VARIANCE = 0.01
