"""
Study Configuration Schema
==========================

This module defines the configuration format for a growth curve simulation
study. It provides:
1. Dataclasses for the fixed generating values and the full study settings
2. Schema validation with errors and warnings
3. JSON loading with defaults applied

Configuration Structure:
------------------------
{
    "study": {
        "n_replications": int,     # Replications per condition
        "seed": int,               # Base seed for all random streams
        "n_workers": int,          # Parallel workers (1 = sequential)
        "max_failure_rate": float, # Flag conditions losing more than this
        "target_parameter": str,   # Coefficient to extract (e.g., "alpha2")
        "models": [str, str]       # Model variants, first is "model1"
    },
    "design": {                    # Factor levels, enumerated in this order
        "N": [int, ...],
        "phi22": [float, ...],
        "alpha2": [float, ...]
    },
    "fixed": {                     # Shared by every condition
        "alpha1": float,           # Intercept mean
        "phi11": float,            # Intercept variance
        "time_scores": [float],    # Slope loadings, one per occasion
        "residual_variances": [float]  # Diagonal of Theta, one per occasion
    }
}

Every key is optional; missing keys take the values in growthsim.constants.
"""

import json
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from growthsim.constants import (
    ALPHA1,
    PHI11,
    DEFAULT_TIME_SCORES,
    DEFAULT_RESIDUAL_VARIANCE,
    DEFAULT_FACTOR_LEVELS,
    DESIGN_FACTORS,
    DEFAULT_N_REPLICATIONS,
    DEFAULT_SEED,
    MAX_FAILURE_RATE,
    MODEL_LABELS,
    TARGET_PARAMETER,
)
from growthsim.exceptions import ConfigError


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================

@dataclass(frozen=True)
class FixedParameters:
    """Generating values shared across all design conditions."""
    alpha1: float = ALPHA1
    phi11: float = PHI11
    time_scores: Tuple[float, ...] = DEFAULT_TIME_SCORES
    residual_variances: Tuple[float, ...] = (DEFAULT_RESIDUAL_VARIANCE,) * len(DEFAULT_TIME_SCORES)

    def __post_init__(self):
        object.__setattr__(self, 'time_scores',
                           tuple(float(t) for t in self.time_scores))
        object.__setattr__(self, 'residual_variances',
                           tuple(float(v) for v in self.residual_variances))

    @property
    def n_occasions(self) -> int:
        return len(self.time_scores)

    @property
    def loadings(self) -> np.ndarray:
        """Lambda (T x 2): intercept column of ones, slope column of time scores."""
        return np.column_stack([np.ones(self.n_occasions),
                                np.asarray(self.time_scores, dtype=float)])

    @property
    def theta(self) -> np.ndarray:
        """Residual covariance Theta (T x T, diagonal)."""
        return np.diag(np.asarray(self.residual_variances, dtype=float))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'FixedParameters':
        time_scores = tuple(d.get('time_scores', DEFAULT_TIME_SCORES))
        residual_variances = d.get('residual_variances')
        if residual_variances is None:
            residual_variances = (DEFAULT_RESIDUAL_VARIANCE,) * len(time_scores)
        elif np.isscalar(residual_variances):
            residual_variances = (residual_variances,) * len(time_scores)
        return cls(
            alpha1=float(d.get('alpha1', ALPHA1)),
            phi11=float(d.get('phi11', PHI11)),
            time_scores=time_scores,
            residual_variances=tuple(residual_variances),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'alpha1': self.alpha1,
            'phi11': self.phi11,
            'time_scores': list(self.time_scores),
            'residual_variances': list(self.residual_variances),
        }


@dataclass
class StudyConfig:
    """Complete settings for one simulation study."""
    factor_levels: Dict[str, List[Any]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_FACTOR_LEVELS.items()}
    )
    n_replications: int = DEFAULT_N_REPLICATIONS
    seed: int = DEFAULT_SEED
    fixed: FixedParameters = field(default_factory=FixedParameters)
    target_parameter: str = TARGET_PARAMETER
    model_labels: Tuple[str, str] = MODEL_LABELS
    n_workers: int = 1
    max_failure_rate: float = MAX_FAILURE_RATE

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'StudyConfig':
        """Build a StudyConfig from the JSON structure, applying defaults."""
        study = config.get('study', {})
        design = config.get('design')
        if design is None:
            design = {k: list(v) for k, v in DEFAULT_FACTOR_LEVELS.items()}
        return cls(
            factor_levels={k: list(v) for k, v in design.items()},
            n_replications=int(study.get('n_replications', DEFAULT_N_REPLICATIONS)),
            seed=int(study.get('seed', DEFAULT_SEED)),
            fixed=FixedParameters.from_dict(config.get('fixed', {})),
            target_parameter=study.get('target_parameter', TARGET_PARAMETER),
            model_labels=tuple(study.get('models', MODEL_LABELS)),
            n_workers=int(study.get('n_workers', 1)),
            max_failure_rate=float(study.get('max_failure_rate', MAX_FAILURE_RATE)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'study': {
                'n_replications': self.n_replications,
                'seed': self.seed,
                'n_workers': self.n_workers,
                'max_failure_rate': self.max_failure_rate,
                'target_parameter': self.target_parameter,
                'models': list(self.model_labels),
            },
            'design': {k: list(v) for k, v in self.factor_levels.items()},
            'fixed': self.fixed.to_dict(),
        }


# =============================================================================
# SCHEMA VALIDATION
# =============================================================================

@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def is_valid_seed(seed) -> bool:
    """Seeds feed numpy's SeedSequence, which only takes non-negative integers."""
    return isinstance(seed, (int, np.integer)) and not isinstance(seed, bool) and seed >= 0


def _is_positive_sequence(values: Sequence) -> bool:
    try:
        return all(float(v) > 0 for v in values)
    except (TypeError, ValueError):
        return False


def validate_config(config: Dict) -> ValidationResult:
    """
    Validate a raw configuration dictionary against the schema.

    Args:
        config: Configuration dictionary (JSON structure)

    Returns:
        ValidationResult with validity status and any errors/warnings
    """
    errors = []
    warnings_list = []

    unknown = set(config) - {'study', 'design', 'fixed'}
    if unknown:
        warnings_list.append(f"Ignoring unknown sections: {sorted(unknown)}")

    # Study settings
    study = config.get('study', {})
    n_rep = study.get('n_replications', DEFAULT_N_REPLICATIONS)
    if not isinstance(n_rep, int) or n_rep < 1:
        errors.append(f"study.n_replications must be a positive integer, got {n_rep!r}")
    elif n_rep < 100:
        warnings_list.append(
            f"study.n_replications={n_rep} gives imprecise Monte Carlo estimates"
        )
    if 'seed' not in study:
        warnings_list.append(f"study.seed not specified, using default {DEFAULT_SEED}")
    elif not is_valid_seed(study['seed']):
        errors.append(f"study.seed must be a non-negative integer, got {study['seed']!r}")
    n_workers = study.get('n_workers', 1)
    if not isinstance(n_workers, int) or n_workers < 1:
        errors.append(f"study.n_workers must be a positive integer, got {n_workers!r}")
    rate = study.get('max_failure_rate', MAX_FAILURE_RATE)
    if not isinstance(rate, (int, float)) or not 0 <= rate <= 1:
        errors.append(f"study.max_failure_rate must be in [0, 1], got {rate!r}")
    models = study.get('models', MODEL_LABELS)
    if len(models) != 2 or len(set(models)) != 2:
        errors.append(f"study.models must name two distinct model variants, got {models!r}")

    # Design factors
    design = config.get('design')
    if design is None:
        warnings_list.append("design not specified, using default factor levels")
    else:
        missing = [f for f in DESIGN_FACTORS if f not in design]
        if missing:
            errors.append(f"design is missing factors: {missing}")
        extra = [f for f in design if f not in DESIGN_FACTORS]
        if extra:
            errors.append(f"design has unknown factors: {extra}")
        for name, levels in design.items():
            if not isinstance(levels, list) or len(levels) == 0:
                errors.append(f"design.{name} must be a non-empty list")
            elif len(set(levels)) != len(levels):
                errors.append(f"design.{name} has duplicate levels")
        if isinstance(design.get('N'), list):
            if not all(isinstance(n, int) and n >= 2 for n in design['N']):
                errors.append("design.N levels must be integers >= 2")
        if isinstance(design.get('phi22'), list):
            if not all(isinstance(v, (int, float)) and v >= 0 for v in design['phi22']):
                errors.append("design.phi22 levels must be non-negative")

    # Fixed generating values
    fixed = config.get('fixed', {})
    time_scores = fixed.get('time_scores', DEFAULT_TIME_SCORES)
    if len(time_scores) < 3:
        errors.append("fixed.time_scores needs at least 3 occasions to identify the model")
    residual = fixed.get('residual_variances')
    if residual is not None and not np.isscalar(residual):
        if len(residual) != len(time_scores):
            errors.append("fixed.residual_variances count must match time_scores count")
        elif not _is_positive_sequence(residual):
            errors.append("fixed.residual_variances must be positive")
    phi11 = fixed.get('phi11', PHI11)
    if not isinstance(phi11, (int, float)) or phi11 <= 0:
        errors.append(f"fixed.phi11 must be positive, got {phi11!r}")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings_list
    )


# =============================================================================
# CONFIG LOADING
# =============================================================================

def load_study_config(config_path, overrides: Optional[Dict[str, Any]] = None) -> StudyConfig:
    """
    Load and validate a study configuration from a JSON file.

    Args:
        config_path: Path to the JSON configuration
        overrides: Optional values merged into the "study" section before
            validation (e.g., from command-line flags)

    Returns:
        Validated StudyConfig

    Raises:
        ConfigError: If the file is missing or the configuration is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

    if overrides:
        config.setdefault('study', {}).update(
            {k: v for k, v in overrides.items() if v is not None}
        )

    return config_from_dict(config)


def config_from_dict(config: Dict[str, Any]) -> StudyConfig:
    """Validate a configuration dictionary and build a StudyConfig."""
    result = validate_config(config)

    for w in result.warnings:
        warnings.warn(w, UserWarning)

    if not result.is_valid:
        raise ConfigError("Invalid configuration:\n" + "\n".join(result.errors))

    return StudyConfig.from_dict(config)
