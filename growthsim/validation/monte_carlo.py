"""
Monte Carlo Study
=================

Framework for the growth curve simulation study: for every design condition,
generate data from the known growth model, fit the two competing model
variants to the same data, and record the target estimate and its SE.

Each replication draws from its own random stream, seeded by
(base seed, condition id, replication index), so results do not depend on
execution order or on the number of workers.

Key pieces:
- run_condition: replication loop for one condition
- MonteCarloStudy: design enumeration, fail-fast checks, sequential or
  parallel execution over conditions, and result collection
- StudyResult: records, failure counts, summaries and output files

Author: Growth Curve Simulation Team
"""

import json
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from growthsim.config_schema import FixedParameters, StudyConfig, is_valid_seed
from growthsim.constants import DEFAULT_SEED, TARGET_PARAMETER
from growthsim.exceptions import ConfigError, FitFailure
from growthsim.models.fitting import FittingBackend, MLGrowthModelFitter
from growthsim.models.specification import GrowthModelSpec, build_model_variants
from growthsim.simulation.design import DesignCondition, enumerate_design
from growthsim.simulation.dgp import (
    check_generating_parameters,
    derive_generating_parameters,
    generate_condition_data,
)
from growthsim.simulation.sampler import MultivariateSampler
from growthsim.utils.logging_config import StudyLogger, get_logger
from growthsim.validation.extraction import extract_parameter, validate_target_parameter
from growthsim.validation.summary import (
    SummaryRecord,
    records_to_frame,
    summarize,
    summary_table,
    write_summary,
)

logger = get_logger(__name__)


# =============================================================================
# RESULT CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class ReplicationRecord:
    """Target estimates from both models for one replication."""
    condition_id: int
    replication_index: int
    model1_estimate: float
    model1_se: float
    model2_estimate: float
    model2_se: float


@dataclass
class ConditionRun:
    """Retained records and fit failures for one condition."""
    condition_id: int
    records: List[ReplicationRecord] = field(default_factory=list)
    failures: List[FitFailure] = field(default_factory=list)

    @property
    def n_retained(self) -> int:
        return len(self.records)

    @property
    def n_failed(self) -> int:
        return len(self.failures)

    @property
    def failure_rate(self) -> float:
        total = self.n_retained + self.n_failed
        return self.n_failed / total if total else 0.0


def replication_rng(base_seed: int, condition_id: int, replication: int) -> np.random.Generator:
    """Independent generator for one (condition, replication) unit of work."""
    return np.random.default_rng(np.random.SeedSequence([base_seed, condition_id, replication]))


# =============================================================================
# REPLICATION DRIVER
# =============================================================================

def run_condition(condition: DesignCondition,
                  n_replications: int,
                  fixed: FixedParameters,
                  models: Sequence[GrowthModelSpec],
                  target: str = TARGET_PARAMETER,
                  fitter: Optional[FittingBackend] = None,
                  base_seed: int = DEFAULT_SEED) -> ConditionRun:
    """
    Run all replications of one condition.

    For each replication: generate a data set, fit both models to it, and
    extract the target estimate and SE from each fit. A FitFailure from
    either model drops the replication and is recorded; the loop continues.

    Args:
        condition: Design condition to simulate
        n_replications: Number of replications
        fixed: Generating values shared by all conditions
        models: The two model variants (model1, model2)
        target: Parameter to extract
        fitter: Fitting backend (default: MLGrowthModelFitter)
        base_seed: Study seed

    Returns:
        ConditionRun with retained records and failures
    """
    if len(models) != 2:
        raise ValueError(f"Expected two model variants, got {len(models)}")
    fitter = fitter or MLGrowthModelFitter()

    params = derive_generating_parameters(condition, fixed)
    run = ConditionRun(condition_id=condition.id)

    for rep in range(1, n_replications + 1):
        sampler = MultivariateSampler(replication_rng(base_seed, condition.id, rep))
        data = generate_condition_data(params, condition.N, sampler)

        try:
            fits = [fitter.fit(spec, data) for spec in models]
        except FitFailure as e:
            failure = e.with_context(condition.id, rep)
            logger.warning("Replication dropped: %s", failure)
            run.failures.append(failure)
            continue

        (est1, se1), (est2, se2) = (extract_parameter(f, target) for f in fits)
        run.records.append(ReplicationRecord(
            condition_id=condition.id,
            replication_index=rep,
            model1_estimate=est1,
            model1_se=se1,
            model2_estimate=est2,
            model2_se=se2,
        ))

    return run


# =============================================================================
# STUDY RESULT
# =============================================================================

@dataclass
class StudyResult:
    """Container for a finished Monte Carlo study."""
    config: StudyConfig
    conditions: List[DesignCondition]
    runs: List[ConditionRun]
    total_time: float = 0.0

    @property
    def records(self) -> List[ReplicationRecord]:
        """All retained records, in condition then replication order."""
        return [r for run in self.runs for r in run.records]

    @property
    def failure_counts(self) -> Dict[int, int]:
        return {run.condition_id: run.n_failed for run in self.runs}

    @property
    def flagged_conditions(self) -> List[int]:
        """Conditions whose failure rate exceeds the configured threshold."""
        return [run.condition_id for run in self.runs
                if run.failure_rate > self.config.max_failure_rate]

    def records_frame(self) -> pd.DataFrame:
        return records_to_frame(self.records)

    def summarize(self) -> List[SummaryRecord]:
        return summarize(self.records, self.conditions, self.config.model_labels)

    def summary_table(self) -> pd.DataFrame:
        return summary_table(self.summarize(), self.conditions,
                             self.failure_counts, self.config.max_failure_rate)

    def metadata(self) -> Dict:
        """Run metadata reported next to the summary table."""
        return {
            'config': self.config.to_dict(),
            'n_conditions': len(self.conditions),
            'n_records': len(self.records),
            'failure_counts': {str(k): v for k, v in self.failure_counts.items()},
            'flagged_conditions': self.flagged_conditions,
            'total_time_seconds': round(self.total_time, 3),
        }

    def save(self, output_dir) -> Dict[str, Path]:
        """Write summary.csv and study_metadata.json to `output_dir`."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        summary_path = write_summary(self.summary_table(), output_dir / 'summary.csv')
        metadata_path = output_dir / 'study_metadata.json'
        with open(metadata_path, 'w') as f:
            json.dump(self.metadata(), f, indent=2)

        logger.info("Saved summary to %s", summary_path)
        return {'summary': summary_path, 'metadata': metadata_path}


# =============================================================================
# STUDY
# =============================================================================

class MonteCarloStudy:
    """
    Monte Carlo simulation study over a factorial design.

    Runs, for every condition:
    1. Generate data from the known growth model
    2. Fit both model variants
    3. Record the target estimates and SEs

    Example:
        >>> study = MonteCarloStudy(StudyConfig(n_replications=100))
        >>> result = study.run()
        >>> result.summary_table()
    """

    def __init__(self,
                 config: Optional[StudyConfig] = None,
                 fitter: Optional[FittingBackend] = None,
                 verbose: bool = True):
        """
        Initialize Monte Carlo study.

        Args:
            config: Study settings (defaults from growthsim.constants)
            fitter: Fitting backend shared by all replications
            verbose: Log progress at INFO (otherwise DEBUG)
        """
        self.config = config or StudyConfig()
        self.fitter = fitter or MLGrowthModelFitter()
        self.verbose = verbose

    @property
    def models(self) -> List[GrowthModelSpec]:
        """The configured model variants, in model1/model2 order."""
        variants = build_model_variants(self.config.fixed.time_scores)
        unknown = [label for label in self.config.model_labels if label not in variants]
        if unknown:
            raise ConfigError(
                f"Unknown model variants {unknown}; available: {sorted(variants)}"
            )
        return [variants[label] for label in self.config.model_labels]

    def prepare(self) -> List[DesignCondition]:
        """
        Enumerate the design and run the fail-fast checks.

        Raises:
            ConfigError: Invalid seed or replication count, or unknown model
            EmptyDesign: No conditions
            ParameterNotFound: A model variant fixes the target parameter
            InvalidCovariance: A condition's latent covariance is not PSD
        """
        if not is_valid_seed(self.config.seed):
            raise ConfigError(
                f"Seed must be a non-negative integer, got {self.config.seed!r}"
            )
        n_rep = self.config.n_replications
        if isinstance(n_rep, bool) or not isinstance(n_rep, (int, np.integer)) or n_rep < 1:
            raise ConfigError(
                f"n_replications must be a positive integer, got {n_rep!r}"
            )

        conditions = enumerate_design(self.config.factor_levels)
        validate_target_parameter(self.models, self.config.target_parameter)
        for condition in conditions:
            check_generating_parameters(
                derive_generating_parameters(condition, self.config.fixed)
            )
        return conditions

    def _run_args(self, condition: DesignCondition,
                  models: List[GrowthModelSpec]) -> tuple:
        return (condition, self.config.n_replications, self.config.fixed,
                models, self.config.target_parameter, self.fitter,
                self.config.seed)

    def run(self) -> StudyResult:
        """
        Run the study.

        Returns:
            StudyResult with one ConditionRun per condition, in condition order
        """
        conditions = self.prepare()
        models = self.models
        study_log = StudyLogger(len(conditions), self.config.n_replications,
                                self.config.max_failure_rate, self.verbose)
        n_workers = self.config.n_workers
        study_log.start(n_workers)
        start_time = time.time()

        runs: List[ConditionRun] = []
        if n_workers > 1:
            # Parallel execution over conditions
            executor = ProcessPoolExecutor(max_workers=n_workers)
            try:
                futures = [executor.submit(run_condition, *self._run_args(c, models))
                           for c in conditions]
                for future in futures:
                    run = future.result()
                    runs.append(run)
                    study_log.condition_finished(run.condition_id, run.n_retained,
                                                 run.n_failed)
            except BaseException as e:
                executor.shutdown(wait=False, cancel_futures=True)
                study_log.failed(repr(e))
                raise
            executor.shutdown(wait=True)
        else:
            # Sequential execution
            try:
                for condition in conditions:
                    run = run_condition(*self._run_args(condition, models))
                    runs.append(run)
                    study_log.condition_finished(run.condition_id, run.n_retained,
                                                 run.n_failed)
            except BaseException as e:
                study_log.failed(repr(e))
                raise

        result = StudyResult(
            config=self.config,
            conditions=conditions,
            runs=runs,
            total_time=time.time() - start_time,
        )
        study_log.finished(len(result.records), sum(result.failure_counts.values()))
        return result


def run_study(config: Optional[StudyConfig] = None,
              fitter: Optional[FittingBackend] = None,
              output_dir=None,
              verbose: bool = True) -> StudyResult:
    """Run a study and optionally save its summary."""
    result = MonteCarloStudy(config, fitter, verbose).run()
    if output_dir is not None:
        result.save(output_dir)
    return result
