"""
Monte Carlo Summary Statistics
==============================

Aggregates replication records into bias and efficiency diagnostics per
(condition, model).

Key metrics, for n retained replications and true value theta:
- Bias: mean(theta_hat) - theta
- Monte Carlo SE of the bias: sd(theta_hat) / sqrt(n)
- Standardized bias: bias / sd(theta_hat)
- Relative SE bias: (mean(SE) - sd(theta_hat)) / sd(theta_hat)
- RMSE: sqrt(mean((theta_hat - theta)^2))
- Coverage: P(theta in theta_hat +/- z SE)

Statistics that need a positive empirical SD are reported as UNDEFINED when
the SD is zero or cannot be computed (n <= 1). UNDEFINED is distinct from a
numeric zero; it becomes NaN only in the flat output table.
"""

from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from growthsim.constants import CONFIDENCE_LEVEL, MAX_FAILURE_RATE, MODEL_LABELS
from growthsim.simulation.design import DesignCondition, conditions_by_id, design_to_frame


# =============================================================================
# UNDEFINED SENTINEL
# =============================================================================

class UndefinedStatistic:
    """Marker for a statistic that is undefined for the data at hand."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNDEFINED'

    def __bool__(self) -> bool:
        return False

    def __float__(self) -> float:
        return float('nan')

    def __reduce__(self):
        return (UndefinedStatistic, ())


UNDEFINED = UndefinedStatistic()

Statistic = Union[float, UndefinedStatistic]


def is_undefined(value) -> bool:
    return value is UNDEFINED


def as_float(value: Statistic) -> float:
    """Numeric view of a statistic: UNDEFINED becomes NaN."""
    return float('nan') if value is UNDEFINED else float(value)


# =============================================================================
# SUMMARY RECORD
# =============================================================================

@dataclass(frozen=True)
class SummaryRecord:
    """Diagnostics for one (condition, model) group."""
    condition_id: int
    model_label: str
    n_replications: int
    true_value: float
    average_estimate: Statistic
    empirical_sd: Statistic
    average_se: Statistic
    bias: Statistic
    bias_mc_error: Statistic
    standardized_bias: Statistic
    relative_se_bias: Statistic
    rmse: Statistic
    coverage: Statistic


SUMMARY_FIELDS = [f.name for f in fields(SummaryRecord)]


def compute_coverage(estimates: np.ndarray,
                     std_errors: np.ndarray,
                     true_value: float,
                     confidence: float = CONFIDENCE_LEVEL) -> float:
    """
    Share of Wald intervals that contain the true value.

    Coverage = P(theta in [theta_hat - z*SE, theta_hat + z*SE])
    """
    z = stats.norm.ppf((1 + confidence) / 2)
    lower = estimates - z * std_errors
    upper = estimates + z * std_errors
    covered = (lower <= true_value) & (true_value <= upper)
    return float(covered.mean())


def compute_group_summary(condition_id: int,
                          model_label: str,
                          estimates: Sequence[float],
                          std_errors: Sequence[float],
                          true_value: float,
                          confidence: float = CONFIDENCE_LEVEL) -> SummaryRecord:
    """
    Summarize the replications of one (condition, model) group.

    Args:
        condition_id: Condition the replications belong to
        model_label: Model variant the estimates come from
        estimates: Point estimates, one per retained replication
        std_errors: Standard errors aligned with `estimates`
        true_value: Generating value of the target parameter
        confidence: Confidence level for coverage

    Returns:
        SummaryRecord; statistics needing a positive SD are UNDEFINED when
        the SD is zero or n <= 1, and all statistics are UNDEFINED when n = 0
    """
    est = np.asarray(estimates, dtype=float)
    se = np.asarray(std_errors, dtype=float)
    if est.shape != se.shape:
        raise ValueError("estimates and std_errors must have the same length")
    n = est.size

    if n == 0:
        return SummaryRecord(
            condition_id, model_label, 0, true_value,
            *([UNDEFINED] * 9)
        )

    average_estimate = float(est.mean())
    average_se = float(se.mean())
    bias = average_estimate - true_value
    rmse = float(np.sqrt(np.mean((est - true_value) ** 2)))
    coverage = compute_coverage(est, se, true_value, confidence)

    if n == 1:
        empirical_sd = bias_mc_error = UNDEFINED
        standardized_bias = relative_se_bias = UNDEFINED
    else:
        # identical estimates have SD exactly zero, not rounding noise from the mean
        empirical_sd = 0.0 if np.ptp(est) == 0 else float(est.std(ddof=1))
        bias_mc_error = empirical_sd / np.sqrt(n)
        if empirical_sd > 0:
            standardized_bias = bias / empirical_sd
            relative_se_bias = (average_se - empirical_sd) / empirical_sd
        else:
            standardized_bias = relative_se_bias = UNDEFINED

    return SummaryRecord(
        condition_id=condition_id,
        model_label=model_label,
        n_replications=n,
        true_value=true_value,
        average_estimate=average_estimate,
        empirical_sd=empirical_sd,
        average_se=average_se,
        bias=bias,
        bias_mc_error=bias_mc_error,
        standardized_bias=standardized_bias,
        relative_se_bias=relative_se_bias,
        rmse=rmse,
        coverage=coverage,
    )


# =============================================================================
# AGGREGATION
# =============================================================================

def records_to_frame(records: Sequence) -> pd.DataFrame:
    """Replication records as a wide DataFrame (one row per replication)."""
    columns = ['condition_id', 'replication_index',
               'model1_estimate', 'model1_se', 'model2_estimate', 'model2_se']
    return pd.DataFrame([asdict(r) for r in records], columns=columns)


def records_to_long(records: Sequence,
                    model_labels: Sequence[str] = MODEL_LABELS) -> pd.DataFrame:
    """One row per (replication, model) with columns estimate and se."""
    wide = records_to_frame(records)
    parts = []
    for i, label in enumerate(model_labels, start=1):
        part = wide[['condition_id', 'replication_index',
                     f'model{i}_estimate', f'model{i}_se']].copy()
        part.columns = ['condition_id', 'replication_index', 'estimate', 'se']
        part.insert(2, 'model_label', label)
        parts.append(part)
    return pd.concat(parts, ignore_index=True)


def summarize(records: Sequence,
              conditions: Sequence[DesignCondition],
              model_labels: Sequence[str] = MODEL_LABELS,
              confidence: float = CONFIDENCE_LEVEL) -> List[SummaryRecord]:
    """
    Summarize replication records by (condition, model).

    The true value for each condition is its alpha2. Every condition gets a
    row per model, including conditions whose replications all failed.

    Args:
        records: ReplicationRecords from all conditions
        conditions: The study design
        model_labels: Labels for model1 and model2, in that order
        confidence: Confidence level for coverage

    Returns:
        Summaries ordered by condition, then model
    """
    if len(model_labels) != 2:
        raise ValueError(f"Expected two model labels, got {list(model_labels)}")

    by_id = conditions_by_id(conditions)
    long = records_to_long(records, model_labels)

    unknown = set(long['condition_id']) - set(by_id)
    if unknown:
        raise ValueError(f"Records reference unknown conditions: {sorted(unknown)}")

    groups = {key: g for key, g in long.groupby(['condition_id', 'model_label'], sort=False)}

    summaries = []
    for condition in conditions:
        for label in model_labels:
            group = groups.get((condition.id, label))
            if group is None:
                est, se = np.array([]), np.array([])
            else:
                group = group.sort_values('replication_index')
                est, se = group['estimate'].to_numpy(), group['se'].to_numpy()
            summaries.append(compute_group_summary(
                condition.id, label, est, se, condition.alpha2, confidence
            ))

    return summaries


# =============================================================================
# OUTPUT TABLE
# =============================================================================

def summary_table(summaries: Sequence[SummaryRecord],
                  conditions: Sequence[DesignCondition],
                  failure_counts: Optional[Mapping[int, int]] = None,
                  max_failure_rate: float = MAX_FAILURE_RATE) -> pd.DataFrame:
    """
    Flat summary keyed by (condition_id, model_label).

    Joins the design factors back in by condition_id and adds the failure
    count, failure rate and a flag for conditions above `max_failure_rate`.
    UNDEFINED statistics become NaN.
    """
    rows = [{k: (as_float(v) if isinstance(v, UndefinedStatistic) else v)
             for k, v in asdict(s).items()}
            for s in summaries]
    table = pd.DataFrame(rows, columns=SUMMARY_FIELDS)

    design = design_to_frame(conditions)
    table = table.merge(design, on='condition_id', how='left')

    failures = dict(failure_counts or {})
    table['n_failed'] = table['condition_id'].map(lambda cid: int(failures.get(cid, 0)))
    attempted = table['n_replications'] + table['n_failed']
    table['failure_rate'] = table['n_failed'] / attempted.replace(0, np.nan)
    table['flagged'] = table['failure_rate'] > max_failure_rate

    columns = ['condition_id', 'N', 'phi22', 'alpha2', 'model_label',
               'n_replications', 'n_failed', 'failure_rate', 'flagged',
               'true_value', 'average_estimate', 'empirical_sd', 'average_se',
               'bias', 'bias_mc_error', 'standardized_bias', 'relative_se_bias',
               'rmse', 'coverage']
    return table[columns]


def write_summary(table: pd.DataFrame, path) -> Path:
    """Write the summary table as CSV and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, index=False)
    return path
