"""
Monte Carlo Validation
======================

Replication driver, target extraction and summary statistics for the growth
curve simulation study.
"""

from .extraction import extract_parameter, validate_target_parameter
from .summary import (
    UNDEFINED,
    UndefinedStatistic,
    SummaryRecord,
    is_undefined,
    compute_coverage,
    compute_group_summary,
    records_to_frame,
    summarize,
    summary_table,
    write_summary,
)
from .monte_carlo import (
    ReplicationRecord,
    ConditionRun,
    StudyResult,
    MonteCarloStudy,
    replication_rng,
    run_condition,
    run_study,
)

__all__ = [
    'extract_parameter',
    'validate_target_parameter',
    'UNDEFINED',
    'UndefinedStatistic',
    'SummaryRecord',
    'is_undefined',
    'compute_coverage',
    'compute_group_summary',
    'records_to_frame',
    'summarize',
    'summary_table',
    'write_summary',
    'ReplicationRecord',
    'ConditionRun',
    'StudyResult',
    'MonteCarloStudy',
    'replication_rng',
    'run_condition',
    'run_study',
]
