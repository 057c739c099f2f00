"""
Tests for Monte Carlo Summary Statistics
========================================

Covers the per-group diagnostics, the UNDEFINED sentinel for degenerate
groups, aggregation by (condition, model) and the flat output table.
"""

import pickle

import numpy as np
import pandas as pd
import pytest

from growthsim.simulation.design import DesignCondition
from growthsim.validation.summary import (
    UNDEFINED,
    UndefinedStatistic,
    as_float,
    compute_coverage,
    compute_group_summary,
    is_undefined,
    records_to_long,
    summarize,
    summary_table,
    write_summary,
)


CONDITIONS = [DesignCondition(1, 50, 0.1, 1.0), DesignCondition(2, 50, 0.1, 0.5)]


# =============================================================================
# UNDEFINED sentinel
# =============================================================================

@pytest.mark.unit
class TestUndefined:

    def test_singleton(self):
        assert UndefinedStatistic() is UNDEFINED

    def test_survives_pickling(self):
        assert pickle.loads(pickle.dumps(UNDEFINED)) is UNDEFINED

    def test_distinct_from_zero(self):
        assert UNDEFINED != 0
        assert is_undefined(UNDEFINED)
        assert not is_undefined(0.0)
        assert not UNDEFINED

    def test_as_float(self):
        assert np.isnan(as_float(UNDEFINED))
        assert as_float(0.25) == 0.25


# =============================================================================
# Group summary
# =============================================================================

@pytest.mark.unit
class TestGroupSummary:

    def test_three_replications(self):
        s = compute_group_summary(1, 'correct', [0.9, 1.0, 1.1], [0.2, 0.2, 0.2], 1.0)
        assert s.n_replications == 3
        assert s.average_estimate == pytest.approx(1.0)
        assert s.empirical_sd == pytest.approx(0.1)
        assert s.average_se == pytest.approx(0.2)
        assert s.bias == pytest.approx(0.0, abs=1e-12)
        assert s.bias_mc_error == pytest.approx(0.1 / np.sqrt(3))
        assert s.standardized_bias == pytest.approx(0.0, abs=1e-10)
        assert s.relative_se_bias == pytest.approx(1.0)
        assert s.rmse == pytest.approx(np.sqrt(0.02 / 3))
        assert s.coverage == pytest.approx(1.0)

    def test_biased_estimates(self):
        s = compute_group_summary(1, 'misspecified', [1.2, 1.3, 1.4], [0.1, 0.1, 0.1], 1.0)
        assert s.bias == pytest.approx(0.3)
        assert s.standardized_bias == pytest.approx(3.0)
        assert s.relative_se_bias == pytest.approx(0.0, abs=1e-10)

    def test_single_replication(self):
        s = compute_group_summary(1, 'correct', [1.1], [0.2], 1.0)
        assert s.n_replications == 1
        assert s.average_estimate == pytest.approx(1.1)
        assert s.bias == pytest.approx(0.1)
        assert s.empirical_sd is UNDEFINED
        assert s.bias_mc_error is UNDEFINED
        assert s.standardized_bias is UNDEFINED
        assert s.relative_se_bias is UNDEFINED

    def test_zero_variance(self):
        s = compute_group_summary(1, 'correct', [0.8, 0.8, 0.8], [0.1, 0.1, 0.1], 1.0)
        assert s.empirical_sd == 0.0
        assert s.bias == pytest.approx(-0.2)
        assert s.standardized_bias is UNDEFINED
        assert s.relative_se_bias is UNDEFINED

    def test_empty_group(self):
        s = compute_group_summary(4, 'correct', [], [], 0.5)
        assert s.n_replications == 0
        assert s.true_value == 0.5
        assert s.average_estimate is UNDEFINED
        assert s.bias is UNDEFINED
        assert s.coverage is UNDEFINED

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            compute_group_summary(1, 'correct', [1.0, 1.1], [0.1], 1.0)


@pytest.mark.unit
class TestCoverage:

    def test_all_covered(self):
        est = np.array([0.9, 1.0, 1.1])
        assert compute_coverage(est, np.full(3, 0.2), 1.0) == 1.0

    def test_partial_coverage(self):
        est = np.array([1.0, 1.0, 2.0, 3.0])
        assert compute_coverage(est, np.full(4, 0.1), 1.0) == 0.5

    def test_interval_width_uses_normal_quantile(self):
        # 1.95 SE from the truth is inside a 95% interval, 1.97 SE is not
        assert compute_coverage(np.array([1.195]), np.array([0.1]), 1.0) == 1.0
        assert compute_coverage(np.array([1.197]), np.array([0.1]), 1.0) == 0.0


# =============================================================================
# Aggregation
# =============================================================================

@pytest.mark.unit
class TestSummarize:

    def test_one_row_per_condition_and_model(self, record_factory):
        records = (record_factory(1, [(0.9, 0.2), (1.0, 0.2), (1.1, 0.2)])
                   + record_factory(2, [(0.5, 0.1), (0.6, 0.1)]))
        summaries = summarize(records, CONDITIONS)
        keys = [(s.condition_id, s.model_label) for s in summaries]
        assert keys == [(1, 'correct'), (1, 'misspecified'),
                        (2, 'correct'), (2, 'misspecified')]

    def test_true_value_is_condition_alpha2(self, record_factory):
        summaries = summarize(record_factory(2, [(0.5, 0.1), (0.6, 0.1)]), CONDITIONS)
        assert [s.true_value for s in summaries] == [1.0, 1.0, 0.5, 0.5]

    def test_models_kept_apart(self, record_factory):
        records = record_factory(1, [(0.9, 0.2), (1.1, 0.2)], [(1.4, 0.1), (1.6, 0.1)])
        correct, misspecified = summarize(records, CONDITIONS)[:2]
        assert correct.bias == pytest.approx(0.0, abs=1e-12)
        assert misspecified.bias == pytest.approx(0.5)
        assert misspecified.average_se == pytest.approx(0.1)

    def test_condition_without_records(self, record_factory):
        summaries = summarize(record_factory(1, [(1.0, 0.1), (1.2, 0.1)]), CONDITIONS)
        assert summaries[2].n_replications == 0
        assert summaries[2].bias is UNDEFINED

    def test_unknown_condition(self, record_factory):
        with pytest.raises(ValueError, match="unknown conditions"):
            summarize(record_factory(9, [(1.0, 0.1)]), CONDITIONS)

    def test_records_to_long(self, record_factory):
        long = records_to_long(record_factory(1, [(0.9, 0.2), (1.1, 0.2)]))
        assert len(long) == 4
        assert list(long.columns) == ['condition_id', 'replication_index',
                                      'model_label', 'estimate', 'se']
        assert set(long['model_label']) == {'correct', 'misspecified'}


# =============================================================================
# Output table
# =============================================================================

@pytest.mark.unit
class TestSummaryTable:

    @pytest.fixture
    def table(self, record_factory):
        records = (record_factory(1, [(0.9, 0.2), (1.0, 0.2), (1.1, 0.2)])
                   + record_factory(2, [(0.5, 0.1)]))
        return summary_table(summarize(records, CONDITIONS), CONDITIONS,
                             failure_counts={1: 0, 2: 2}, max_failure_rate=0.1)

    def test_design_columns_joined(self, table):
        assert len(table) == 4
        assert table['N'].tolist() == [50, 50, 50, 50]
        assert table['alpha2'].tolist() == [1.0, 1.0, 0.5, 0.5]

    def test_undefined_becomes_nan(self, table):
        row = table[(table['condition_id'] == 2) & (table['model_label'] == 'correct')].iloc[0]
        assert np.isnan(row['empirical_sd'])
        assert np.isnan(row['standardized_bias'])
        assert row['bias'] == pytest.approx(0.0)

    def test_failure_columns(self, table):
        by_condition = table.groupby('condition_id').first()
        assert by_condition.loc[1, 'n_failed'] == 0
        assert not by_condition.loc[1, 'flagged']
        assert by_condition.loc[2, 'n_failed'] == 2
        assert by_condition.loc[2, 'failure_rate'] == pytest.approx(2 / 3)
        assert by_condition.loc[2, 'flagged']

    def test_write_summary(self, table, tmp_path):
        path = write_summary(table, tmp_path / 'out' / 'summary.csv')
        assert path.exists()
        loaded = pd.read_csv(path)
        assert list(loaded.columns) == list(table.columns)
        assert len(loaded) == 4
