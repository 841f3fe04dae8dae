import pytest
import pandas as pd
import numpy as np
import os

# Add project root to path for testing
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from data_processing.processors.lag_join import LagJoinEngine, join_lagged_covariate, lag_column_name
from utils.data.validation import get_quality_warnings
from utils.exceptions import MalformedInputError, MissingColumnsError


@pytest.fixture
def covariate():
    return pd.DataFrame({'year': [2000, 2001], 'min_pool_af': [100.0, 200.0]})


@pytest.fixture
def primary():
    return pd.DataFrame({'year': [2001, 2002], 'total_redds': [50.0, 60.0]})


@pytest.fixture
def lag_config():
    return {
        'min_pool_af': {'lags': [0, 1, 2, 3]},
        'swe_apr': {'lags': [0, 1], 'column_names': {0: 'swe_apr_same_year', 1: 'swe_apr_lag1'}},
    }


@pytest.fixture
def covariates(covariate):
    return {
        'min_pool_af': covariate,
        'swe_apr': pd.DataFrame({'year': [2000, 2001, 2002], 'swe_apr': [30.0, 10.0, 20.0]}),
    }


class TestLagColumnName:

    def test_default_names(self):
        assert lag_column_name('min_pool_af', 0) == 'min_pool_af'
        assert lag_column_name('min_pool_af', 2) == 'lag2_min_pool_af'

    def test_explicit_names(self):
        names = {0: 'swe_apr_same_year', '1': 'swe_apr_lag1'}
        assert lag_column_name('swe_apr', 0, names) == 'swe_apr_same_year'
        assert lag_column_name('swe_apr', 1, names) == 'swe_apr_lag1'
        assert lag_column_name('swe_apr', 2, names) == 'lag2_swe_apr'


class TestJoinLaggedCovariate:

    def test_lag_resolves_to_shifted_year(self, covariate):
        primary = pd.DataFrame({'year': [2002]})
        joined = join_lagged_covariate(primary, covariate, 'min_pool_af', [1, 2, 3])

        assert joined.loc[0, 'lag1_min_pool_af'] == 200.0
        assert joined.loc[0, 'lag2_min_pool_af'] == 100.0
        assert np.isnan(joined.loc[0, 'lag3_min_pool_af'])

    def test_value_matches_covariate_at_year_minus_lag(self, covariate):
        primary = pd.DataFrame({'year': list(range(1998, 2006))})
        lookup = dict(zip(covariate['year'], covariate['min_pool_af']))
        joined = join_lagged_covariate(primary, covariate, 'min_pool_af', [0, 1, 2, 3])

        for lag in [0, 1, 2, 3]:
            column = lag_column_name('min_pool_af', lag)
            for year, value in zip(joined['year'], joined[column]):
                expected = lookup.get(year - lag)
                if expected is None:
                    assert np.isnan(value)
                else:
                    assert value == expected

    def test_left_join_keeps_primary_rows(self, primary, covariate):
        joined = join_lagged_covariate(primary, covariate, 'min_pool_af', [3])

        assert len(joined) == len(primary)
        assert joined['year'].tolist() == primary['year'].tolist()
        assert joined['total_redds'].tolist() == primary['total_redds'].tolist()

    def test_missing_lag_recorded(self, primary, covariate):
        joined = join_lagged_covariate(primary, covariate, 'min_pool_af', [1, 2])

        records = get_quality_warnings(joined, 'missing_lagged_covariate')
        assert [record['column'] for record in records] == ['lag2_min_pool_af']
        assert records[0]['years'] == [2001]

    def test_idempotent(self, primary, covariate):
        once = join_lagged_covariate(primary, covariate, 'min_pool_af', [1])
        twice = join_lagged_covariate(once, covariate, 'min_pool_af', [1])

        assert list(twice.columns) == list(once.columns)
        pd.testing.assert_series_equal(twice['lag1_min_pool_af'], once['lag1_min_pool_af'])

    def test_inputs_unchanged(self, primary, covariate):
        primary_before = primary.copy()
        covariate_before = covariate.copy()
        join_lagged_covariate(primary, covariate, 'min_pool_af', [0, 1])

        pd.testing.assert_frame_equal(primary, primary_before)
        pd.testing.assert_frame_equal(covariate, covariate_before)

    def test_invalid_lags(self, primary, covariate):
        with pytest.raises(ValueError):
            join_lagged_covariate(primary, covariate, 'min_pool_af', [-1])
        with pytest.raises(ValueError):
            join_lagged_covariate(primary, covariate, 'min_pool_af', [1.5])

    def test_duplicate_covariate_year(self, primary):
        covariate = pd.DataFrame({'year': [2000, 2000], 'min_pool_af': [1.0, 2.0]})
        with pytest.raises(MalformedInputError):
            join_lagged_covariate(primary, covariate, 'min_pool_af', [1])

    def test_missing_value_column(self, primary, covariate):
        with pytest.raises(MissingColumnsError):
            join_lagged_covariate(primary, covariate, 'swe_apr', [0])


class TestLagJoinEngine:

    def test_output_columns(self, lag_config):
        engine = LagJoinEngine({'analysis': {'lags': lag_config}})
        assert engine.output_columns() == [
            'min_pool_af', 'lag1_min_pool_af', 'lag2_min_pool_af', 'lag3_min_pool_af',
            'swe_apr_same_year', 'swe_apr_lag1',
        ]

    def test_join_all_covariates(self, primary, covariates, lag_config):
        engine = LagJoinEngine({'analysis': {'lags': lag_config}})
        joined = engine.join(primary, covariates)

        assert list(joined.columns) == ['year', 'total_redds'] + engine.output_columns()
        row = joined[joined['year'] == 2002].iloc[0]
        assert np.isnan(row['min_pool_af'])
        assert row['lag1_min_pool_af'] == 200.0
        assert row['lag2_min_pool_af'] == 100.0
        assert row['swe_apr_same_year'] == 20.0
        assert row['swe_apr_lag1'] == 10.0

    def test_rejoin_is_idempotent(self, primary, covariates, lag_config):
        engine = LagJoinEngine({'analysis': {'lags': lag_config}})
        once = engine.join(primary, covariates)
        twice = engine.join(once, covariates)

        pd.testing.assert_frame_equal(once, twice)

    def test_order_independent(self, primary, covariates, lag_config):
        engine = LagJoinEngine({})
        forward = engine.join(primary, covariates, lag_config=lag_config)
        reversed_config = dict(reversed(list(lag_config.items())))
        backward = engine.join(primary, covariates, lag_config=reversed_config)

        pd.testing.assert_frame_equal(forward, backward[forward.columns])

    def test_missing_covariate_table(self, primary, covariates, lag_config):
        engine = LagJoinEngine({'analysis': {'lags': lag_config}})
        with pytest.raises(KeyError):
            engine.join(primary, {'min_pool_af': covariates['min_pool_af']})

    def test_duplicate_output_names(self, primary, covariates):
        lag_config = {
            'min_pool_af': {'lags': [0]},
            'swe_apr': {'lags': [0], 'column_names': {0: 'min_pool_af'}},
        }
        with pytest.raises(ValueError):
            LagJoinEngine({}).join(primary, covariates, lag_config=lag_config)

    def test_no_configured_lags(self, primary, covariates):
        joined = LagJoinEngine({}).join(primary, covariates)
        pd.testing.assert_frame_equal(joined, primary)
