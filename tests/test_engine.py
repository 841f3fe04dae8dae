import pytest
import pandas as pd
import numpy as np
import matplotlib
matplotlib.use('Agg')
import os
import sys
import yaml

# Add project root to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from redd_engine.engine import ReddAnalysisEngine
from analysis.core.model_selection import TRACE_COLUMNS

YEARS = list(range(1990, 2016))
COVARIATE_YEARS = list(range(1985, 2016))

_rng = np.random.default_rng(11)
POOL = dict(zip(COVARIATE_YEARS, 30000.0 + 8000.0 * _rng.standard_normal(len(COVARIATE_YEARS))))
SWE = dict(zip(COVARIATE_YEARS, 25.0 + 8.0 * _rng.standard_normal(len(COVARIATE_YEARS))))
NOISE = dict(zip(YEARS, 3.0 * _rng.standard_normal(len(YEARS))))


def minimum_pool(year):
    return POOL[year]


def april_swe(year):
    return SWE[year]


@pytest.fixture
def redd_wide():
    """Two local populations of the Rimrock Lake complex and one outside it."""
    rows = {
        ('Indian Creek', 'Upper'): lambda y: 20 + 0.5 * (y - 1990) + 0.0004 * minimum_pool(y - 2),
        ('Indian Creek', 'Lower'): lambda y: 8 + NOISE[y],
        ('South Fork Tieton River', 'Main'): lambda y: 60 + 1.5 * (y - 1990) + 0.3 * april_swe(y - 1),
        ('Bumping River', 'Main'): lambda y: 10.0,
    }
    records = []
    for (population, sub_population), count in rows.items():
        record = {
            'local_population': population,
            'sub_population': sub_population,
            'population_complex': 'Bumping Lake' if population == 'Bumping River' else 'Rimrock Lake',
        }
        for year in YEARS:
            record[str(year)] = round(count(year))
        records.append(record)

    wide = pd.DataFrame(records)
    wide.loc[1, '1995'] = np.nan
    return wide


@pytest.fixture
def exclusions():
    return pd.DataFrame({'year': [2000], 'local_population': ['South Fork Tieton River']})


@pytest.fixture
def reservoir_annual():
    return pd.DataFrame({'year': COVARIATE_YEARS,
                         'min_pool_af': [minimum_pool(y) for y in COVARIATE_YEARS]})


@pytest.fixture
def snowpack_annual():
    return pd.DataFrame({'year': COVARIATE_YEARS,
                         'swe_apr': [april_swe(y) for y in COVARIATE_YEARS]})


@pytest.fixture
def config(tmp_path):
    return {
        'data': {
            'redd_workbook': str(tmp_path / 'redds.csv'),
            'exclusion_workbook': str(tmp_path / 'exclusions.csv'),
            'reservoir_file': str(tmp_path / 'rim_af.csv'),
            'reservoir': {'timestamp_column': 'DateTime', 'value_column': 'RIM_AF'},
            'snowpack_file': str(tmp_path / 'swe.csv'),
            'snowpack': {'year_column': 'water_year', 'value_column': 'swe_apr1'},
        },
        'analysis': {
            'population_complex': 'Rimrock Lake',
            'local_populations': ['Indian Creek', 'South Fork Tieton River'],
            'min_year': 1990,
            'response': 'trend_residual',
            'lags': {
                'min_pool_af': {'lags': [0, 1, 2, 3]},
                'swe_apr': {'lags': [0, 1], 'column_names': {0: 'swe_apr_same_year', 1: 'swe_apr_lag1'}},
            },
            'model_selection': {'significance_threshold': 0.05},
        },
        'output': {'base_path': str(tmp_path / 'outputs'), 'run_name': 'test_run'},
        'visualization': {'style': 'default', 'dpi': 50},
        'logging': {'level': 'WARNING'},
    }


@pytest.fixture
def engine(config, tmp_path):
    config_path = tmp_path / 'config.yaml'
    config_path.write_text(yaml.safe_dump(config))
    return ReddAnalysisEngine(str(config_path))


class TestAnalyze:
    """End-to-end analysis on in-memory tables."""

    def test_series_columns(self, engine, redd_wide, exclusions, reservoir_annual, snowpack_annual):
        results = engine.analyze(redd_wide, exclusions, reservoir_annual, snowpack_annual)

        assert list(results['series'].columns) == [
            'year', 'total_redds', 'n_populations',
            'min_pool_af', 'lag1_min_pool_af', 'lag2_min_pool_af', 'lag3_min_pool_af',
            'swe_apr_same_year', 'swe_apr_lag1',
            'trend_fitted', 'trend_residual',
        ]

    def test_excluded_year_dropped(self, engine, redd_wide, exclusions, reservoir_annual, snowpack_annual):
        results = engine.analyze(redd_wide, exclusions, reservoir_annual, snowpack_annual)

        years = results['series']['year'].tolist()
        assert 2000 not in years
        assert len(years) == len(YEARS) - 1
        assert 'dropped_years' in results['quality_warnings']['kind'].tolist()

    def test_zero_fill_before_combination(self, engine, redd_wide, exclusions, reservoir_annual, snowpack_annual):
        results = engine.analyze(redd_wide, exclusions, reservoir_annual, snowpack_annual)

        normalized = results['normalized']
        assert normalized['redd_count'].notna().all()
        assert 1995 in results['series']['year'].tolist()

    def test_selection_trace(self, engine, redd_wide, exclusions, reservoir_annual, snowpack_annual):
        results = engine.analyze(redd_wide, exclusions, reservoir_annual, snowpack_annual)
        selection = results['selection']

        assert results['candidate_predictors'] == engine.lag_engine.output_columns()
        assert list(selection['trace'].columns) == TRACE_COLUMNS
        n_removed = len(selection['initial_model'].predictors) - len(selection['final_model'].predictors)
        assert len(selection['trace']) == n_removed
        assert selection['n_observations'] == len(YEARS) - 1

    def test_univariate_and_validation(self, engine, redd_wide, exclusions, reservoir_annual, snowpack_annual):
        results = engine.analyze(redd_wide, exclusions, reservoir_annual, snowpack_annual)

        assert sorted(results['univariate']['predictor']) == sorted(results['candidate_predictors'])
        validation = results['validation']
        assert 'durbin_watson' in validation
        assert set(validation['influential_observations']) <= set(results['series']['year'])

    def test_inputs_unchanged(self, engine, redd_wide, exclusions, reservoir_annual, snowpack_annual):
        before = [frame.copy() for frame in (redd_wide, exclusions, reservoir_annual, snowpack_annual)]
        engine.analyze(redd_wide, exclusions, reservoir_annual, snowpack_annual)

        for frame, original in zip((redd_wide, exclusions, reservoir_annual, snowpack_annual), before):
            pd.testing.assert_frame_equal(frame, original)


class TestRun:
    """Full run from files to exported outputs."""

    @pytest.fixture
    def input_files(self, config, redd_wide, exclusions):
        data_config = config['data']
        redd_wide.to_csv(data_config['redd_workbook'], index=False)
        exclusions.to_csv(data_config['exclusion_workbook'], index=False)

        reservoir_rows = []
        for year in COVARIATE_YEARS:
            low = minimum_pool(year)
            reservoir_rows += [
                {'DateTime': f'{year}-04-01', 'RIM_AF': low + 150000.0},
                {'DateTime': f'{year}-10-20', 'RIM_AF': low},
                {'DateTime': f'{year}-11-15', 'RIM_AF': 998877},
            ]
        pd.DataFrame(reservoir_rows).to_csv(data_config['reservoir_file'], index=False)

        pd.DataFrame({'water_year': COVARIATE_YEARS,
                      'swe_apr1': [april_swe(y) for y in COVARIATE_YEARS]}).to_csv(
            data_config['snowpack_file'], index=False)

    def test_load_inputs(self, engine, input_files, reservoir_annual):
        inputs = engine.load_inputs()

        assert set(inputs) == {'redd_wide', 'exclusions', 'reservoir_annual', 'snowpack_annual'}
        np.testing.assert_allclose(inputs['reservoir_annual']['min_pool_af'].values,
                                   reservoir_annual['min_pool_af'].values)

    def test_run_exports(self, engine, input_files):
        results = engine.run(save_outputs=True, make_plots=True)

        output_dir = results['output_directory']
        assert os.path.basename(output_dir).startswith('test_run_')
        for filename in ['normalized_redds.csv', 'filtered_redds.csv', 'combined_series.csv',
                         'elimination_trace.csv', 'univariate_models.csv', 'coefficients.csv',
                         'quality_warnings.csv', 'model_summary.txt']:
            assert os.path.isfile(os.path.join(output_dir, 'results', filename)), filename
        for filename in ['redd_series.png', 'trend.png', 'lag_scatter.png', 'model_diagnostics.png']:
            assert os.path.isfile(os.path.join(output_dir, 'plots', filename)), filename

        with open(os.path.join(output_dir, 'results', 'model_summary.txt')) as fh:
            summary = fh.read()
        assert results['selection']['final_model'].formula in summary

    def test_run_without_outputs(self, engine, input_files, tmp_path):
        results = engine.run(save_outputs=False, make_plots=False)

        assert results['output_directory'] is None
        assert not (tmp_path / 'outputs').exists()

    def test_run_missing_file(self, engine):
        with pytest.raises(FileNotFoundError):
            engine.run(save_outputs=False, make_plots=False)
