#!/usr/bin/env python3
"""
Test suite for validation and configuration utilities.
"""

import sys
import os
import tempfile
import warnings
import pandas as pd
import unittest
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from utils.data.validation import (
    validate_file_exists,
    validate_dataframe_structure,
    require_columns,
    record_quality_warning,
    get_quality_warnings,
    carry_quality_warnings,
    quality_warnings_frame
)
from utils.config.helpers import load_config, get_section, save_results
from utils.exceptions import (
    MissingColumnsError, MalformedInputError, ReddAnalysisError, DataQualityWarning
)


class TestValidationUtilities(unittest.TestCase):
    """Test cases for validation utility functions."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.test_data_dir = Path(self.temp_dir.name)

        self.test_file = self.test_data_dir / "test.csv"
        pd.DataFrame({'col1': [1, 2, 3], 'col2': [4, 5, 6]}).to_csv(self.test_file, index=False)

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def test_validate_file_exists(self):
        """Test file existence validation."""
        self.assertTrue(validate_file_exists(self.test_file))
        self.assertFalse(validate_file_exists(self.test_data_dir / "non_existent_file.csv"))
        self.assertFalse(validate_file_exists(self.test_data_dir, "Data directory"))
        self.assertTrue(validate_file_exists(self.test_file, "Test CSV file"))

    def test_validate_dataframe_structure(self):
        """Test DataFrame structure validation."""
        df = pd.DataFrame({'year': [2000], 'local_population': ['Indian Creek']})

        is_valid, missing = validate_dataframe_structure(df, ['year', 'local_population'])
        self.assertTrue(is_valid)
        self.assertEqual(missing, [])

        is_valid, missing = validate_dataframe_structure(df, ['year', 'redd_count', 'notes'])
        self.assertFalse(is_valid)
        self.assertEqual(missing, ['redd_count', 'notes'])

    def test_require_columns(self):
        """Missing columns raise with the table name and missing names."""
        df = pd.DataFrame({'year': [2000]})
        require_columns(df, ['year'])

        with self.assertRaises(MissingColumnsError) as context:
            require_columns(df, ['year', 'redd_count'], name='Redd series')
        self.assertEqual(context.exception.missing_columns, ['redd_count'])
        self.assertIn('Redd series', str(context.exception))
        self.assertIsInstance(context.exception, MalformedInputError)
        self.assertIsInstance(context.exception, ReddAnalysisError)


class TestQualityWarnings(unittest.TestCase):
    """Test structured data-quality warnings carried on frames."""

    def test_record_and_get(self):
        df = pd.DataFrame({'year': [2000, 2001]})
        record_quality_warning(df, 'dropped_years', 'Dropped 1 year', stage='series_combiner', years=[1999])
        record_quality_warning(df, 'unmatched_exclusions', 'One key unmatched', stage='quality_filter')

        records = get_quality_warnings(df)
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0], {'kind': 'dropped_years', 'message': 'Dropped 1 year',
                                      'stage': 'series_combiner', 'years': [1999]})
        self.assertEqual(len(get_quality_warnings(df, 'unmatched_exclusions')), 1)

    def test_record_does_not_touch_copies(self):
        original = pd.DataFrame({'year': [2000]})
        record_quality_warning(original, 'first', 'first', stage='test')
        derived = original.copy()
        derived.attrs['quality_warnings'] = original.attrs['quality_warnings']

        record_quality_warning(derived, 'second', 'second', stage='test')

        self.assertEqual([r['kind'] for r in get_quality_warnings(original)], ['first'])
        self.assertEqual([r['kind'] for r in get_quality_warnings(derived)], ['first', 'second'])

    def test_record_with_category_emits_warning(self):
        df = pd.DataFrame()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            record_quality_warning(df, 'ambiguous', 'Conflicting labels', stage='normalizer',
                                   category=DataQualityWarning)
        self.assertEqual(len(caught), 1)
        self.assertTrue(issubclass(caught[0].category, DataQualityWarning))

    def test_carry_deduplicates(self):
        upstream = pd.DataFrame()
        record_quality_warning(upstream, 'a', 'first issue', stage='loader')
        other = pd.DataFrame()
        record_quality_warning(other, 'a', 'first issue', stage='loader')
        record_quality_warning(other, 'b', 'second issue', stage='filter')

        target = carry_quality_warnings(pd.DataFrame({'x': [1]}), upstream, other)
        self.assertEqual([r['kind'] for r in get_quality_warnings(target)], ['a', 'b'])

    def test_quality_warnings_frame(self):
        df = pd.DataFrame()
        self.assertEqual(list(quality_warnings_frame(df).columns), ['stage', 'kind', 'message'])

        record_quality_warning(df, 'dropped_years', 'Dropped', stage='series_combiner', n_years=2)
        table = quality_warnings_frame(df)
        self.assertEqual(list(table.columns), ['stage', 'kind', 'message', 'n_years'])
        self.assertEqual(table.loc[0, 'n_years'], 2)


class TestConfigHelpers(unittest.TestCase):
    """Test configuration loading and result export helpers."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.temp_dir.name, 'config.yaml')
        with open(self.config_path, 'w') as fh:
            fh.write("analysis:\n"
                     "  population_complex: Rimrock Lake\n"
                     "  model_selection:\n"
                     "    significance_threshold: 0.05\n")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_load_config(self):
        config = load_config(self.config_path)
        self.assertEqual(config['analysis']['population_complex'], 'Rimrock Lake')

    def test_load_missing_config(self):
        with self.assertRaises(FileNotFoundError):
            load_config(os.path.join(self.temp_dir.name, 'absent.yaml'))

    def test_load_invalid_config(self):
        bad_path = os.path.join(self.temp_dir.name, 'bad.yaml')
        with open(bad_path, 'w') as fh:
            fh.write("analysis: [unclosed\n")
        with self.assertRaises(ValueError):
            load_config(bad_path)

    def test_get_section(self):
        config = load_config(self.config_path)
        self.assertEqual(get_section(config, 'analysis', 'model_selection', 'significance_threshold'), 0.05)
        self.assertIsNone(get_section(config, 'analysis', 'lags'))
        self.assertEqual(get_section(config, 'output', 'base_path', default='outputs'), 'outputs')

    def test_save_results(self):
        path = os.path.join(self.temp_dir.name, 'nested', 'table.csv')
        save_results(pd.DataFrame({'year': [2000], 'total_redds': [12.0]}), path)
        self.assertTrue(os.path.isfile(path))
        self.assertEqual(pd.read_csv(path)['total_redds'].tolist(), [12.0])

        with self.assertRaises(ValueError):
            save_results(pd.DataFrame(), path, format='parquet')


if __name__ == '__main__':
    unittest.main()
