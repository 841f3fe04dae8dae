#!/usr/bin/env python3
"""
Data Loaders for the Rimrock Redd Analysis

Reads the four raw sources of one analysis run into standardized frames:

1. Redd count sheet (wide: one column per survey year)
2. Known-bad count sheet (year, local_population exclusion rows)
3. Reservoir time series (Hydromet export, one row per timestamp)
4. April 1 snowpack table (one row per water year)

Structure:
- Helpers: year header parsing shared with the normalizer
- Redd Loaders: workbook sheets
- Covariate Loaders: reservoir and snowpack files
- Factory Functions: loader creation utilities
"""

# ============================================================================
# IMPORTS
# ============================================================================
import pandas as pd
import numpy as np
import logging
from typing import Dict, Any, List, Optional

from data_processing.base_loader import BaseDataLoader
from utils.config.helpers import get_section
from utils.data.validation import record_quality_warning
from utils.exceptions import MalformedInputError

logger = logging.getLogger(__name__)

REDD_ID_COLUMNS = ['local_population', 'sub_population', 'population_complex', 'life_history']
HYDROMET_MISSING = 998877


# ============================================================================
# HELPERS
# ============================================================================


def parse_year_label(label: Any) -> Optional[int]:
    """Return the survey year a column header stands for, or None."""
    try:
        value = float(str(label).strip())
    except (TypeError, ValueError):
        return None
    if not value.is_integer():
        return None
    year = int(value)
    if 1800 <= year <= 2200:
        return year
    return None


def find_year_columns(data: pd.DataFrame) -> Dict[Any, int]:
    """Map each year column header of a wide redd table to its integer year."""
    year_columns = {}
    for column in data.columns:
        if column in REDD_ID_COLUMNS:
            continue
        year = parse_year_label(column)
        if year is not None:
            year_columns[column] = year
    return year_columns


def _strip_text(series: pd.Series) -> pd.Series:
    """Strip whitespace from text values, leaving missing values alone."""
    return series.where(series.isna(), series.astype(str).str.strip())


# ============================================================================
# REDD LOADERS
# ============================================================================


class ReddCountLoader(BaseDataLoader):
    """
    Loader for the per-subpopulation redd count sheet.

    Handles the wide layout: identifier columns followed by one column per
    survey year. Values stay as read; blanks become NaN.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.sheet_name = get_section(config, 'data', 'redd_sheet', default='redd_counts')

    def get_required_columns(self) -> List[str]:
        return ['local_population', 'sub_population', 'population_complex']

    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        """Load the wide redd count sheet."""
        logger.info(f"Loading redd counts from: {file_path}")

        data = self.read_table(file_path, sheet_name=kwargs.get('sheet_name', self.sheet_name))
        data = self.preprocess_data(data)
        self.validate_data(data)

        year_columns = find_year_columns(data)
        for column in year_columns:
            data[column] = pd.to_numeric(data[column], errors='coerce')

        logger.info(f"Loaded {len(data)} sub-population rows covering "
                    f"{len(year_columns)} survey years")
        self.data = data
        return data

    def preprocess_data(self, data: pd.DataFrame) -> pd.DataFrame:
        data = super().preprocess_data(data)
        data = data.dropna(how='all').reset_index(drop=True)
        for column in REDD_ID_COLUMNS:
            if column in data.columns:
                data[column] = _strip_text(data[column])
        return data

    def validate_data(self, data: pd.DataFrame) -> bool:
        super().validate_data(data)
        if not find_year_columns(data):
            raise MalformedInputError("Redd count sheet has no year columns")
        return True


class ExclusionListLoader(BaseDataLoader):
    """Loader for the known-bad (undercounted) year/population sheet."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.sheet_name = get_section(config, 'data', 'exclusion_sheet', default='known_bad_counts')

    def get_required_columns(self) -> List[str]:
        return ['year', 'local_population']

    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        """Load exclusion rows as (year, local_population) pairs."""
        logger.info(f"Loading exclusion list from: {file_path}")

        data = self.read_table(file_path, sheet_name=kwargs.get('sheet_name', self.sheet_name))
        data = self.preprocess_data(data)
        self.validate_data(data)

        exclusions = self.standardize(data)
        self.data = exclusions
        return exclusions

    def standardize(self, data: pd.DataFrame) -> pd.DataFrame:
        """Coerce key columns and drop rows whose key is incomplete."""
        exclusions = data[['year', 'local_population']].copy()
        exclusions['year'] = pd.to_numeric(exclusions['year'], errors='coerce')
        exclusions['local_population'] = _strip_text(exclusions['local_population'])

        incomplete = exclusions['year'].isna() | exclusions['local_population'].isna()
        result = exclusions[~incomplete].copy()
        result['year'] = result['year'].astype(int)
        result = result.drop_duplicates().reset_index(drop=True)

        if incomplete.any():
            record_quality_warning(
                result, 'incomplete_exclusion_rows',
                f"Dropped {int(incomplete.sum())} exclusion rows with a missing year or population",
                stage='exclusion_loader', n_rows=int(incomplete.sum())
            )

        logger.info(f"Loaded {len(result)} exclusion keys")
        return result


# ============================================================================
# COVARIATE LOADERS
# ============================================================================


class ReservoirLoader(BaseDataLoader):
    """
    Loader for the reservoir state time series (Hydromet export).

    Output columns: timestamp, value. Sentinel values are converted to NaN.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        reservoir_config = get_section(config, 'data', 'reservoir', default={}) or {}
        self.delimiter = reservoir_config.get('delimiter', ',')
        self.timestamp_column = reservoir_config.get('timestamp_column', 'DateTime')
        self.value_column = reservoir_config.get('value_column', 'RIM_AF')
        self.missing_values = reservoir_config.get('missing_values', [HYDROMET_MISSING])
        self.skiprows = reservoir_config.get('skiprows')

    def get_required_columns(self) -> List[str]:
        return [self.timestamp_column, self.value_column]

    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        logger.info(f"Loading reservoir time series from: {file_path}")

        read_kwargs = {}
        if self.skiprows:
            read_kwargs['skiprows'] = self.skiprows
        data = self.read_table(file_path, delimiter=self.delimiter, **read_kwargs)
        data = self.preprocess_data(data)
        self.validate_data(data)

        series = self.standardize(data)
        self.data = series
        return series

    def standardize(self, data: pd.DataFrame) -> pd.DataFrame:
        """Rename to timestamp/value, parse types and blank out sentinels."""
        series = pd.DataFrame({
            'timestamp': pd.to_datetime(data[self.timestamp_column], errors='coerce'),
            'value': pd.to_numeric(data[self.value_column], errors='coerce'),
        })

        if self.missing_values:
            series.loc[series['value'].isin(self.missing_values), 'value'] = np.nan

        bad_timestamps = series['timestamp'].isna()
        series = series[~bad_timestamps].sort_values('timestamp').reset_index(drop=True)

        if bad_timestamps.any():
            record_quality_warning(
                series, 'unparseable_timestamps',
                f"Dropped {int(bad_timestamps.sum())} reservoir rows with unparseable timestamps",
                stage='reservoir_loader', n_rows=int(bad_timestamps.sum())
            )

        logger.info(f"Loaded {len(series)} reservoir observations "
                    f"({series['value'].isna().sum()} missing values)")
        return series


class SnowpackLoader(BaseDataLoader):
    """Loader for the annual April 1 snow-water-equivalent table."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        snowpack_config = get_section(config, 'data', 'snowpack', default={}) or {}
        self.delimiter = snowpack_config.get('delimiter', ',')
        self.year_column = snowpack_config.get('year_column', 'water_year')
        self.value_column = snowpack_config.get('value_column', 'swe_apr1')

    def get_required_columns(self) -> List[str]:
        return [self.year_column, self.value_column]

    def load_data(self, file_path: str, **kwargs) -> pd.DataFrame:
        logger.info(f"Loading snowpack table from: {file_path}")

        data = self.read_table(file_path, delimiter=self.delimiter)
        data = self.preprocess_data(data)
        self.validate_data(data)

        table = data[[self.year_column, self.value_column]].rename(
            columns={self.year_column: 'year', self.value_column: 'swe_apr'}
        )
        logger.info(f"Loaded {len(table)} snowpack rows")
        self.data = table
        return table


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================


LOADER_TYPES = {
    'redd_counts': ReddCountLoader,
    'exclusions': ExclusionListLoader,
    'reservoir': ReservoirLoader,
    'snowpack': SnowpackLoader,
}


def create_loader(kind: str, config: Dict[str, Any]) -> BaseDataLoader:
    """
    Create the loader for one input source.

    Args:
        kind: One of 'redd_counts', 'exclusions', 'reservoir', 'snowpack'
        config: Pipeline configuration

    Returns:
        Configured loader instance
    """
    if kind not in LOADER_TYPES:
        raise ValueError(f"Unknown data source: {kind}. Available: {list(LOADER_TYPES)}")
    return LOADER_TYPES[kind](config)
