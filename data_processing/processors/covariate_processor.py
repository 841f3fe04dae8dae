"""
Annual covariate series derived from the raw reservoir and snowpack tables.

Both functions return one row per year keyed by ``year`` so that the lag
join can look values up by shifted year.
"""

import pandas as pd
import logging

from utils.data.validation import require_columns, carry_quality_warnings
from utils.exceptions import MalformedInputError

logger = logging.getLogger(__name__)


def annual_minimum_pool(timeseries: pd.DataFrame, value_name: str = 'min_pool_af') -> pd.DataFrame:
    """
    Minimum pool volume observed within each calendar year.

    Args:
        timeseries: Frame with 'timestamp' and 'value' columns
        value_name: Name of the output value column

    Returns:
        DataFrame with 'year' and ``value_name``; years without a single
        valid observation are absent.
    """
    require_columns(timeseries, ['timestamp', 'value'], name='Reservoir time series')

    valid = timeseries.dropna(subset=['timestamp', 'value'])
    years = pd.to_datetime(valid['timestamp']).dt.year

    annual = (valid['value']
              .groupby(years)
              .min()
              .rename(value_name)
              .rename_axis('year')
              .reset_index())
    annual['year'] = annual['year'].astype(int)

    if not annual.empty:
        lowest = annual.loc[annual[value_name].idxmin()]
        logger.info(f"Annual minimum pool for {len(annual)} years "
                    f"({annual['year'].min()}-{annual['year'].max()}); "
                    f"deepest drawdown {lowest[value_name]:,.0f} in {int(lowest['year'])}")

    return carry_quality_warnings(annual, timeseries)


def april_snowpack(table: pd.DataFrame, value_name: str = 'swe_apr') -> pd.DataFrame:
    """Clean the April 1 snowpack table to one numeric value per water year."""
    require_columns(table, ['year', 'swe_apr'], name='Snowpack table')

    snow = pd.DataFrame({
        'year': pd.to_numeric(table['year'], errors='coerce'),
        value_name: pd.to_numeric(table['swe_apr'], errors='coerce'),
    }).dropna()
    snow['year'] = snow['year'].astype(int)

    duplicated = snow['year'].duplicated(keep=False)
    if duplicated.any():
        years = sorted(snow.loc[duplicated, 'year'].unique().tolist())
        raise MalformedInputError(f"Snowpack table has more than one value for water years {years}")

    snow = snow.sort_values('year').reset_index(drop=True)
    logger.info(f"April 1 snowpack available for {len(snow)} water years")
    return carry_quality_warnings(snow, table)
