"""
Detrending of an annual series against year.
"""

import pandas as pd
import logging
from typing import Optional

from analysis.core.statistics_provider import StatisticsProvider, FittedModel
from utils.data.validation import require_columns, carry_quality_warnings
from utils.exceptions import InsufficientDataError, MalformedInputError

logger = logging.getLogger(__name__)

MIN_TREND_POINTS = 3


def fit_trend(data: pd.DataFrame, response: str = 'total_redds', year_column: str = 'year',
              provider: Optional[StatisticsProvider] = None) -> FittedModel:
    """Fit ``response ~ year`` by OLS."""
    require_columns(data, [year_column, response], name='Trend data')
    provider = provider or StatisticsProvider()

    if len(data) < MIN_TREND_POINTS:
        raise InsufficientDataError(
            f"Trend fit needs at least {MIN_TREND_POINTS} points, got {len(data)}",
            n_observations=len(data), n_required=MIN_TREND_POINTS
        )
    if data[response].isna().any() or data[year_column].isna().any():
        raise MalformedInputError(f"Trend data has missing values in '{response}' or '{year_column}'")

    return provider.fit_linear(data, response, [year_column])


def detrend_series(data: pd.DataFrame, response: str = 'total_redds', year_column: str = 'year',
                   provider: Optional[StatisticsProvider] = None) -> pd.DataFrame:
    """
    Remove a linear year trend from ``response``.

    Returns:
        Copy of ``data`` with 'trend_fitted' and 'trend_residual' columns,
        row for row with the input.
    """
    trend = fit_trend(data, response, year_column, provider)

    result = data.copy()
    fitted = trend.fitted_values.reindex(data.index)
    result['trend_fitted'] = fitted.values
    result['trend_residual'] = (data[response].astype(float) - fitted).values

    slope = trend.coefficients[year_column]
    p_value = trend.coefficient_table.loc[year_column, 'p_value']
    logger.info(f"Trend in {response}: {slope:+.2f} per year (p={p_value:.3f}, n={trend.nobs})")

    return carry_quality_warnings(result, data)
