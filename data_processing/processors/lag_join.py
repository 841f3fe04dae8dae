#!/usr/bin/env python3
"""
Lag-Join Engine

Attaches covariate values from earlier years to an annual primary series.
For lag k, the value attached to year Y is the covariate observed in year
Y - k. Lookups behave as a left join: a shifted year with no covariate
observation yields NaN and the primary row is kept.

Every (covariate, lag) column is computed independently from the untouched
covariate table, so joining the same covariate twice, or joining several
covariates in any order, gives the same columns.
"""

import pandas as pd
import logging
from typing import Dict, Any, List, Optional, Iterable

from utils.config.helpers import get_section
from utils.data.validation import require_columns, record_quality_warning, carry_quality_warnings
from utils.exceptions import MalformedInputError

logger = logging.getLogger(__name__)


def lag_column_name(value_column: str, lag: int,
                    column_names: Optional[Dict[int, str]] = None) -> str:
    """Name of the column holding ``value_column`` shifted by ``lag`` years."""
    if column_names:
        for key, name in column_names.items():
            if int(key) == lag:
                return name
    if lag == 0:
        return value_column
    return f"lag{lag}_{value_column}"


def _validate_lags(lags: Iterable[int]) -> List[int]:
    checked = []
    for lag in lags:
        if isinstance(lag, bool) or int(lag) != lag or lag < 0:
            raise ValueError(f"Lags must be non-negative integers, got {lag!r}")
        checked.append(int(lag))
    return checked


def _covariate_lookup(covariate: pd.DataFrame, value_column: str, year_column: str) -> pd.Series:
    """Year-indexed Series of covariate values; the input frame is not modified."""
    require_columns(covariate, [year_column, value_column], name=f"Covariate '{value_column}'")

    lookup = covariate[[year_column, value_column]].dropna(subset=[year_column])
    years = lookup[year_column].astype(int)
    if years.duplicated().any():
        repeated = sorted(years[years.duplicated()].unique().tolist())
        raise MalformedInputError(f"Covariate '{value_column}' has more than one value for years {repeated}")

    return pd.Series(lookup[value_column].values, index=years.values, name=value_column)


def join_lagged_covariate(primary: pd.DataFrame, covariate: pd.DataFrame, value_column: str,
                          lags: Iterable[int], year_column: str = 'year',
                          column_names: Optional[Dict[int, str]] = None) -> pd.DataFrame:
    """
    Attach ``value_column`` from ``covariate`` at each lag as a new column.

    Args:
        primary: Annual series with a ``year_column``
        covariate: Annual covariate table with ``year_column`` and ``value_column``
        value_column: Covariate column to attach
        lags: Non-negative year offsets
        year_column: Name of the year column in both tables
        column_names: Optional explicit output names keyed by lag

    Returns:
        Copy of ``primary`` with one added column per lag
    """
    require_columns(primary, [year_column], name='Primary series')
    checked_lags = _validate_lags(lags)
    lookup = _covariate_lookup(covariate, value_column, year_column)

    result = primary.copy()
    primary_years = primary[year_column].astype(int)

    for lag in checked_lags:
        name = lag_column_name(value_column, lag, column_names)
        result[name] = (primary_years - lag).map(lookup).astype(float).values

        n_missing = int(result[name].isna().sum())
        if n_missing:
            missing_years = sorted(primary_years[result[name].isna().values].tolist())
            record_quality_warning(
                result, 'missing_lagged_covariate',
                f"{name}: no {value_column} observation for {n_missing} shifted years "
                f"(primary years {missing_years})",
                stage='lag_join', column=name, lag=lag, years=missing_years
            )

    logger.debug(f"Joined {value_column} at lags {checked_lags}")
    return carry_quality_warnings(result, primary, covariate)


class LagJoinEngine:
    """
    Join every configured covariate at its configured lags.

    Config layout (``analysis.lags``)::

        min_pool_af:
          lags: [0, 1, 2, 3]
        swe_apr:
          lags: [0, 1]
          column_names: {0: swe_apr_same_year, 1: swe_apr_lag1}
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.lag_config = get_section(config, 'analysis', 'lags', default={}) or {}

    def output_columns(self, lag_config: Optional[Dict[str, Any]] = None) -> List[str]:
        """Names of all columns the join will add, in join order."""
        lag_config = lag_config if lag_config is not None else self.lag_config
        names = []
        for value_column, settings in lag_config.items():
            for lag in _validate_lags(settings.get('lags', [0])):
                names.append(lag_column_name(value_column, lag, settings.get('column_names')))
        return names

    def join(self, primary: pd.DataFrame, covariates: Dict[str, pd.DataFrame],
             lag_config: Optional[Dict[str, Any]] = None, year_column: str = 'year') -> pd.DataFrame:
        """
        Attach all configured lagged covariates to ``primary``.

        Args:
            primary: Annual series to extend
            covariates: Covariate tables keyed by their value column name
            lag_config: Overrides ``analysis.lags`` from the config

        Returns:
            New frame with every (covariate, lag) column added
        """
        lag_config = lag_config if lag_config is not None else self.lag_config
        if not lag_config:
            logger.warning("No lagged covariates configured; primary series returned unchanged")
            return primary.copy()

        names = self.output_columns(lag_config)
        if len(set(names)) != len(names):
            raise ValueError(f"Lag configuration produces duplicate column names: {names}")

        result = primary.copy()
        for value_column, settings in lag_config.items():
            if value_column not in covariates:
                raise KeyError(f"No covariate table supplied for '{value_column}'")

            lags = settings.get('lags', [0])
            column_names = settings.get('column_names')
            joined = join_lagged_covariate(
                primary, covariates[value_column], value_column, lags,
                year_column=year_column, column_names=column_names
            )
            for lag in _validate_lags(lags):
                col = lag_column_name(value_column, lag, column_names)
                result[col] = joined[col].values
            carry_quality_warnings(result, joined)

        logger.info(f"Attached lagged covariates: {names}")
        return result
