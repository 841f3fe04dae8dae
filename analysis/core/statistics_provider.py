#!/usr/bin/env python3
"""
Statistics Provider

Thin layer over statsmodels and scipy exposing the three capabilities the
pipeline consumes: ordinary least squares fits, likelihood-ratio tests
between nested fits, and variance inflation factors. Anything with the same
three methods can stand in for StatisticsProvider (tests use a scripted
provider to pin p-values).
"""

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.outliers_influence import variance_inflation_factor
from scipy import stats
import logging
from typing import Dict, Any, Sequence

from utils.data.validation import require_columns
from utils.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)

INTERCEPT = 'Intercept'


class FittedModel:
    """A fitted linear model: response, ordered predictors and the statsmodels results."""

    def __init__(self, response: str, predictors: Sequence[str], data: pd.DataFrame,
                 results, provider: 'StatisticsProvider'):
        self.response = response
        self.predictors = list(predictors)
        self.data = data
        self.results = results
        self.provider = provider

    @property
    def formula(self) -> str:
        rhs = ' + '.join(self.predictors) if self.predictors else '1'
        return f"{self.response} ~ {rhs}"

    @property
    def coefficients(self) -> pd.Series:
        return self.results.params.copy()

    @property
    def coefficient_table(self) -> pd.DataFrame:
        return pd.DataFrame({
            'estimate': self.results.params,
            'std_error': self.results.bse,
            't_value': self.results.tvalues,
            'p_value': self.results.pvalues,
        })

    @property
    def residuals(self) -> pd.Series:
        return self.results.resid.copy()

    @property
    def fitted_values(self) -> pd.Series:
        return self.results.fittedvalues.copy()

    @property
    def llf(self) -> float:
        return float(self.results.llf)

    @property
    def deviance(self) -> float:
        """Residual sum of squares (the Gaussian deviance)."""
        return float(self.results.ssr)

    @property
    def nobs(self) -> int:
        return int(self.results.nobs)

    @property
    def fit_statistics(self) -> Dict[str, float]:
        return {
            'nobs': self.nobs,
            'n_predictors': len(self.predictors),
            'r_squared': float(self.results.rsquared),
            'adj_r_squared': float(self.results.rsquared_adj),
            'aic': float(self.results.aic),
            'bic': float(self.results.bic),
            'llf': self.llf,
            'deviance': self.deviance,
            'df_resid': float(self.results.df_resid),
            'f_pvalue': float(self.results.f_pvalue) if self.predictors else np.nan,
        }

    def drop(self, predictor: str) -> 'FittedModel':
        """Refit on the same rows without ``predictor``."""
        if predictor not in self.predictors:
            raise KeyError(f"'{predictor}' is not a predictor of {self.formula}")
        remaining = [name for name in self.predictors if name != predictor]
        return self.provider.fit_linear(self.data, self.response, remaining)

    def summary(self) -> str:
        return str(self.results.summary())

    def __repr__(self):
        return f"FittedModel({self.formula}, n={self.nobs})"


class StatisticsProvider:
    """OLS fits, likelihood-ratio tests and VIFs backed by statsmodels."""

    def fit_linear(self, data: pd.DataFrame, response: str, predictors: Sequence[str]) -> FittedModel:
        """
        Fit ``response ~ predictors`` (with intercept) by ordinary least squares.

        Rows with a missing value in any used column are left out.

        Raises:
            InsufficientDataError: fewer rows than parameters + 1
        """
        predictors = list(predictors)
        require_columns(data, [response] + predictors, name='Model data')

        frame = data[[response] + predictors].dropna()
        n_dropped = len(data) - len(frame)
        if n_dropped:
            logger.debug(f"{n_dropped} incomplete rows left out of {response} fit")

        n_required = len(predictors) + 2
        if len(frame) < n_required:
            raise InsufficientDataError(
                f"Need at least {n_required} complete rows to fit {response} on "
                f"{len(predictors)} predictors, got {len(frame)}",
                n_observations=len(frame), n_required=n_required
            )

        exog = frame[predictors].astype(float)
        exog.insert(0, INTERCEPT, 1.0)
        results = sm.OLS(frame[response].astype(float), exog).fit()

        return FittedModel(response, predictors, frame, results, self)

    def likelihood_ratio_details(self, model_a: FittedModel, model_b: FittedModel) -> Dict[str, Any]:
        """
        Likelihood-ratio test between two nested fits on the same rows.

        Returns:
            Dict with lr_statistic, df and p_value
        """
        if len(model_a.predictors) >= len(model_b.predictors):
            full, reduced = model_a, model_b
        else:
            full, reduced = model_b, model_a

        if full.response != reduced.response or not set(reduced.predictors) <= set(full.predictors):
            raise ValueError(f"Models are not nested: {full.formula} vs {reduced.formula}")
        if full.nobs != reduced.nobs:
            raise ValueError(f"Models fitted on different rows: {full.nobs} vs {reduced.nobs}")

        df_diff = len(full.predictors) - len(reduced.predictors)
        if df_diff == 0:
            raise ValueError(f"Models have the same predictors: {full.formula}")

        lr_statistic = max(2.0 * (full.llf - reduced.llf), 0.0)
        p_value = float(stats.chi2.sf(lr_statistic, df_diff))

        return {'lr_statistic': lr_statistic, 'df': df_diff, 'p_value': p_value}

    def likelihood_ratio_test(self, model_a: FittedModel, model_b: FittedModel) -> float:
        """p-value of the likelihood-ratio test between two nested fits."""
        return self.likelihood_ratio_details(model_a, model_b)['p_value']

    def variance_inflation_factors(self, model: FittedModel) -> Dict[str, float]:
        """VIF for every predictor of ``model`` (intercept excluded)."""
        if not model.predictors:
            return {}

        exog = np.asarray(model.results.model.exog, dtype=float)
        with np.errstate(divide='ignore', invalid='ignore'):
            return {name: float(variance_inflation_factor(exog, i + 1))
                    for i, name in enumerate(model.predictors)}
