#!/usr/bin/env python3
"""
Model Validation and Exploratory Fits

Diagnostics for a fitted linear model (collinearity, residual normality,
residual autocorrelation across years, heteroscedasticity, influential
years) and the one-predictor-at-a-time fits used to screen lag covariates
before the saturated model is built.
"""

import numpy as np
import pandas as pd
import logging
from scipy import stats
from statsmodels.stats.stattools import durbin_watson
from statsmodels.stats.diagnostic import het_breuschpagan
from typing import Dict, Any, Optional, Sequence

from analysis.core.statistics_provider import StatisticsProvider, FittedModel
from utils.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)

VIF_THRESHOLD = 10.0


def validate_model(model: FittedModel, provider: Optional[StatisticsProvider] = None,
                   alpha: float = 0.05, vif_threshold: float = VIF_THRESHOLD) -> Dict[str, Any]:
    """
    Run residual and collinearity diagnostics on a fitted model.

    Args:
        model: Fitted linear model
        provider: Statistics provider used for VIFs
        alpha: Significance level for the residual tests
        vif_threshold: VIF above which a predictor is flagged

    Returns:
        Dictionary with vif, shapiro_wilk, durbin_watson, breusch_pagan,
        cooks_distance, influential_observations and a list of warnings
    """
    provider = provider or StatisticsProvider()
    residuals = model.residuals
    n = model.nobs

    results = {
        'formula': model.formula,
        'n_observations': n,
        'vif': provider.variance_inflation_factors(model),
        'warnings': [],
    }

    high_vif = {name: value for name, value in results['vif'].items() if value > vif_threshold}
    if high_vif:
        results['warnings'].append(f"High collinearity (VIF > {vif_threshold:g}): {sorted(high_vif)}")

    # Residual normality
    if n >= 3:
        w_stat, w_pvalue = stats.shapiro(residuals)
        results['shapiro_wilk'] = {'statistic': float(w_stat), 'p_value': float(w_pvalue)}
        if w_pvalue < alpha:
            results['warnings'].append(f"Residuals depart from normality (Shapiro-Wilk p={w_pvalue:.3f})")

    # Serial correlation of annual residuals
    dw = float(durbin_watson(residuals))
    results['durbin_watson'] = dw
    if dw < 1.5 or dw > 2.5:
        results['warnings'].append(f"Residual autocorrelation suspected (Durbin-Watson={dw:.2f})")

    if model.predictors:
        lm_stat, lm_pvalue, f_stat, f_pvalue = het_breuschpagan(residuals, model.results.model.exog)
        results['breusch_pagan'] = {
            'lm_statistic': float(lm_stat),
            'lm_p_value': float(lm_pvalue),
            'f_statistic': float(f_stat),
            'f_p_value': float(f_pvalue),
        }
        if lm_pvalue < alpha:
            results['warnings'].append(f"Heteroscedastic residuals (Breusch-Pagan p={lm_pvalue:.3f})")

    cooks = pd.Series(model.results.get_influence().cooks_distance[0], index=residuals.index)
    cutoff = 4.0 / n
    results['cooks_distance'] = cooks
    results['influential_observations'] = cooks[cooks > cutoff].index.tolist()

    for message in results['warnings']:
        logger.warning(f"{model.formula}: {message}")

    return results


def fit_univariate_models(data: pd.DataFrame, response: str, predictors: Sequence[str],
                          provider: Optional[StatisticsProvider] = None) -> pd.DataFrame:
    """
    Fit ``response ~ predictor`` separately for each predictor.

    Each fit uses the complete cases of its own two columns, so lags with
    shorter records are not penalized by other lags' gaps.

    Returns:
        DataFrame with predictor, slope, std_error, p_value, r_squared, n,
        sorted by p_value (unfittable predictors last)
    """
    provider = provider or StatisticsProvider()

    rows = []
    for predictor in predictors:
        row = {'predictor': predictor, 'slope': np.nan, 'std_error': np.nan,
               'p_value': np.nan, 'r_squared': np.nan,
               'n': int(data[[response, predictor]].dropna().shape[0])}
        try:
            model = provider.fit_linear(data, response, [predictor])
        except InsufficientDataError as e:
            logger.warning(f"Skipping {response} ~ {predictor}: {e}")
            rows.append(row)
            continue

        table = model.coefficient_table
        row.update({
            'slope': float(table.loc[predictor, 'estimate']),
            'std_error': float(table.loc[predictor, 'std_error']),
            'p_value': float(table.loc[predictor, 'p_value']),
            'r_squared': model.fit_statistics['r_squared'],
        })
        rows.append(row)

    table = pd.DataFrame(rows, columns=['predictor', 'slope', 'std_error', 'p_value', 'r_squared', 'n'])
    return table.sort_values('p_value', na_position='last', kind='mergesort').reset_index(drop=True)
