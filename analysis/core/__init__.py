from .statistics_provider import StatisticsProvider, FittedModel
from .detrending import fit_trend, detrend_series
from .model_selection import BackwardEliminationSelector
from .model_validation import validate_model, fit_univariate_models

__all__ = [
    'StatisticsProvider',
    'FittedModel',
    'fit_trend',
    'detrend_series',
    'BackwardEliminationSelector',
    'validate_model',
    'fit_univariate_models'
]
