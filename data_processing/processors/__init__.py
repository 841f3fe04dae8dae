from .redd_processor import ReddCountNormalizer, QualityFilter, SeriesCombiner
from .lag_join import LagJoinEngine, join_lagged_covariate, lag_column_name
from .covariate_processor import annual_minimum_pool, april_snowpack

__all__ = [
    'ReddCountNormalizer',
    'QualityFilter',
    'SeriesCombiner',
    'LagJoinEngine',
    'join_lagged_covariate',
    'lag_column_name',
    'annual_minimum_pool',
    'april_snowpack'
]
