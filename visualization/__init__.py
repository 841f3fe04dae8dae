#!/usr/bin/env python3
"""
Visualization Module

Redd series, trend, lagged covariate and model diagnostic figures.
"""

from .plots.redd_plots import ReddPlotter

__all__ = [
    'ReddPlotter'
]
