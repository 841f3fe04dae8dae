#!/usr/bin/env python3
"""
Plot Module

Static matplotlib figures for the redd pipeline.
"""

from .base import BasePlotter
from .redd_plots import ReddPlotter

__all__ = [
    'BasePlotter',
    'ReddPlotter'
]
