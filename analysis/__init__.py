"""
Analysis Module

Statistical analysis for the redd pipeline: detrending, backward model
selection and model diagnostics, all built on the StatisticsProvider.
"""

__all__ = []
