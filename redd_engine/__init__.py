"""
Rimrock Redd Analysis Engine

End-to-end orchestration of loading, processing, modeling and export.
"""

from .engine import ReddAnalysisEngine

__all__ = ['ReddAnalysisEngine']
