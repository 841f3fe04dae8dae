"""
Data Processing Module

Handles all data loading, processing, and transformation operations
for redd counts, reservoir and snowpack data in the redd analysis pipeline.
"""

__all__ = []
