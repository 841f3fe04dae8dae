#!/usr/bin/env python3
"""
Utilities Module

This module provides common utilities for the redd analysis pipeline,
including configuration management, data validation, and error types.
"""

from .config.helpers import (
    load_config, setup_logging, get_section, ensure_directory_exists,
    get_timestamp, save_results
)
from .data.validation import (
    validate_dataframe_structure,
    require_columns,
    record_quality_warning,
    get_quality_warnings,
    carry_quality_warnings
)
from .exceptions import (
    ReddAnalysisError,
    MalformedInputError,
    MissingColumnsError,
    MissingJoinKeyError,
    InsufficientDataError,
    DataQualityWarning,
    AmbiguousLabelWarning
)

__all__ = [
    # Configuration helpers
    'load_config',
    'setup_logging',
    'get_section',
    'ensure_directory_exists',
    'get_timestamp',
    'save_results',

    # Data validation
    'validate_dataframe_structure',
    'require_columns',
    'record_quality_warning',
    'get_quality_warnings',
    'carry_quality_warnings',

    # Errors
    'ReddAnalysisError',
    'MalformedInputError',
    'MissingColumnsError',
    'MissingJoinKeyError',
    'InsufficientDataError',
    'DataQualityWarning',
    'AmbiguousLabelWarning'
]
