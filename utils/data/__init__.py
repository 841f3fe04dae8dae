"""
Data Validation Module

Structural checks for loaded tables and structured data-quality warnings.
"""

from .validation import (
    validate_file_exists,
    validate_dataframe_structure,
    require_columns,
    record_quality_warning,
    get_quality_warnings,
    carry_quality_warnings,
    quality_warnings_frame
)

__all__ = [
    'validate_file_exists',
    'validate_dataframe_structure',
    'require_columns',
    'record_quality_warning',
    'get_quality_warnings',
    'carry_quality_warnings',
    'quality_warnings_frame'
]
