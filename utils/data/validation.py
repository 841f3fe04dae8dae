#!/usr/bin/env python3
"""
Input Validation Utilities for the Redd Analysis Pipeline

This module holds the structural checks applied to every loaded table and
the helpers that keep data-quality warnings attached to the frames they
describe. Structural failures raise; quality issues are logged and recorded
in ``DataFrame.attrs['quality_warnings']`` so the pipeline can finish and
the issues can be inspected afterwards.
"""

import os
import warnings
import pandas as pd
from pathlib import Path
from typing import Dict, List, Any, Optional, Tuple, Union
import logging

from ..exceptions import MissingColumnsError

logger = logging.getLogger(__name__)

QUALITY_WARNINGS_ATTR = 'quality_warnings'


def validate_file_exists(file_path: Union[str, Path], description: str = "File") -> bool:
    """
    Validate that a file exists and is accessible.

    Args:
        file_path: Path to the file to check
        description: Human-readable description for logging

    Returns:
        bool: True if file exists and is readable, False otherwise

    Example:
        >>> validate_file_exists("data/redd_counts.xlsx", "Redd workbook")
        True
    """
    path = Path(file_path)
    if not path.exists():
        logger.warning(f"{description} does not exist: {file_path}")
        return False
    if not path.is_file():
        logger.warning(f"{description} is not a file: {file_path}")
        return False
    if not os.access(path, os.R_OK):
        logger.warning(f"{description} is not readable: {file_path}")
        return False
    return True


def validate_dataframe_structure(df: pd.DataFrame, required_columns: List[str],
                                 name: str = "DataFrame") -> Tuple[bool, List[str]]:
    """
    Validate that a DataFrame has the required column structure.

    Args:
        df: DataFrame to validate
        required_columns: List of column names that must be present
        name: Name of the DataFrame for logging

    Returns:
        Tuple[bool, List[str]]: (is_valid, missing_columns)

    Example:
        >>> df = pd.DataFrame({'year': [], 'local_population': []})
        >>> validate_dataframe_structure(df, ['year', 'local_population', 'notes'])
        (False, ['notes'])
    """
    missing_columns = [col for col in required_columns if col not in df.columns]

    if missing_columns:
        logger.warning(f"{name} missing required columns: {missing_columns}")
        logger.debug(f"{name} has columns: {list(df.columns)}")
        return False, missing_columns

    if df.empty:
        logger.warning(f"{name} is empty")

    logger.debug(f"{name} structure validation passed")
    return True, []


def require_columns(df: pd.DataFrame, required_columns: List[str], name: str = "DataFrame") -> None:
    """Raise MissingColumnsError when any required column is absent."""
    is_valid, missing = validate_dataframe_structure(df, required_columns, name)
    if not is_valid:
        raise MissingColumnsError(name, missing)


def record_quality_warning(df: pd.DataFrame, kind: str, message: str, stage: str,
                           category: Optional[type] = None, **context: Any) -> None:
    """
    Log a data-quality issue and attach it to ``df``.

    The warning list is replaced rather than appended to, so frames that
    shared the list with ``df`` before the call are left untouched.

    Args:
        df: Frame the issue belongs to
        kind: Short machine-readable identifier (e.g. 'dropped_years')
        message: Human-readable description
        stage: Pipeline stage reporting the issue
        category: Optional Warning subclass to also emit through ``warnings``
        **context: Extra fields stored with the record
    """
    entry = {'kind': kind, 'message': message, 'stage': stage}
    entry.update(context)

    df.attrs[QUALITY_WARNINGS_ATTR] = list(df.attrs.get(QUALITY_WARNINGS_ATTR, [])) + [entry]
    logger.warning(f"[{stage}] {message}")

    if category is not None:
        warnings.warn(message, category, stacklevel=3)


def get_quality_warnings(df: pd.DataFrame, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return the quality warnings recorded on a frame, optionally filtered by kind."""
    records = list(df.attrs.get(QUALITY_WARNINGS_ATTR, []))
    if kind is not None:
        records = [record for record in records if record['kind'] == kind]
    return records


def carry_quality_warnings(target: pd.DataFrame, *sources: pd.DataFrame) -> pd.DataFrame:
    """Copy warnings from upstream frames onto ``target`` (deduplicated, order kept)."""
    combined = list(target.attrs.get(QUALITY_WARNINGS_ATTR, []))
    for source in sources:
        for record in source.attrs.get(QUALITY_WARNINGS_ATTR, []):
            if record not in combined:
                combined.append(record)
    target.attrs[QUALITY_WARNINGS_ATTR] = combined
    return target


def quality_warnings_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Flatten recorded warnings into a table for export."""
    records = get_quality_warnings(df)
    if not records:
        return pd.DataFrame(columns=['stage', 'kind', 'message'])

    table = pd.DataFrame(records)
    leading = ['stage', 'kind', 'message']
    others = [col for col in table.columns if col not in leading]
    return table[leading + others]
