#!/usr/bin/env python3
"""
Redd count processing: normalization, quality filtering and combination.

The two missing-data policies in this module differ:

* ReddCountNormalizer sums sub-population counts with missing values read
  as zero, so a local population whose sub-populations are all blank in a
  year gets a count of 0, not NaN.
* SeriesCombiner propagates missing values: a year in which any selected
  local population lacks a reliable count is dropped from the combined
  series.
"""

import pandas as pd
import numpy as np
import logging
from typing import Dict, Any, List, Optional, Tuple

from data_processing.loaders.redd_loaders import find_year_columns
from utils.config.helpers import get_section
from utils.data.validation import require_columns, record_quality_warning, carry_quality_warnings
from utils.exceptions import (
    AmbiguousLabelWarning,
    MalformedInputError,
    MissingJoinKeyError,
)

logger = logging.getLogger(__name__)


class ReddCountNormalizer:
    """
    Reshape wide sub-population counts to one row per local population and year.
    """

    id_columns = ['local_population', 'sub_population', 'population_complex', 'life_history']

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.target_complex = get_section(config, 'analysis', 'population_complex')

    def reshape_long(self, wide: pd.DataFrame) -> pd.DataFrame:
        """Melt year columns into rows: one row per sub-population per year."""
        year_columns = find_year_columns(wide)
        if not year_columns:
            raise MalformedInputError("Redd count table has no year columns")

        years = list(year_columns.values())
        if len(set(years)) != len(years):
            raise MalformedInputError(f"Redd count table repeats a year column: {list(year_columns)}")

        id_vars = [col for col in self.id_columns if col in wide.columns]
        long = wide.melt(id_vars=id_vars, value_vars=list(year_columns),
                         var_name='year', value_name='redds_sub_pop')
        long['year'] = long['year'].map(year_columns).astype(int)
        long['redds_sub_pop'] = pd.to_numeric(long['redds_sub_pop'], errors='coerce')
        return long

    def build_complex_lookup(self, wide: pd.DataFrame) -> Tuple[pd.Series, Dict[str, List[str]]]:
        """
        Map each local population to a single population complex label.

        The first non-missing label in row order is the representative.
        Conflicting labels are returned alongside so the caller can report them.

        Raises:
            MissingJoinKeyError: a local population has no label in any row
        """
        labels = wide[['local_population', 'population_complex']].dropna(subset=['local_population'])

        lookup = {}
        conflicts = {}
        for population, group in labels.groupby('local_population', sort=False):
            distinct = list(pd.unique(group['population_complex'].dropna()))
            if not distinct:
                raise MissingJoinKeyError(
                    f"No population_complex label for local population '{population}'"
                )
            if len(distinct) > 1:
                conflicts[population] = [str(label) for label in distinct]
            lookup[population] = distinct[0]

        return pd.Series(lookup, name='population_complex', dtype=object), conflicts

    def normalize(self, wide: pd.DataFrame, target_complex: Optional[str] = None) -> pd.DataFrame:
        """
        Aggregate sub-populations to local populations and keep the target complex.

        Args:
            wide: Redd count table with identifier columns and one column per year
            target_complex: Population complex to keep (defaults to config)

        Returns:
            DataFrame with local_population, population_complex, year, redd_count
        """
        require_columns(wide, ['local_population', 'sub_population', 'population_complex'],
                        name='Redd count table')
        target = target_complex if target_complex is not None else self.target_complex
        if target is None:
            raise ValueError("No target population complex given or configured")

        long = self.reshape_long(wide)
        unlabeled = long['local_population'].isna()
        long = long[~unlabeled]

        lookup, conflicts = self.build_complex_lookup(wide)

        # min_count=0: an all-missing group sums to 0
        aggregated = (long.groupby(['local_population', 'year'], sort=True)['redds_sub_pop']
                      .sum(min_count=0)
                      .rename('redd_count')
                      .reset_index())
        aggregated['redd_count'] = aggregated['redd_count'].astype(float)
        aggregated['population_complex'] = aggregated['local_population'].map(lookup)

        result = aggregated[aggregated['population_complex'] == target]
        result = result[['local_population', 'population_complex', 'year', 'redd_count']].reset_index(drop=True)

        if unlabeled.any():
            record_quality_warning(
                result, 'unlabeled_rows',
                f"Ignored {int(unlabeled.sum())} redd values with no local population",
                stage='normalizer', n_rows=int(unlabeled.sum())
            )

        for population, labels in conflicts.items():
            record_quality_warning(
                result, 'ambiguous_population_complex',
                f"Local population '{population}' has conflicting population_complex labels "
                f"{labels}; using first-seen '{labels[0]}'",
                stage='normalizer', category=AmbiguousLabelWarning,
                local_population=population, labels=labels
            )

        if result.empty:
            logger.warning(f"No local populations belong to complex '{target}'")
        else:
            logger.info(f"Normalized {result['local_population'].nunique()} local populations in "
                        f"'{target}' over {result['year'].nunique()} years")

        return result


class QualityFilter:
    """Blank out counts listed as known-bad, keeping the raw value alongside."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    def apply(self, series: pd.DataFrame, exclusions: pd.DataFrame) -> pd.DataFrame:
        """
        Mark excluded (year, local_population) observations as missing.

        Args:
            series: Normalized series with local_population, year, redd_count
            exclusions: Rows of (year, local_population) known to be unreliable

        Returns:
            Copy of ``series`` with redd_count_raw (untouched), redd_count
            (filtered) and an 'excluded' flag
        """
        require_columns(series, ['local_population', 'year', 'redd_count'], name='Normalized redd series')
        require_columns(exclusions, ['year', 'local_population'], name='Exclusion list')

        exclusion_years = pd.to_numeric(exclusions['year'], errors='coerce')
        incomplete = exclusion_years.isna() | exclusions['local_population'].isna()
        exclusion_keys = {(int(year), str(population))
                          for year, population in zip(exclusion_years[~incomplete],
                                                      exclusions['local_population'][~incomplete])}
        observation_keys = [(int(year), str(population))
                            for year, population in zip(series['year'], series['local_population'])]
        excluded = np.array([key in exclusion_keys for key in observation_keys], dtype=bool)

        result = series.copy()
        result['redd_count_raw'] = series['redd_count']
        result['redd_count'] = series['redd_count'].where(~excluded)
        result['excluded'] = excluded

        leading = [col for col in ['local_population', 'population_complex', 'year'] if col in result.columns]
        others = [col for col in result.columns
                  if col not in leading + ['redd_count_raw', 'redd_count', 'excluded']]
        result = result[leading + others + ['redd_count_raw', 'redd_count', 'excluded']]
        carry_quality_warnings(result, series, exclusions)

        if incomplete.any():
            record_quality_warning(
                result, 'incomplete_exclusion_rows',
                f"Ignored {int(incomplete.sum())} exclusion rows with a missing year or population",
                stage='quality_filter', n_rows=int(incomplete.sum())
            )

        populations = set(series['local_population'].astype(str))
        unmatched = sorted(key for key in exclusion_keys - set(observation_keys) if key[1] in populations)
        if unmatched:
            record_quality_warning(
                result, 'unmatched_exclusions',
                f"{len(unmatched)} exclusion rows match no observation: {unmatched}",
                stage='quality_filter', keys=[list(key) for key in unmatched]
            )

        logger.info(f"Quality filter excluded {int(excluded.sum())} of {len(result)} observations")
        return result


class SeriesCombiner:
    """Sum filtered counts across selected local populations per year."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.local_populations = get_section(config, 'analysis', 'local_populations', default=[]) or []
        self.min_year = get_section(config, 'analysis', 'min_year')

    def combine(self, filtered: pd.DataFrame, local_populations: Optional[List[str]] = None,
                min_year: Optional[int] = None) -> pd.DataFrame:
        """
        Build the combined annual series.

        Years where any selected population is missing (NaN or no row at
        all) are dropped. The ``min_year`` cutoff is applied last.

        Returns:
            DataFrame with year, total_redds, n_populations
        """
        require_columns(filtered, ['local_population', 'year', 'redd_count'], name='Filtered redd series')

        populations = list(dict.fromkeys(
            local_populations if local_populations is not None else self.local_populations
        ))
        cutoff = min_year if min_year is not None else self.min_year
        if not populations:
            raise ValueError("No local populations selected for combination")

        available = set(filtered['local_population'])
        absent = [population for population in populations if population not in available]
        if absent:
            raise MissingJoinKeyError(f"Selected local populations not found in series: {absent}")

        subset = filtered[filtered['local_population'].isin(populations)]
        try:
            by_year = subset.pivot(index='year', columns='local_population', values='redd_count')
        except ValueError as e:
            raise MalformedInputError(f"Filtered series has duplicate (local_population, year) rows: {e}")
        by_year = by_year.reindex(columns=populations).sort_index()

        totals = by_year.sum(axis=1, skipna=False)
        incomplete = totals.isna()

        combined = pd.DataFrame({
            'year': totals.index.astype(int),
            'total_redds': totals.values,
            'n_populations': len(populations),
        })
        combined = combined[~incomplete.values]

        if cutoff is not None:
            combined = combined[combined['year'] >= int(cutoff)]
        combined = combined.reset_index(drop=True)
        carry_quality_warnings(combined, filtered)

        dropped = by_year[incomplete]
        if cutoff is not None:
            dropped = dropped[dropped.index >= int(cutoff)]
        if not dropped.empty:
            detail = {int(year): [population for population in populations if pd.isna(row[population])]
                      for year, row in dropped.iterrows()}
            record_quality_warning(
                combined, 'dropped_years',
                f"Dropped {len(detail)} years lacking a reliable count for every selected population: "
                f"{sorted(detail)}",
                stage='series_combiner', years=sorted(detail), missing_by_year=detail
            )

        logger.info(f"Combined {populations} into {len(combined)} years"
                    + (f" from {cutoff}" if cutoff is not None else ""))
        return combined
