#!/usr/bin/env python3
"""
Backward stepwise model selection by likelihood-ratio test.

Starting from the saturated model, each step computes the drop-one LRT
p-value for every included predictor and removes exactly one predictor: the
one with the largest p-value strictly above the significance threshold.
Equal p-values are resolved in declaration order (the predictor declared
first in the saturated model goes first). Selection stops when no p-value
exceeds the threshold or when no predictors are left; stopping without
removing anything is a normal outcome.
"""

import pandas as pd
import logging
from typing import Dict, Any, List, Optional, Sequence

from analysis.core.statistics_provider import StatisticsProvider
from utils.config.helpers import get_section
from utils.data.validation import require_columns, record_quality_warning, get_quality_warnings

logger = logging.getLogger(__name__)

TRACE_COLUMNS = ['step', 'removed_predictor', 'p_value', 'remaining_predictors']


class BackwardEliminationSelector:
    """Minimal adequate model by backward elimination."""

    def __init__(self, provider=None, significance_threshold: float = 0.05):
        self.provider = provider or StatisticsProvider()
        self.significance_threshold = significance_threshold

    @classmethod
    def from_config(cls, config: Dict[str, Any], provider=None) -> 'BackwardEliminationSelector':
        threshold = get_section(config, 'analysis', 'model_selection', 'significance_threshold', default=0.05)
        return cls(provider=provider, significance_threshold=float(threshold))

    def _drop_one(self, model):
        """Drop-one p-values in predictor order, with the reduced fits they came from."""
        p_values = []
        reduced_models = []
        for predictor in model.predictors:
            reduced = model.drop(predictor)
            p_values.append(self.provider.likelihood_ratio_test(model, reduced))
            reduced_models.append(reduced)
        return p_values, reduced_models

    def drop_one_table(self, model) -> pd.DataFrame:
        """
        LRT p-value for removing each predictor of ``model`` on its own.

        Rows follow the model's predictor order.
        """
        p_values, _ = self._drop_one(model)
        return pd.DataFrame({
            'predictor': list(model.predictors),
            'p_value': p_values,
            'exceeds_threshold': [bool(p > self.significance_threshold) for p in p_values],
        }, columns=['predictor', 'p_value', 'exceeds_threshold'])

    def _pick_removal(self, p_values: List[float]) -> Optional[int]:
        """Position of the predictor to remove, or None at the terminal state."""
        best = None
        for position, p_value in enumerate(p_values):
            if pd.isna(p_value) or p_value <= self.significance_threshold:
                continue
            # strict '>' keeps the earlier-declared predictor on ties
            if best is None or p_value > p_values[best]:
                best = position
        return best

    def select(self, data: pd.DataFrame, response: str,
               candidate_predictors: Sequence[str]) -> Dict[str, Any]:
        """
        Run backward elimination from ``response ~ candidate_predictors``.

        Args:
            data: Table holding the response and all candidates
            response: Response column
            candidate_predictors: Saturated model predictors, in declaration order

        Returns:
            Dict with initial_model, final_model, trace (DataFrame with
            step, removed_predictor, p_value, remaining_predictors),
            drop_one_table for the final model, n_observations, threshold,
            data (the complete-case rows used) and quality_warnings.
        """
        candidates = list(candidate_predictors)
        if len(set(candidates)) != len(candidates):
            raise ValueError(f"Duplicate candidate predictors: {candidates}")
        if response in candidates:
            raise ValueError(f"Response '{response}' is also listed as a predictor")
        require_columns(data, [response] + candidates, name='Model selection data')

        frame = data.dropna(subset=[response] + candidates).copy()
        n_incomplete = len(data) - len(frame)
        if n_incomplete:
            record_quality_warning(
                frame, 'incomplete_model_rows',
                f"{n_incomplete} rows with a missing response or predictor left out of model selection",
                stage='model_selection', n_rows=int(n_incomplete)
            )

        model = self.provider.fit_linear(frame, response, candidates)
        initial_model = model
        logger.info(f"Saturated model: {model.formula} (n={len(frame)})")

        trace = []
        step = 0
        while model.predictors:
            p_values, reduced_models = self._drop_one(model)
            position = self._pick_removal(p_values)
            if position is None:
                break

            removed = model.predictors[position]
            step += 1
            model = reduced_models[position]
            trace.append({
                'step': step,
                'removed_predictor': removed,
                'p_value': float(p_values[position]),
                'remaining_predictors': ', '.join(model.predictors),
            })
            logger.info(f"Step {step}: dropped {removed} (p={p_values[position]:.3f})")

        final_table = self.drop_one_table(model)

        if not trace:
            logger.info("No predictor exceeded the threshold; saturated model retained")
        logger.info(f"Minimal adequate model: {model.formula}")

        return {
            'initial_model': initial_model,
            'final_model': model,
            'trace': pd.DataFrame(trace, columns=TRACE_COLUMNS),
            'drop_one_table': final_table,
            'n_observations': len(frame),
            'threshold': self.significance_threshold,
            'data': frame,
            'quality_warnings': get_quality_warnings(frame),
        }
