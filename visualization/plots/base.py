#!/usr/bin/env python3
"""
Base plotting functionality for redd analysis figures.

This module contains the BasePlotter class with shared configuration,
styling, and helper methods used by the specialized plotters.
"""

import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd
import numpy as np
import logging
from typing import Dict, Any, Optional, Tuple
from scipy import stats

logger = logging.getLogger(__name__)

sns.set_palette("colorblind")


class BasePlotter:
    """Base class for all specialized plotters with shared functionality."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize base plotter with configuration."""
        self.config = config or {}
        self.viz_config = self.config.get('visualization', {}) or {}

        # Colors by series role
        self.colors = {
            'redds': '#1f77b4',
            'trend': '#d62728',
            'excluded': '#7f7f7f',
            'residual': '#2ca02c',
            'covariate': '#ff7f0e',
        }
        self.colors.update(self.viz_config.get('colors', {}) or {})

        self.figure_size = tuple(self.viz_config.get('figure_size', [10, 6]))
        self.dpi = self.viz_config.get('dpi', 150)

        style = self.viz_config.get('style', 'seaborn-v0_8-whitegrid')
        try:
            plt.style.use(style)
        except (OSError, ValueError):
            logger.warning(f"Style '{style}' not available, using default")

    def _clean_and_align_data(self, x_data: pd.Series, y_data: pd.Series) -> Tuple[pd.Series, pd.Series]:
        """Drop index positions where either series is missing."""
        mask = ~(x_data.isna() | y_data.isna())
        return x_data[mask], y_data[mask]

    def _add_regression_line(self, ax, x_data, y_data, **kwargs):
        """Add least-squares line with slope and R² in the legend."""
        if len(x_data) < 2 or np.ptp(np.asarray(x_data, dtype=float)) == 0:
            return
        slope, intercept, r_value, p_value, std_err = stats.linregress(x_data, y_data)
        line_x = np.array([x_data.min(), x_data.max()])
        line_y = slope * line_x + intercept

        line_kwargs = {'color': self.colors['trend'], 'alpha': 0.8, 'linewidth': 2}
        line_kwargs.update(kwargs)
        label = line_kwargs.pop('label', f'OLS (R²={r_value**2:.2f}, p={p_value:.3f})')
        ax.plot(line_x, line_y, label=label, **line_kwargs)

    def _no_data(self, ax, message: str = 'No valid data'):
        ax.text(0.5, 0.5, message, transform=ax.transAxes,
                ha='center', va='center', fontsize=12)

    def _save_figure(self, fig, output_path: Optional[str], plot_type: str):
        """Save figure with appropriate settings and logging."""
        if output_path:
            fig.savefig(output_path, dpi=self.dpi, bbox_inches='tight',
                        facecolor='white', edgecolor='none')
            logger.info(f"{plot_type} saved to {output_path}")
