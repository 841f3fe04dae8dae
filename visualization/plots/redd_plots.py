#!/usr/bin/env python3
"""
Redd series, trend and model diagnostic plots.
"""

import matplotlib.pyplot as plt
import pandas as pd
import numpy as np
import logging
from typing import Optional, Sequence
from scipy import stats

from .base import BasePlotter

logger = logging.getLogger(__name__)


class ReddPlotter(BasePlotter):
    """Figures for the redd count pipeline."""

    def plot_redd_series(self, filtered: pd.DataFrame, combined: Optional[pd.DataFrame] = None,
                         title: str = "Bull Trout Redd Counts",
                         output_path: Optional[str] = None) -> plt.Figure:
        """
        Plot each local population's counts by year, marking excluded counts.

        If ``combined`` is given, the combined total is drawn on a second panel.
        """
        n_panels = 2 if combined is not None else 1
        fig, axes = plt.subplots(n_panels, 1, figsize=(self.figure_size[0], 4 * n_panels),
                                 sharex=True, squeeze=False)
        axes = axes[:, 0]
        fig.suptitle(title, fontsize=14, fontweight='bold')

        ax = axes[0]
        if filtered.empty:
            self._no_data(ax)
        for i, (population, group) in enumerate(filtered.groupby('local_population', sort=True)):
            group = group.sort_values('year')
            ax.plot(group['year'], group['redd_count'], marker='o', markersize=4,
                    linewidth=1.5, color=f'C{i}', label=population)

            if 'excluded' in group.columns and group['excluded'].any():
                raw_column = 'redd_count_raw' if 'redd_count_raw' in group.columns else 'redd_count'
                excluded = group[group['excluded']]
                ax.scatter(excluded['year'], excluded[raw_column], marker='x', s=60,
                           color=self.colors['excluded'], zorder=3)

        if 'excluded' in filtered.columns and filtered['excluded'].any():
            ax.scatter([], [], marker='x', color=self.colors['excluded'], label='Excluded count')
        ax.set_ylabel('Redds')
        ax.set_title('Local populations')
        ax.grid(True, alpha=0.3)
        if not filtered.empty:
            ax.legend(fontsize=8, loc='upper left')

        if combined is not None:
            ax = axes[1]
            ax.plot(combined['year'], combined['total_redds'], marker='o', linewidth=2,
                    color=self.colors['redds'], label='Combined total')
            ax.set_ylabel('Redds')
            ax.set_title('Combined series')
            ax.grid(True, alpha=0.3)
            handles, labels = ax.get_legend_handles_labels()

            if 'min_pool_af' in combined.columns:
                ax_pool = ax.twinx()
                ax_pool.plot(combined['year'], combined['min_pool_af'], marker='s', markersize=4,
                             linestyle=':', color=self.colors['covariate'], label='Minimum pool')
                ax_pool.set_ylabel('Minimum pool (acre-feet)')
                pool_handles, pool_labels = ax_pool.get_legend_handles_labels()
                handles += pool_handles
                labels += pool_labels
            ax.legend(handles, labels, fontsize=8, loc='upper left')

        axes[-1].set_xlabel('Year')
        plt.tight_layout()
        self._save_figure(fig, output_path, "Redd series plot")
        return fig

    def plot_trend(self, detrended: pd.DataFrame, response: str = 'total_redds',
                   output_path: Optional[str] = None) -> plt.Figure:
        """Observed series with its fitted year trend, and the residuals below."""
        fig, (ax_top, ax_bottom) = plt.subplots(2, 1, figsize=self.figure_size, sharex=True)

        ax_top.plot(detrended['year'], detrended[response], marker='o', linewidth=1.5,
                    color=self.colors['redds'], label='Observed')
        ax_top.plot(detrended['year'], detrended['trend_fitted'], linestyle='--', linewidth=2,
                    color=self.colors['trend'], label='Linear trend')
        ax_top.set_ylabel('Redds')
        ax_top.set_title(f'{response} and year trend', fontweight='bold')
        ax_top.legend(fontsize=9)
        ax_top.grid(True, alpha=0.3)

        ax_bottom.bar(detrended['year'], detrended['trend_residual'],
                      color=self.colors['residual'], alpha=0.7)
        ax_bottom.axhline(0, color='black', linewidth=1)
        ax_bottom.set_xlabel('Year')
        ax_bottom.set_ylabel('Residual')
        ax_bottom.grid(True, alpha=0.3)

        plt.tight_layout()
        self._save_figure(fig, output_path, "Trend plot")
        return fig

    def plot_lag_scatter(self, data: pd.DataFrame, response: str, predictors: Sequence[str],
                         output_path: Optional[str] = None) -> plt.Figure:
        """One scatter panel per lagged covariate against the response."""
        predictors = list(predictors)
        n_cols = min(3, max(len(predictors), 1))
        n_rows = int(np.ceil(max(len(predictors), 1) / n_cols))
        fig, axes = plt.subplots(n_rows, n_cols, figsize=(4.5 * n_cols, 4 * n_rows), squeeze=False)
        axes = axes.flatten()

        for ax, predictor in zip(axes, predictors):
            x_clean, y_clean = self._clean_and_align_data(data[predictor], data[response])
            if x_clean.empty:
                self._no_data(ax)
            else:
                ax.scatter(x_clean, y_clean, s=40, alpha=0.7, color=self.colors['covariate'],
                           edgecolors='black', linewidth=0.5)
                self._add_regression_line(ax, x_clean, y_clean)
                ax.legend(fontsize=8)
            ax.set_xlabel(predictor)
            ax.set_ylabel(response)
            ax.set_title(predictor, fontsize=11)
            ax.grid(True, alpha=0.3)

        for ax in axes[len(predictors):]:
            ax.set_visible(False)

        plt.tight_layout()
        self._save_figure(fig, output_path, "Lag scatter plot")
        return fig

    def plot_model_diagnostics(self, model, output_path: Optional[str] = None) -> plt.Figure:
        """Residuals vs fitted, normal Q-Q and Cook's distance for a fitted model."""
        residuals = model.residuals
        fitted = model.fitted_values

        fig, axes = plt.subplots(1, 3, figsize=(15, 4.5))
        fig.suptitle(model.formula, fontsize=12, fontweight='bold')

        ax = axes[0]
        ax.scatter(fitted, residuals, color=self.colors['redds'], edgecolors='black', linewidth=0.5)
        ax.axhline(0, color='black', linestyle='--', linewidth=1)
        ax.set_xlabel('Fitted')
        ax.set_ylabel('Residual')
        ax.set_title('Residuals vs fitted')
        ax.grid(True, alpha=0.3)

        stats.probplot(residuals, dist='norm', plot=axes[1])
        axes[1].set_title('Normal Q-Q')
        axes[1].grid(True, alpha=0.3)

        ax = axes[2]
        cooks = model.results.get_influence().cooks_distance[0]
        labels = [str(label) for label in residuals.index]
        ax.bar(range(len(cooks)), cooks, color=self.colors['residual'], alpha=0.7)
        ax.axhline(4.0 / model.nobs, color=self.colors['trend'], linestyle='--', linewidth=1,
                   label='4/n')
        ax.set_xticks(range(len(cooks)))
        ax.set_xticklabels(labels, rotation=90, fontsize=7)
        ax.set_title("Cook's distance")
        ax.legend(fontsize=8)

        plt.tight_layout()
        self._save_figure(fig, output_path, "Model diagnostics plot")
        return fig
