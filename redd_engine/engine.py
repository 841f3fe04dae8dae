#!/usr/bin/env python3
"""
Rimrock Redd Analysis Engine

Runs one complete analysis of Rimrock Lake drawdown against bull trout redd
counts in the Rimrock Lake population complex:

1. Load the redd workbook, the exclusion sheet, the reservoir time series
   and the April 1 snowpack table
2. Normalize sub-population counts to local populations
3. Blank out known-bad counts
4. Combine the selected local populations into one annual series
5. Attach lagged minimum pool and snowpack covariates
6. Remove the linear year trend
7. Screen each covariate, run backward elimination from the saturated model
   and validate the minimal adequate model
8. Export tables, model summaries and figures

Usage:
    python main.py --config config/config.yaml
"""

import logging
import os
import pandas as pd
import matplotlib.pyplot as plt
from typing import Dict, Any, List

from utils.config.helpers import (
    load_config, setup_logging, get_section, ensure_directory_exists, get_timestamp, save_results
)
from utils.data.validation import carry_quality_warnings, quality_warnings_frame
from data_processing.loaders.redd_loaders import create_loader
from data_processing.processors.covariate_processor import annual_minimum_pool, april_snowpack
from data_processing.processors.redd_processor import ReddCountNormalizer, QualityFilter, SeriesCombiner
from data_processing.processors.lag_join import LagJoinEngine
from analysis.core.statistics_provider import StatisticsProvider
from analysis.core.detrending import detrend_series
from analysis.core.model_selection import BackwardEliminationSelector
from analysis.core.model_validation import validate_model, fit_univariate_models, VIF_THRESHOLD
from visualization.plots.redd_plots import ReddPlotter


class ReddAnalysisEngine:
    """
    Analysis engine for the Rimrock drawdown / redd count study.

    All stages are configured from one YAML file; see config/config.yaml.
    """

    def __init__(self, config_path: str):
        """Initialize the engine from a configuration file."""
        self.config = load_config(config_path)
        setup_logging(self.config)
        self.logger = logging.getLogger(__name__)

        self.provider = StatisticsProvider()

        # Processing stages
        self.normalizer = ReddCountNormalizer(self.config)
        self.quality_filter = QualityFilter(self.config)
        self.combiner = SeriesCombiner(self.config)
        self.lag_engine = LagJoinEngine(self.config)
        self.selector = BackwardEliminationSelector.from_config(self.config, provider=self.provider)

        self.plotter = ReddPlotter(self.config)

    @property
    def response(self) -> str:
        return get_section(self.config, 'analysis', 'response', default='trend_residual')

    @property
    def candidate_predictors(self) -> List[str]:
        """Saturated model predictors; defaults to every lagged covariate column."""
        configured = get_section(self.config, 'analysis', 'model_selection', 'candidate_predictors')
        return list(configured) if configured else self.lag_engine.output_columns()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_inputs(self) -> Dict[str, pd.DataFrame]:
        """Load all four input sources and annualize the covariates."""
        data_config = self.config.get('data', {})

        redd_workbook = data_config['redd_workbook']
        exclusion_workbook = data_config.get('exclusion_workbook', redd_workbook)

        self.logger.info("Loading data...")
        redd_wide = create_loader('redd_counts', self.config).load_data(redd_workbook)
        exclusions = create_loader('exclusions', self.config).load_data(exclusion_workbook)
        reservoir = create_loader('reservoir', self.config).load_data(data_config['reservoir_file'])
        snowpack = create_loader('snowpack', self.config).load_data(data_config['snowpack_file'])

        return {
            'redd_wide': redd_wide,
            'exclusions': exclusions,
            'reservoir_annual': annual_minimum_pool(reservoir),
            'snowpack_annual': april_snowpack(snowpack),
        }

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, redd_wide: pd.DataFrame, exclusions: pd.DataFrame,
                reservoir_annual: pd.DataFrame, snowpack_annual: pd.DataFrame) -> Dict[str, Any]:
        """
        Run every analysis stage on in-memory tables.

        Args:
            redd_wide: Wide redd count table
            exclusions: Known-bad (year, local_population) rows
            reservoir_annual: year, min_pool_af
            snowpack_annual: year, swe_apr

        Returns:
            Dictionary with the intermediate tables, the univariate screen,
            the selection result, the validation of the final model and the
            collected data-quality warnings
        """
        self.logger.info("Normalizing redd counts...")
        normalized = self.normalizer.normalize(redd_wide)

        self.logger.info("Applying exclusion list...")
        filtered = self.quality_filter.apply(normalized, exclusions)

        self.logger.info("Combining local populations...")
        combined = self.combiner.combine(filtered)

        self.logger.info("Attaching lagged covariates...")
        lagged = self.lag_engine.join(combined, {
            'min_pool_af': reservoir_annual,
            'swe_apr': snowpack_annual,
        })

        self.logger.info("Detrending combined series...")
        detrended = detrend_series(lagged, response='total_redds', provider=self.provider)

        # Index by year so residuals and influence measures are labeled by year
        model_frame = detrended.copy()
        model_frame.index = model_frame['year'].astype(int).values
        carry_quality_warnings(model_frame, detrended)

        response = self.response
        candidates = self.candidate_predictors

        self.logger.info("Fitting univariate models...")
        univariate = fit_univariate_models(model_frame, response, candidates, provider=self.provider)

        self.logger.info("Running backward elimination...")
        selection = self.selector.select(model_frame, response, candidates)

        self.logger.info("Validating final model...")
        vif_threshold = get_section(self.config, 'analysis', 'model_selection', 'vif_threshold',
                                    default=VIF_THRESHOLD)
        validation = validate_model(selection['final_model'], provider=self.provider,
                                    vif_threshold=float(vif_threshold))

        warnings_source = carry_quality_warnings(pd.DataFrame(), detrended, selection['data'])

        return {
            'normalized': normalized,
            'filtered': filtered,
            'combined': combined,
            'series': detrended,
            'response': response,
            'candidate_predictors': candidates,
            'univariate': univariate,
            'selection': selection,
            'validation': validation,
            'quality_warnings': quality_warnings_frame(warnings_source),
        }

    def run(self, save_outputs: bool = True, make_plots: bool = True) -> Dict[str, Any]:
        """
        Load the configured inputs, analyze them and export the results.

        Returns:
            The ``analyze`` results plus 'analysis_timestamp' and
            'output_directory' (None when nothing is saved)
        """
        self.logger.info("Starting Rimrock redd analysis")

        try:
            inputs = self.load_inputs()
            results = self.analyze(**inputs)

            results['analysis_timestamp'] = get_timestamp()
            results['output_directory'] = None

            if save_outputs or make_plots:
                output_dir = self._create_output_dir(results['analysis_timestamp'])
                results['output_directory'] = output_dir

                if save_outputs:
                    self.logger.info("Exporting results...")
                    self._export_results(results, output_dir)
                if make_plots:
                    self.logger.info("Generating plots...")
                    self._generate_plots(results, output_dir)

            final_model = results['selection']['final_model']
            self.logger.info(f"Analysis completed: {final_model.formula} "
                             f"({len(results['selection']['trace'])} predictors removed)")
            return results

        except Exception as e:
            self.logger.error(f"Error running redd analysis: {e}")
            raise

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def _create_output_dir(self, timestamp: str) -> str:
        """Create the timestamped output directory with results/ and plots/."""
        base_path = get_section(self.config, 'output', 'base_path', default='outputs')
        run_name = get_section(self.config, 'output', 'run_name', default='rimrock_redds')
        output_dir = os.path.join(base_path, f"{run_name}_{timestamp}")

        for subdir in ['results', 'plots']:
            ensure_directory_exists(os.path.join(output_dir, subdir))

        return output_dir

    def _export_results(self, results: Dict[str, Any], output_dir: str) -> None:
        """Write the CSV tables and the text model summary."""
        results_dir = os.path.join(output_dir, 'results')
        selection = results['selection']

        tables = {
            'normalized_redds.csv': results['normalized'],
            'filtered_redds.csv': results['filtered'],
            'combined_series.csv': results['series'],
            'elimination_trace.csv': selection['trace'],
            'univariate_models.csv': results['univariate'],
            'quality_warnings.csv': results['quality_warnings'],
        }
        for filename, table in tables.items():
            save_results(table, os.path.join(results_dir, filename))

        coefficients = selection['final_model'].coefficient_table.rename_axis('term').reset_index()
        save_results(coefficients, os.path.join(results_dir, 'coefficients.csv'))

        summary_path = os.path.join(results_dir, 'model_summary.txt')
        with open(summary_path, 'w', encoding='utf-8') as fh:
            fh.write(self._format_summary(results))

        self.logger.info(f"Results exported to {results_dir}")

    def _format_summary(self, results: Dict[str, Any]) -> str:
        selection = results['selection']
        validation = results['validation']
        lines = [
            "Rimrock Lake drawdown and bull trout redds",
            "=" * 42,
            f"Response: {results['response']}",
            f"Years in model: {selection['n_observations']}",
            f"Significance threshold: {selection['threshold']}",
            "",
            f"Saturated model: {selection['initial_model'].formula}",
        ]

        trace = selection['trace']
        if trace.empty:
            lines.append("No predictor removed")
        for _, step in trace.iterrows():
            lines.append(f"  step {step['step']}: removed {step['removed_predictor']} "
                         f"(LRT p={step['p_value']:.4f})")

        lines += [
            "",
            f"Minimal adequate model: {selection['final_model'].formula}",
            "",
            selection['final_model'].summary(),
            "",
            "Diagnostics",
            "-----------",
            f"VIF: {validation['vif']}",
            f"Durbin-Watson: {validation['durbin_watson']:.3f}",
            f"Influential years (Cook's D > 4/n): {validation['influential_observations']}",
        ]
        if 'shapiro_wilk' in validation:
            lines.append(f"Shapiro-Wilk p: {validation['shapiro_wilk']['p_value']:.4f}")
        if 'breusch_pagan' in validation:
            lines.append(f"Breusch-Pagan p: {validation['breusch_pagan']['lm_p_value']:.4f}")
        for warning in validation['warnings']:
            lines.append(f"WARNING: {warning}")

        return "\n".join(lines) + "\n"

    def _generate_plots(self, results: Dict[str, Any], output_dir: str) -> None:
        """Save the standard figure set; plotting failures are logged, not fatal."""
        plots_dir = os.path.join(output_dir, 'plots')
        selection = results['selection']
        figures = [
            ('redd_series.png', lambda path: self.plotter.plot_redd_series(
                results['filtered'], results['series'], output_path=path)),
            ('trend.png', lambda path: self.plotter.plot_trend(
                results['series'], output_path=path)),
            ('lag_scatter.png', lambda path: self.plotter.plot_lag_scatter(
                results['series'], results['response'], results['candidate_predictors'], output_path=path)),
            ('model_diagnostics.png', lambda path: self.plotter.plot_model_diagnostics(
                selection['final_model'], output_path=path)),
        ]

        for filename, make_figure in figures:
            try:
                fig = make_figure(os.path.join(plots_dir, filename))
                plt.close(fig)
            except Exception as e:
                self.logger.warning(f"Could not generate {filename}: {e}")
