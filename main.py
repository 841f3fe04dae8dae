#!/usr/bin/env python3
"""
Main script for the Rimrock Redd Analysis

Relates Rimrock Lake drawdown (annual minimum pool, lagged 0 to 3 years) and
April 1 snowpack to detrended bull trout redd counts of the Rimrock Lake
population complex, and selects a minimal adequate linear model by backward
elimination.

Usage:
    python main.py --config config/config.yaml
    python main.py --config config/config.yaml --no-plots
    python main.py --threshold 0.1 --output-summary summary.csv
"""

import argparse
import logging
import sys
import pandas as pd

from redd_engine.engine import ReddAnalysisEngine


def main():
    """Main function to run the analysis."""
    parser = argparse.ArgumentParser(description='Rimrock Lake Drawdown and Bull Trout Redd Analysis')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip figure generation')
    parser.add_argument('--threshold', type=float,
                        help='Significance threshold for backward elimination (overrides config)')
    parser.add_argument('--output-summary', type=str,
                        help='Output file for summary results')

    args = parser.parse_args()

    if args.threshold is not None and not 0 < args.threshold < 1:
        parser.error("--threshold must be between 0 and 1")

    try:
        engine = ReddAnalysisEngine(args.config)
        if args.threshold is not None:
            engine.selector.significance_threshold = args.threshold

        result = engine.run(save_outputs=True, make_plots=not args.no_plots)
        selection = result['selection']

        if args.output_summary:
            final_model = selection['final_model']
            summary_df = pd.DataFrame([{
                'analysis_timestamp': result['analysis_timestamp'],
                'output_directory': result['output_directory'],
                'response': result['response'],
                'n_years': selection['n_observations'],
                'threshold': selection['threshold'],
                'saturated_model': selection['initial_model'].formula,
                'final_model': final_model.formula,
                'n_removed': len(selection['trace']),
                'r_squared': final_model.fit_statistics['r_squared'],
                'n_quality_warnings': len(result['quality_warnings']),
            }])
            summary_df.to_csv(args.output_summary, index=False)
            print(f"Summary exported to: {args.output_summary}")

        print(f"Minimal adequate model: {selection['final_model'].formula}")
        print(f"Results written to: {result['output_directory']}")

    except Exception as e:
        logging.error(f"Pipeline failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
