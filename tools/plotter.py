"""Standalone Command-Line Tool for Generating Plots from traceperf Results.

This script visualizes the results written by a traceperf run. It reads the
`metric_values` and `statistics` tables (Parquet or JSON) from a results
directory and generates interactive plots using the Plotly library.

The tool can be executed in two main modes:
1.  **Detailed Plot Mode (Default)**: For each metric, it generates a line
    plot of the value of every iteration, one trace per test, and/or a box
    plot showing the spread of the iteration values per test.
2.  **Summary Plot Mode (`--summary-plot`)**: It reads the statistics table
    and creates a single bar chart of the per-test averages with the sample
    standard deviation as error bars, one panel per metric.

Usage examples:
  # Generate all default plots for a results directory
  python tools/plotter.py --results-dir results

  # Generate only line plots for two metrics
  python tools/plotter.py --results-dir results --metric Duration \
    --metric GCCount --chart-type line

  # Generate the statistics summary plot
  python tools/plotter.py --results-dir results --summary-plot
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Third-party library imports
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import polars as pl

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("PlotterTool")

# --- Module Constants ---

RESULT_EXTENSIONS = (".parquet", ".json")


# --- Helper Functions ---


def _find_result_table(results_dir: Path, stem: str) -> Optional[Path]:
    """Returns the first `<stem>.parquet` or `<stem>.json` in the directory."""
    for extension in RESULT_EXTENSIONS:
        candidate = results_dir / f"{stem}{extension}"
        if candidate.exists():
            return candidate
    return None


def _load_result_table(path: Path) -> pl.DataFrame:
    if path.suffix == ".json":
        return pl.read_json(path)
    return pl.read_parquet(path)


def _apply_filters(df: pl.DataFrame, args: argparse.Namespace) -> pl.DataFrame:
    """Restricts a result table to the metrics and tests given on the command line."""
    if args.metric:
        logger.info(f"Filtering for user-specified metrics: {args.metric}")
        df = df.filter(pl.col("metric_name").is_in(args.metric))
    if args.test:
        logger.info(f"Filtering for user-specified tests: {args.test}")
        df = df.filter(pl.col("test_name").is_in(args.test))
    return df


def _save_plotly_figure(fig: go.Figure, base_filename: str, output_dir: Path):
    """Saves a Plotly figure to HTML and, if possible, PNG.

    Args:
        fig: The Plotly Figure object to save.
        base_filename: The base name for the output files (without extension).
        output_dir: The directory where the plot files will be saved.
    """
    plot_filename_html = output_dir / f"{base_filename}.html"
    fig.write_html(plot_filename_html)
    logger.info(f"Interactive plot saved to: {plot_filename_html}")

    # PNG export needs the optional 'kaleido' package.
    try:
        plot_filename_png = output_dir / f"{base_filename}.png"
        fig.write_image(plot_filename_png, width=1200, height=600)
        logger.info(f"Static plot saved to: {plot_filename_png}")
    except Exception as e:
        logger.warning(f"Static PNG export skipped ({e}). Install 'kaleido' to enable it.")


def _create_iteration_line_figure(metric_df: pd.DataFrame, metric_name: str) -> go.Figure:
    fig = px.line(
        metric_df,
        x="iteration",
        y="value",
        color="test_name",
        markers=True,
        title=f"{metric_name} per Iteration",
        labels={"iteration": "Iteration", "value": metric_name, "test_name": "Test"},
    )
    fig.update_layout(hovermode="x unified", legend_title_text="Test")
    fig.update_xaxes(dtick=1)
    return fig


def _create_distribution_figure(metric_df: pd.DataFrame, metric_name: str) -> go.Figure:
    fig = px.box(
        metric_df,
        x="test_name",
        y="value",
        points="all",
        title=f"{metric_name} Distribution per Test",
        labels={"test_name": "Test", "value": metric_name},
    )
    return fig


def plot_metric_values(results_dir: Path, output_dir: Path, args: argparse.Namespace) -> List[Path]:
    """Generates the detailed per-metric plots.

    Returns:
        The HTML files that were written.
    """
    values_path = _find_result_table(results_dir, "metric_values")
    if values_path is None:
        logger.info(f"No metric_values table found in {results_dir}.")
        return []

    df_pl = _apply_filters(_load_result_table(values_path), args)
    if df_pl.is_empty():
        logger.warning("No metric values matched the specified filters.")
        return []

    # Plotly Express works on pandas DataFrames.
    df = df_pl.sort(["metric_name", "test_name", "iteration"]).to_pandas()

    written = []
    for metric_name, metric_df in df.groupby("metric_name", sort=True):
        logger.info(f"--- Generating plots for metric {metric_name} ({len(metric_df)} values) ---")
        if args.chart_type in ("line", "all"):
            fig = _create_iteration_line_figure(metric_df, metric_name)
            _save_plotly_figure(fig, f"{metric_name}_iterations_plot", output_dir)
            written.append(output_dir / f"{metric_name}_iterations_plot.html")
        if args.chart_type in ("box", "all"):
            fig = _create_distribution_figure(metric_df, metric_name)
            _save_plotly_figure(fig, f"{metric_name}_distribution_plot", output_dir)
            written.append(output_dir / f"{metric_name}_distribution_plot.html")
    return written


def generate_statistics_summary_plot(results_dir: Path, output_dir: Path, args: argparse.Namespace) -> Optional[Path]:
    """Generates one bar chart of per-test averages with STDEV.S error bars.

    A single-iteration group has no standard deviation and is drawn without
    an error bar.
    """
    statistics_path = _find_result_table(results_dir, "statistics")
    if statistics_path is None:
        logger.error(f"No statistics table found in {results_dir}. Cannot generate summary plot.")
        return None

    df_pl = _apply_filters(_load_result_table(statistics_path), args)
    if df_pl.is_empty():
        logger.warning("No statistics rows matched the specified filters.")
        return None

    df = df_pl.with_columns(pl.col("std_dev").fill_null(0.0)).to_pandas()

    fig = px.bar(
        df,
        x="test_name",
        y="mean",
        error_y="std_dev",
        color="test_name",
        facet_col="metric_name",
        facet_col_wrap=3,
        hover_data={"count": True, "minimum": True, "maximum": True},
        title="Per-Test Averages (error bars: STDEV.S)",
        labels={"test_name": "Test", "mean": "AVERAGE", "metric_name": "Metric"},
    )
    # Each metric has its own unit, so panels do not share a y axis.
    fig.update_yaxes(matches=None, showticklabels=True)
    fig.update_layout(showlegend=False)

    base_filename = f"{results_dir.name}_statistics_summary_plot"
    _save_plotly_figure(fig, base_filename, output_dir)
    return output_dir / f"{base_filename}.html"


def main():
    """Main command-line interface function for the plotter tool."""
    parser = argparse.ArgumentParser(
        description="Generate plots from traceperf result files.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--results-dir",
        type=Path,
        required=True,
        help="Required. Directory holding metric_values and statistics tables.",
    )
    parser.add_argument(
        "--metric",
        type=str,
        action="append",
        help="Only plot this metric (e.g., 'Duration'). Can be specified multiple times.",
    )
    parser.add_argument(
        "--test",
        type=str,
        action="append",
        help="Only plot this test. Can be specified multiple times.",
    )
    parser.add_argument(
        "--chart-type",
        choices=["line", "box", "all"],
        default="all",
        help="Specify which chart types to generate. Default: all.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory to save plots. Defaults to the specified --results-dir.",
    )
    parser.add_argument(
        "--summary-plot",
        action="store_true",
        help="Generate a single summary plot of the statistics table instead of per-metric plots.",
    )

    args = parser.parse_args()

    if not args.results_dir.is_dir():
        logger.error(f"Results directory not found: {args.results_dir}")
        sys.exit(1)

    output_dir = args.output_dir or args.results_dir
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create output directory '{output_dir}': {e}")
        sys.exit(1)

    if args.summary_plot:
        if generate_statistics_summary_plot(args.results_dir, output_dir, args) is None:
            sys.exit(1)
        return

    logger.info(f"Searching for result tables in: {args.results_dir}")
    written = plot_metric_values(args.results_dir, output_dir, args)
    logger.info(f"Generated {len(written)} plot file(s).")


if __name__ == "__main__":
    main()
