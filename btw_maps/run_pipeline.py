#!/usr/bin/env python3
"""
Bundestag 2017 Map Pipeline with Click CLI

Runs the whole pipeline: load the results file, tidy it into one row per
state, join it to the state boundaries and render one choropleth per party.

Usage:
    btw-maps                                   # All six party maps
    btw-maps --party AfD_perc --party SPD_perc # Selected maps only
    btw-maps --config my_config.yaml           # Custom layout or paths
    btw-maps --verbose                         # DEBUG level logging
    btw-maps --log-file "pipeline.log"         # Also save logs to file
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import click
import geopandas as gpd
import pandas as pd
from loguru import logger

from .config_loader import Config
from .errors import JoinError, PipelineError
from .load_results import load_raw_results
from .map_party_results import load_party_styles, render_all_party_maps
from .spatial_join import join_state_results, load_state_boundaries
from .tidy_results import SpreadsheetLayout, tidy_state_results


@dataclass
class PipelineResult:
    """Everything a run produced, for callers that want more than the images."""

    states: pd.DataFrame
    merged: gpd.GeoDataFrame
    join_errors: List[JoinError] = field(default_factory=list)
    map_paths: List[Path] = field(default_factory=list)


def run_pipeline(
    config: Config,
    parties: Optional[Sequence[str]] = None,
    output_dir: Optional[Path] = None,
) -> PipelineResult:
    """Load, tidy, join and render.

    Raises:
        PipelineError: on any fatal stage failure; join problems are returned
            in the result instead
    """
    layout = SpreadsheetLayout.from_config(config)
    styles = load_party_styles(config)

    raw = load_raw_results(config.get_input_path("results"), layout)
    states = tidy_state_results(raw, layout)

    boundaries = load_state_boundaries(
        config.get_input_path("boundaries"), config.get_column_name("boundary_name")
    )
    joined = join_state_results(boundaries, states)

    maps_dir = output_dir or config.get_output_dir("maps")
    paths = render_all_party_maps(joined.merged, styles, config, maps_dir, parties=parties)

    return PipelineResult(
        states=states, merged=joined.merged, join_errors=joined.errors, map_paths=paths
    )


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Configure loguru logging with appropriate levels.

    Args:
        verbose: If True, set log level to DEBUG
        enable_trace: If True, enable TRACE level logging for deep debugging
    """
    logger.remove()

    if enable_trace:
        log_level = "TRACE"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
    elif verbose:
        log_level = "DEBUG"
        log_format = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{function}</cyan> | <level>{message}</level>"
    else:
        log_level = "INFO"
        log_format = (
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )

    if verbose:
        logger.debug("🔧 Verbose logging enabled (DEBUG level)")
    if enable_trace:
        logger.trace("🔍 Trace logging enabled - maximum detail mode")


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to config.yaml (default: PIPELINE_CONFIG_PATH, ./config.yaml, packaged config)",
)
@click.option(
    "--party",
    "parties",
    multiple=True,
    help="Percentage field to map, e.g. AfD_perc (repeatable; default: all parties)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the rendered maps (default: directories.maps from config)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable DEBUG level logging")
@click.option("--trace", is_flag=True, help="Enable TRACE level logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
def cli(
    config_file: Optional[Path],
    parties: Sequence[str],
    output_dir: Optional[Path],
    verbose: bool,
    trace: bool,
    log_file: Optional[str],
) -> None:
    """Render the Bundestagswahl 2017 party vote-share maps."""
    setup_logging(verbose=verbose, enable_trace=trace)

    if log_file:
        logger.add(
            log_file,
            level="TRACE" if trace else ("DEBUG" if verbose else "INFO"),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    logger.info("🗳️ German Federal Election 2017 - party maps")

    try:
        config = Config(config_file)
        result = run_pipeline(config, parties=parties, output_dir=output_dir)
    except (PipelineError, FileNotFoundError, ValueError) as e:
        logger.critical(f"💥 Pipeline failed: {type(e).__name__}: {e}")
        if not trace:
            logger.info("💡 For detailed debugging, run with --trace")
        else:
            logger.exception(e)
        sys.exit(1)

    if result.join_errors:
        logger.warning(
            f"⚠️ {len(result.join_errors)} boundary feature(s) rendered as no data: "
            f"{[e.name for e in result.join_errors]}"
        )
    logger.success(f"🎉 Done: {len(result.map_paths)} maps written")


if __name__ == "__main__":
    cli()
