"""
Configuration Loader for the Bundestag Map Pipeline

Loads config.yaml and exposes the spreadsheet layout, file paths and
rendering settings to the pipeline stages.

Usage:
    from btw_maps.config_loader import Config

    config = Config()
    results_path = config.get_input_path('results')
    maps_dir = config.get_output_dir('maps')
    dpi = config.get_visualization_setting('map_dpi')
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

PACKAGED_CONFIG = Path(__file__).parent / "config.yaml"


class Config:
    """Configuration manager for the Bundestag map pipeline."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "columns": {
            "boundary_name": "NAME_1",
        },
        "layout": {
            "header_rows": 5,
            "min_columns": 190,
            "encoding": "utf-8",
            "separator": ";",
            "missing_markers": ["", "-", "NA", ".", "…"],
        },
        "visualization": {
            "map_dpi": 200,
            "figure_width": 8,
            "figure_height": 10,
            "background": "#f5f5f2",
            "edgecolor": "#444444",
            "linewidth": 0.25,
            "missing_color": "#f8f8f8",
            "missing_edgecolor": "#cccccc",
            "missing_hatch": "///",
            "caption_fontsize": 8,
            "caption_color": "#666666",
        },
        "directories": {
            "data": "data",
            "maps": "maps",
        },
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable PIPELINE_CONFIG_PATH
                        2. config.yaml in current directory
                        3. the config.yaml shipped with the package
            project_root_override: Override project root detection
        """
        if config_file is None:
            env_config = os.environ.get("PIPELINE_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            else:
                config_file = PACKAGED_CONFIG
                logger.debug("Using packaged default config.yaml")

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            self.data = yaml.safe_load(f) or {}

    def _find_project_root(self) -> Path:
        """The packaged config resolves paths against the working directory."""
        if self.config_path == PACKAGED_CONFIG.resolve():
            return Path.cwd()
        return self.config_path.parent

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation, falling back to DEFAULTS.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return value

    def get_input_path(self, filename_key: str) -> Path:
        """Get full path to an input file listed under input_files."""
        relative_path = self.data.get("input_files", {}).get(filename_key)
        if not relative_path:
            raise ValueError(f"Input file '{filename_key}' not found in config: input_files")

        return self.project_root / relative_path

    def get_output_dir(self, dir_key: str) -> Path:
        """Get an output directory, creating it if needed."""
        relative_dir = self.get(f"directories.{dir_key}")
        if not relative_dir:
            raise ValueError(f"Unknown directory key: {dir_key}")

        directory = self.project_root / relative_dir
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def get_column_name(self, column_key: str) -> str:
        """Get column name with defaults."""
        column = self.get(f"columns.{column_key}")
        if not isinstance(column, str):
            raise ValueError(f"Column name not found or not a string: {column_key}")
        return column

    def get_visualization_setting(self, setting_key: str) -> Any:
        """Get a visualization setting."""
        return self.get(f"visualization.{setting_key}")
