"""Shared fixtures: a synthetic results sheet and a toy set of state boundaries."""

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from btw_maps.config_loader import PACKAGED_CONFIG, Config  # noqa: E402
from btw_maps.tidy_results import SpreadsheetLayout  # noqa: E402

from .synthetic import make_boundaries, make_raw_frame  # noqa: E402


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(PACKAGED_CONFIG, project_root_override=tmp_path)


@pytest.fixture
def layout(config) -> SpreadsheetLayout:
    return SpreadsheetLayout.from_config(config)


@pytest.fixture
def raw_frame(layout) -> pd.DataFrame:
    return make_raw_frame(layout)


@pytest.fixture
def boundaries() -> gpd.GeoDataFrame:
    return make_boundaries()
