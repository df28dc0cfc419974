"""
Bundestag Maps

Choropleth maps of second-vote shares per state for the German Federal
Election 2017: load the Bundeswahlleiter results file, tidy it to one row per
state, join it to the state boundaries and render one map per party.
"""

__version__ = "0.1.0"

from .config_loader import Config
from .errors import (
    CoercionError,
    DerivationError,
    JoinError,
    LoadError,
    PipelineError,
    RecodeError,
)
from .load_results import load_raw_results
from .spatial_join import JoinResult, flatten_polygons, join_state_results, load_state_boundaries
from .tidy_results import TRACKED_PARTIES, SpreadsheetLayout, tidy_state_results

__all__ = [
    "Config",
    "PipelineError",
    "LoadError",
    "CoercionError",
    "DerivationError",
    "RecodeError",
    "JoinError",
    "SpreadsheetLayout",
    "TRACKED_PARTIES",
    "load_raw_results",
    "tidy_state_results",
    "load_state_boundaries",
    "join_state_results",
    "flatten_polygons",
    "JoinResult",
]
