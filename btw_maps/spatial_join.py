"""
spatial_join.py - Attach state results to the state boundaries

The boundary file is the driving side of the join: every polygon is kept,
and a polygon whose name has no state result is reported and left without
attributes so the map shows it as "no data".
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from loguru import logger
from shapely.geometry import MultiPolygon, Polygon

from .errors import JoinError, LoadError, RecodeError
from .tidy_results import ID_COLUMN, NAME_COLUMN


@dataclass
class JoinResult:
    """Merged boundaries plus the join problems found along the way."""

    merged: gpd.GeoDataFrame
    errors: List[JoinError] = field(default_factory=list)

    @property
    def unmatched_names(self) -> List[str]:
        return [e.name for e in self.errors]


def load_state_boundaries(path: Union[str, Path], name_column: str) -> gpd.GeoDataFrame:
    """Read the state boundaries and attach the join key.

    ``state_id`` is the feature's position in the file, as a string; this is
    the numbering the recode table in the config targets.
    """
    path = Path(path)
    logger.info(f"🗺️ Loading state boundaries: {path}")

    if not path.exists():
        raise LoadError(f"Boundary file not found: {path}")

    try:
        gdf = gpd.read_file(path)
    except Exception as e:
        raise LoadError(f"Could not read boundary file {path}: {e}") from e

    return prepare_boundaries(gdf, name_column)


def prepare_boundaries(gdf: gpd.GeoDataFrame, name_column: str) -> gpd.GeoDataFrame:
    """Rename the name attribute and number the features in file order."""
    if name_column not in gdf.columns:
        raise LoadError(
            f"Boundary data has no '{name_column}' attribute; available: {list(gdf.columns)}"
        )

    geometry_column = gdf.geometry.name
    boundaries = pd.DataFrame(
        {"name": gdf[name_column].to_numpy(), "geometry": gdf[geometry_column].to_numpy()}
    )
    boundaries["name"] = boundaries["name"].astype(str).str.strip()
    boundaries[ID_COLUMN] = [str(i) for i in range(len(boundaries))]

    logger.success(f"  ✅ {len(boundaries)} boundary features")
    return gpd.GeoDataFrame(boundaries, geometry="geometry", crs=gdf.crs)


def join_state_results(geo: gpd.GeoDataFrame, states: pd.DataFrame) -> JoinResult:
    """Left join state results onto the boundaries.

    Names are checked first: a feature whose name has no state result, or
    whose name belongs to a state with a different id, is recorded as a
    JoinError. Attributes are then attached on state_id; features without a
    match keep NaN attributes.
    """
    logger.info("🔗 Joining state results to boundaries...")

    errors: List[JoinError] = []
    ids_by_name = dict(zip(states[NAME_COLUMN], states[ID_COLUMN]))

    for _, feature in geo.iterrows():
        expected_id = ids_by_name.get(feature["name"])
        if expected_id is None:
            errors.append(JoinError(feature["name"], feature[ID_COLUMN]))
        elif expected_id != feature[ID_COLUMN]:
            errors.append(
                JoinError(
                    feature["name"],
                    feature[ID_COLUMN],
                    f"state result for this name has state_id={expected_id}",
                )
            )

    attributes = states.drop(columns=[NAME_COLUMN])
    merged = geo.merge(attributes, on=ID_COLUMN, how="left")

    # A mismatched name means the attributes on this id belong to another state
    mismatched = {e.state_id for e in errors}
    if mismatched:
        value_columns = [c for c in attributes.columns if c != ID_COLUMN]
        merged.loc[merged[ID_COLUMN].isin(mismatched), value_columns] = np.nan

    for error in errors:
        logger.warning(f"  ⚠️ {error} - rendered as no data")

    matched = len(merged) - len(errors)
    logger.success(f"  ✅ Matched {matched}/{len(merged)} features")

    return JoinResult(merged=gpd.GeoDataFrame(merged, geometry="geometry", crs=geo.crs), errors=errors)


def enclosed_state_ids(lands: Sequence[str], recode: Dict[str, str]) -> List[str]:
    """Translate the enclosed city-states' Land numbers into boundary ids."""
    ids = []
    for land in lands:
        land = str(land)
        if land not in recode:
            raise RecodeError(land, f"Enclosed state '{land}' is not in the recode table")
        ids.append(recode[land])
    return ids


def split_enclosed_states(
    merged: gpd.GeoDataFrame, enclosed_ids: Sequence[str]
) -> Tuple[gpd.GeoDataFrame, gpd.GeoDataFrame]:
    """Separate the enclosed city-states so they can be drawn on top.

    Selection is by state_id, so a city-state whose name failed to match
    still lands in the enclosed group.
    """
    is_enclosed = merged[ID_COLUMN].isin(list(enclosed_ids))
    return merged[~is_enclosed], merged[is_enclosed]


def _polygon_parts(geometry) -> List[Polygon]:
    if geometry is None or geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    raise ValueError(f"Expected polygon geometry, got {geometry.geom_type}")


def flatten_polygons(gdf: gpd.GeoDataFrame) -> pd.DataFrame:
    """Flatten geometries into one row per vertex.

    Each polygon part becomes a ``group`` ("<state_id>.<part>"); ``piece`` 1
    is the exterior ring and higher pieces are holes. Attribute columns are
    repeated on every vertex row.
    """
    attribute_columns = [c for c in gdf.columns if c != "geometry"]
    records = []

    for _, feature in gdf.iterrows():
        attributes = {c: feature[c] for c in attribute_columns}
        for part_no, polygon in enumerate(_polygon_parts(feature.geometry), start=1):
            rings = [polygon.exterior] + list(polygon.interiors)
            for piece, ring in enumerate(rings, start=1):
                for order, (x, y) in enumerate(ring.coords, start=1):
                    records.append(
                        {
                            **attributes,
                            "group": f"{feature[ID_COLUMN]}.{part_no}",
                            "piece": piece,
                            "hole": piece > 1,
                            "order": order,
                            "x": x,
                            "y": y,
                        }
                    )

    flat = pd.DataFrame.from_records(
        records, columns=attribute_columns + ["group", "piece", "hole", "order", "x", "y"]
    )
    logger.debug(f"  Flattened {len(gdf)} features into {len(flat)} vertices")
    return flat
