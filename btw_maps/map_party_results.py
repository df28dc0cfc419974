"""
map_party_results.py - Choropleth maps of party vote shares per state

One map per tracked party. Each map is drawn in two passes: every state
except the enclosed city-states, then the city-states on top, both with the
same colormap and norm so the legend holds for the whole map.

States without results are drawn with the "no data" style (pale fill, grey
hatching) and get their own legend entry.
"""

import pathlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import geopandas as gpd  # type: ignore
import matplotlib as mpl
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd  # type: ignore
from loguru import logger
from matplotlib.colors import LinearSegmentedColormap, TwoSlopeNorm
from matplotlib.patches import Patch
from matplotlib.patches import Polygon as PolygonPatch

from .config_loader import Config
from .spatial_join import enclosed_state_ids, split_enclosed_states
from .tidy_results import ID_COLUMN

MAIN_PASS = "main"
ENCLOSED_PASS = "enclosed"
MAIN_ZORDER = 1
ENCLOSED_ZORDER = 2


@dataclass(frozen=True)
class PartyStyle:
    """Rendering options for one party's map."""

    field: str
    party_label: str
    low_color: str
    mid_color: str
    high_color: str
    midpoint: float
    legend_low: float
    legend_high: float
    legend_breaks: Tuple[float, ...]
    title: str = "German Federal Election 2017"
    subtitle: str = ""

    def __post_init__(self) -> None:
        if not self.legend_low < self.midpoint < self.legend_high:
            raise ValueError(
                f"{self.field}: midpoint {self.midpoint} must lie strictly between "
                f"{self.legend_low} and {self.legend_high}"
            )
        if not self.subtitle:
            object.__setattr__(self, "subtitle", f"Share of the {self.party_label} Vote (%)")


def load_party_styles(config: Config) -> Dict[str, PartyStyle]:
    """Build the PartyStyle for every entry under ``parties`` in the config."""
    title = config.get_visualization_setting("title") or "German Federal Election 2017"
    styles = {}
    for field_name, options in (config.get("parties") or {}).items():
        styles[field_name] = PartyStyle(
            field=field_name,
            party_label=options["label"],
            low_color=options["low_color"],
            mid_color=options["mid_color"],
            high_color=options["high_color"],
            midpoint=float(options["midpoint"]),
            legend_low=float(options["legend_low"]),
            legend_high=float(options["legend_high"]),
            legend_breaks=tuple(float(b) for b in options["legend_breaks"]),
            title=options.get("title", title),
            subtitle=options.get("subtitle", ""),
        )

    if not styles:
        raise ValueError("No party styles configured under 'parties'")

    logger.debug(f"Loaded party styles: {list(styles)}")
    return styles


def build_colormap(style: PartyStyle) -> Tuple[LinearSegmentedColormap, TwoSlopeNorm]:
    """Diverging low-mid-high colormap centered on the style's midpoint."""
    cmap = LinearSegmentedColormap.from_list(
        f"{style.field}_ramp", [style.low_color, style.mid_color, style.high_color], N=256
    )
    norm = TwoSlopeNorm(vmin=style.legend_low, vcenter=style.midpoint, vmax=style.legend_high)
    return cmap, norm


def _missing_style(config: Config) -> Dict[str, object]:
    return {
        "facecolor": config.get_visualization_setting("missing_color"),
        "edgecolor": config.get_visualization_setting("missing_edgecolor"),
        "hatch": config.get_visualization_setting("missing_hatch"),
        "linewidth": config.get_visualization_setting("linewidth"),
    }


def _new_figure(config: Config) -> Tuple[plt.Figure, plt.Axes]:
    background = config.get_visualization_setting("background")
    fig, ax = plt.subplots(
        figsize=(
            config.get_visualization_setting("figure_width"),
            config.get_visualization_setting("figure_height"),
        ),
        dpi=config.get_visualization_setting("map_dpi"),
    )
    fig.patch.set_facecolor(background)
    ax.set_facecolor(background)
    return fig, ax


def _draw_pass(
    ax: plt.Axes,
    gdf: gpd.GeoDataFrame,
    style: PartyStyle,
    cmap: LinearSegmentedColormap,
    norm: TwoSlopeNorm,
    config: Config,
    pass_name: str,
    zorder: int,
) -> bool:
    """Draw one pass of polygons, returning True if any had no data."""
    values = pd.to_numeric(gdf[style.field], errors="coerce")
    has_data = values.notna()
    before = len(ax.collections)

    if has_data.any():
        colors = cmap(norm(values[has_data].to_numpy()))
        gdf[has_data].plot(
            ax=ax,
            color=colors,
            edgecolor=config.get_visualization_setting("edgecolor"),
            linewidth=config.get_visualization_setting("linewidth"),
            zorder=zorder,
        )

    if (~has_data).any():
        gdf[~has_data].plot(ax=ax, zorder=zorder, **_missing_style(config))

    for collection in ax.collections[before:]:
        collection.set_gid(pass_name)

    return bool((~has_data).any())


def _apply_theme(fig: plt.Figure, ax: plt.Axes, style: PartyStyle, config: Config) -> None:
    """Minimal theme: no axes, left-aligned title block, caption at the bottom."""
    ax.set_axis_off()
    ax.set_aspect("equal")

    fig.text(0.05, 0.95, style.title, ha="left", va="top", fontsize=16, fontweight="bold")
    fig.text(0.05, 0.915, style.subtitle, ha="left", va="top", fontsize=12, color="#333333")

    caption = config.get_visualization_setting("caption")
    if caption:
        fig.text(
            0.95,
            0.02,
            caption,
            ha="right",
            va="bottom",
            fontsize=config.get_visualization_setting("caption_fontsize"),
            color=config.get_visualization_setting("caption_color"),
            style="italic",
        )


def _add_colorbar(
    fig: plt.Figure, style: PartyStyle, cmap: LinearSegmentedColormap, norm: TwoSlopeNorm, config: Config
) -> None:
    """Horizontal colorbar with fixed proportions below the map."""
    box = config.get_visualization_setting("colorbar_box") or [0.25, 0.07, 0.5, 0.018]
    cbar_ax = fig.add_axes(tuple(box))
    sm = mpl.cm.ScalarMappable(norm=norm, cmap=cmap)
    cbar = fig.colorbar(sm, cax=cbar_ax, orientation="horizontal", ticks=list(style.legend_breaks))

    cbar.ax.tick_params(labelsize=9, colors="#333333", length=0)
    cbar.ax.set_xticklabels([f"{b:g}" for b in style.legend_breaks])
    cbar.outline.set_edgecolor("#666666")  # type: ignore
    cbar.outline.set_linewidth(0.5)  # type: ignore
    cbar.set_label(style.subtitle, fontsize=9, color="#333333", labelpad=4)


def _add_missing_legend(ax: plt.Axes, config: Config) -> None:
    patch = Patch(label="No data", **_missing_style(config))  # type: ignore[arg-type]
    ax.legend(handles=[patch], loc="lower left", frameon=False, fontsize=9)


def _save(fig: plt.Figure, fname: Union[str, pathlib.Path], config: Config) -> None:
    fig.savefig(
        fname,
        dpi=config.get_visualization_setting("map_dpi"),
        facecolor=fig.get_facecolor(),
        edgecolor="none",
        bbox_inches="tight",
        pad_inches=0.1,
    )
    logger.info(f"  🖼️ Map saved: {fname}")


def plot_party_map(
    merged: gpd.GeoDataFrame,
    style: PartyStyle,
    config: Config,
    enclosed_ids: Sequence[str],
    fname: Optional[Union[str, pathlib.Path]] = None,
) -> plt.Figure:
    """
    Draw the styled choropleth for one party.

    Args:
        merged: Boundaries joined with state results
        style: Party rendering options
        config: Configuration instance
        enclosed_ids: state_ids of the city-states drawn in the second pass
        fname: If given, save the figure there

    Returns:
        The matplotlib Figure (still open; the caller closes it)
    """
    cmap, norm = build_colormap(style)
    main, enclosed = split_enclosed_states(merged, enclosed_ids)

    fig, ax = _new_figure(config)
    missing = _draw_pass(ax, main, style, cmap, norm, config, MAIN_PASS, MAIN_ZORDER)
    missing |= _draw_pass(ax, enclosed, style, cmap, norm, config, ENCLOSED_PASS, ENCLOSED_ZORDER)

    _apply_theme(fig, ax, style, config)
    _add_colorbar(fig, style, cmap, norm, config)
    if missing:
        _add_missing_legend(ax, config)

    if fname is not None:
        _save(fig, fname, config)
    return fig


def plot_basic_map(
    flat: pd.DataFrame,
    style: PartyStyle,
    config: Config,
    enclosed_ids: Sequence[str],
) -> plt.Figure:
    """Draw the unstyled map from flattened vertex rows.

    Exterior rings only; same two-pass order and color mapping as
    plot_party_map.
    """
    cmap, norm = build_colormap(style)
    fig, ax = plt.subplots()
    outlines = flat[~flat["hole"]]
    is_enclosed = outlines[ID_COLUMN].isin(list(enclosed_ids))

    for subset, pass_name, zorder in (
        (outlines[~is_enclosed], MAIN_PASS, MAIN_ZORDER),
        (outlines[is_enclosed], ENCLOSED_PASS, ENCLOSED_ZORDER),
    ):
        for _, ring in subset.groupby("group", sort=False):
            ring = ring.sort_values("order")
            value = pd.to_numeric(ring[style.field], errors="coerce").iloc[0]
            if pd.isna(value):
                patch_style = _missing_style(config)
            else:
                patch_style = {"facecolor": cmap(norm(value)), "edgecolor": "#444444", "linewidth": 0.25}
            patch = PolygonPatch(
                np.column_stack([ring["x"], ring["y"]]), closed=True, zorder=zorder, **patch_style
            )
            patch.set_gid(pass_name)
            ax.add_patch(patch)

    ax.autoscale_view()
    ax.set_aspect("equal")
    ax.set_title(f"{style.title}\n{style.subtitle}")
    fig.colorbar(mpl.cm.ScalarMappable(norm=norm, cmap=cmap), ax=ax, orientation="horizontal")
    return fig


def render_all_party_maps(
    merged: gpd.GeoDataFrame,
    styles: Dict[str, PartyStyle],
    config: Config,
    output_dir: Union[str, pathlib.Path],
    parties: Optional[Sequence[str]] = None,
) -> List[pathlib.Path]:
    """Render and save one map per party style.

    Args:
        parties: Subset of style fields to render; all styles if None

    Returns:
        Paths of the saved images
    """
    output_dir = pathlib.Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    recode = {str(k): str(v) for k, v in config.get("layout.state_id_recode", {}).items()}
    enclosed_ids = enclosed_state_ids(config.get("enclosed_states", []), recode)

    selected = list(parties) if parties else list(styles)
    unknown = [p for p in selected if p not in styles]
    if unknown:
        raise ValueError(f"No style configured for {unknown}; available: {list(styles)}")

    logger.info(f"🎨 Rendering {len(selected)} party maps...")
    paths = []
    for field_name in selected:
        fname = output_dir / f"btw17_{field_name}.png"
        fig = plot_party_map(merged, styles[field_name], config, enclosed_ids, fname=fname)
        plt.close(fig)
        paths.append(fname)

    logger.success(f"  ✅ Rendered {len(paths)} maps to {output_dir}")
    return paths
