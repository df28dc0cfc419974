"""
tidy_results.py - From the raw results sheet to one row per state

Turns the positional raw frame into a tidy table: one row per state, one
named column per party, CDU and CSU merged, second-vote percentages for the
tracked parties, and state ids recoded into the boundary dataset's numbering.

Every step returns a new frame; the input is never modified.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from .errors import CoercionError, DerivationError, LoadError, RecodeError

if TYPE_CHECKING:
    from .config_loader import Config

ID_COLUMN = "state_id"
NAME_COLUMN = "state_name"
TOTAL_COLUMN = "votes_total"
COALITION_COLUMN = "CDU_CSU"

# Parties that get a percentage column and a map
TRACKED_PARTIES = ("CDU_CSU", "SPD", "DIE_LINKE", "GRUENE", "FDP", "AfD")

# Thousands separators between digit groups, e.g. "1.234.567" or "12 345"
THOUSANDS_PATTERN = r"(?<=\d)[.,\s'](?=\d{3}(?:\D|$))"


@dataclass(frozen=True)
class SpreadsheetLayout:
    """Positional layout of the results file.

    Row and column positions are 1-indexed. ``state_rows`` counts from the
    first row after the header block; ``candidate_columns`` is applied to the
    frame left after the vote column selection.
    """

    state_rows: Tuple[int, ...]
    column_names: Tuple[str, ...]
    state_id_recode: Dict[str, str] = field(hash=False)
    vote_columns: Tuple[int, int] = (20, 190)
    candidate_columns: Tuple[int, int] = (3, 87)
    header_rows: int = 5
    min_columns: int = 190
    missing_markers: FrozenSet[str] = frozenset({"", "-", "NA", ".", "…"})
    encoding: str = "utf-8"
    separator: str = ";"

    def __post_init__(self) -> None:
        validate_recode_table(self.state_id_recode)
        for required in (ID_COLUMN, NAME_COLUMN, "CDU", "CSU"):
            if required not in self.column_names:
                raise ValueError(f"Layout column_names must include '{required}'")

    @property
    def party_columns(self) -> List[str]:
        """Names of the vote-count columns (everything after id and name)."""
        return list(self.column_names[2:])

    @classmethod
    def from_config(cls, config: "Config") -> "SpreadsheetLayout":
        """Build the layout from the ``layout`` section of the config."""
        section = config.get("layout", {})
        missing = [key for key in ("state_rows", "column_names", "state_id_recode") if key not in section]
        if missing:
            raise ValueError(f"Config layout section is missing: {missing}")

        return cls(
            state_rows=tuple(int(p) for p in section["state_rows"]),
            column_names=tuple(str(name) for name in section["column_names"]),
            state_id_recode={str(k): str(v) for k, v in section["state_id_recode"].items()},
            vote_columns=tuple(section.get("vote_columns", (20, 190))),  # type: ignore[arg-type]
            candidate_columns=tuple(section.get("candidate_columns", (3, 87))),  # type: ignore[arg-type]
            header_rows=int(config.get("layout.header_rows")),
            min_columns=int(config.get("layout.min_columns")),
            missing_markers=frozenset(str(m) for m in config.get("layout.missing_markers")),
            encoding=config.get("layout.encoding"),
            separator=config.get("layout.separator"),
        )


def validate_recode_table(table: Dict[str, str]) -> None:
    """Check that the id recode table is a bijection.

    Raises:
        RecodeError: if two raw ids map to the same target id
    """
    seen: Dict[str, str] = {}
    for raw_id, target_id in table.items():
        if target_id in seen:
            raise RecodeError(
                raw_id,
                f"Recode table maps both '{seen[target_id]}' and '{raw_id}' to '{target_id}'",
            )
        seen[target_id] = raw_id


def select_state_rows(raw: pd.DataFrame, layout: SpreadsheetLayout) -> pd.DataFrame:
    """Pick the state aggregate rows by position."""
    out_of_range = [p for p in layout.state_rows if p < 1 or p > len(raw)]
    if out_of_range:
        raise LoadError(
            f"State row positions {out_of_range} are outside the data ({len(raw)} rows)"
        )

    rows = raw.iloc[[p - 1 for p in layout.state_rows]].reset_index(drop=True)
    logger.debug(f"  Selected {len(rows)} state rows")
    return rows


def select_vote_columns(raw: pd.DataFrame, layout: SpreadsheetLayout) -> pd.DataFrame:
    """Keep id, name and the second-vote count columns.

    First keeps columns 1, 2 and the even positions of ``vote_columns``, then
    drops the odd positions of ``candidate_columns`` from that selection.
    """
    first, last = layout.vote_columns
    start = first if first % 2 == 0 else first + 1
    kept = [1, 2] + list(range(start, last + 1, 2))

    missing = [c for c in kept if c not in raw.columns]
    if missing:
        raise LoadError(f"Results table is missing column positions {missing[:5]}")

    selected = raw[kept]

    drop_first, drop_last = layout.candidate_columns
    dropped = {p for p in range(drop_first, drop_last + 1) if p % 2 == 1}
    positions = [i for i in range(1, len(kept) + 1) if i not in dropped]

    result = selected.iloc[:, [p - 1 for p in positions]].copy()
    result.columns = range(1, len(positions) + 1)
    logger.debug(f"  Kept {len(positions)} of {raw.shape[1]} columns")
    return result


def rename_columns(df: pd.DataFrame, layout: SpreadsheetLayout) -> pd.DataFrame:
    """Name the retained positional columns."""
    if df.shape[1] != len(layout.column_names):
        raise LoadError(
            f"Layout names {len(layout.column_names)} columns but {df.shape[1]} were retained"
        )

    renamed = df.copy()
    renamed.columns = list(layout.column_names)
    return renamed


def coerce_vote_counts(df: pd.DataFrame, layout: SpreadsheetLayout) -> pd.DataFrame:
    """Make the id a string and every party column numeric.

    Missing markers become 0. Anything else that does not parse as a
    finite, non-negative number raises CoercionError.
    """
    coerced = df.copy()
    coerced[ID_COLUMN] = coerced[ID_COLUMN].astype(str).str.strip()
    coerced[NAME_COLUMN] = coerced[NAME_COLUMN].astype(str).str.strip()

    for col in layout.party_columns:
        values = coerced[col].fillna("").astype(str).str.strip()
        is_missing = values.isin(layout.missing_markers)
        cleaned = values.str.replace(THOUSANDS_PATTERN, "", regex=True)
        numbers = pd.to_numeric(cleaned.where(~is_missing), errors="coerce")

        bad = (numbers.isna() | ~np.isfinite(numbers.fillna(0)) | (numbers < 0)) & ~is_missing
        if bad.any():
            idx = bad.idxmax()
            raise CoercionError(col, coerced.at[idx, NAME_COLUMN], values.at[idx])

        coerced[col] = numbers.fillna(0).astype(float)

    return coerced


def add_vote_percentages(df: pd.DataFrame, layout: SpreadsheetLayout) -> pd.DataFrame:
    """Merge CDU and CSU and derive percentages for the tracked parties.

    The denominator is the sum over every party column, so the tracked
    percentages do not add up to 100.
    """
    result = df.copy()
    result[COALITION_COLUMN] = result["CDU"] + result["CSU"]
    result[TOTAL_COLUMN] = result[layout.party_columns].sum(axis=1)

    empty = result[result[TOTAL_COLUMN] <= 0]
    if len(empty) > 0:
        raise DerivationError(empty.iloc[0][NAME_COLUMN])

    for party in TRACKED_PARTIES:
        if party not in result.columns:
            raise LoadError(f"Tracked party column '{party}' is not in the layout")
        result[f"{party}_perc"] = result[party] / result[TOTAL_COLUMN] * 100
        logger.debug(f"  Added {party}_perc")

    return result


def recode_state_ids(df: pd.DataFrame, recode: Dict[str, str]) -> pd.DataFrame:
    """Translate Land numbers into the boundary dataset's feature ids."""
    unknown = [state_id for state_id in df[ID_COLUMN] if state_id not in recode]
    if unknown:
        raise RecodeError(unknown[0])

    recoded = df.copy()
    recoded[ID_COLUMN] = df[ID_COLUMN].map(recode)
    return recoded


def tidy_state_results(raw: pd.DataFrame, layout: SpreadsheetLayout) -> pd.DataFrame:
    """Run every tidy step on the raw results frame.

    Returns:
        One row per state with state_id (boundary numbering), state_name, the
        party vote counts, CDU_CSU, votes_total and <party>_perc columns
    """
    logger.info("🧹 Tidying state results...")

    states = select_state_rows(raw, layout)
    states = select_vote_columns(states, layout)
    states = rename_columns(states, layout)
    states = coerce_vote_counts(states, layout)
    states = add_vote_percentages(states, layout)
    states = recode_state_ids(states, layout.state_id_recode)

    if len(states) != len(layout.state_rows):
        raise LoadError(f"Expected {len(layout.state_rows)} states, got {len(states)}")

    logger.success(f"  ✅ {len(states)} states, {len(TRACKED_PARTIES)} tracked parties")
    for _, row in states.iterrows():
        shares = ", ".join(f"{p} {row[f'{p}_perc']:.1f}" for p in TRACKED_PARTIES)
        logger.debug(f"    {row[NAME_COLUMN]} ({row[ID_COLUMN]}): {shares}")

    return states
