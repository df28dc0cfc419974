"""Tests for turning the raw sheet into the per-state table."""

import pandas as pd
import pytest

from btw_maps.errors import CoercionError, DerivationError, LoadError, RecodeError
from btw_maps.tidy_results import (
    TRACKED_PARTIES,
    SpreadsheetLayout,
    coerce_vote_counts,
    recode_state_ids,
    rename_columns,
    select_state_rows,
    select_vote_columns,
    tidy_state_results,
    validate_recode_table,
)

from .synthetic import STATE_NAMES, make_raw_frame


def _state(states: pd.DataFrame, name: str) -> pd.Series:
    return states[states["state_name"] == name].iloc[0]


class TestSelection:
    def test_selects_state_rows_in_order(self, layout, raw_frame):
        rows = select_state_rows(raw_frame, layout)

        assert len(rows) == 16
        assert list(rows[1]) == [str(i) for i in range(1, 17)]

    def test_row_position_past_end(self, layout, raw_frame):
        with pytest.raises(LoadError, match="outside the data"):
            select_state_rows(raw_frame.iloc[:300], layout)

    def test_keeps_id_name_and_second_votes(self, layout, raw_frame):
        rows = select_state_rows(raw_frame, layout)

        selected = select_vote_columns(rows, layout)

        assert selected.shape[1] == 45
        assert selected.iloc[0, 0] == "1"
        assert selected.iloc[0, 1] == "Schleswig-Holstein"
        # First-vote counts ("999") are gone
        assert "999" not in set(selected.iloc[0, 2:])

    def test_rename_requires_matching_width(self, layout, raw_frame):
        selected = select_vote_columns(select_state_rows(raw_frame, layout), layout)

        with pytest.raises(LoadError, match="45 columns but 44"):
            rename_columns(selected.iloc[:, :44], layout)


class TestCoercion:
    def _renamed(self, layout, overrides):
        raw = make_raw_frame(layout, overrides)
        return rename_columns(select_vote_columns(select_state_rows(raw, layout), layout), layout)

    def test_missing_markers_become_zero(self, layout):
        df = self._renamed(layout, {"1": {"NPD": "NA", "PIRATEN": "", "DKP": "…"}})

        coerced = coerce_vote_counts(df, layout)

        row = coerced.iloc[0]
        assert row["NPD"] == 0
        assert row["PIRATEN"] == 0
        assert row["DKP"] == 0
        assert row["UEBRIGE"] == 0

    def test_thousands_separators(self, layout):
        df = self._renamed(layout, {"5": {"SPD": "2.896.271", "AfD": "1 143 155"}})

        coerced = coerce_vote_counts(df, layout)

        row = coerced[coerced["state_id"] == "5"].iloc[0]
        assert row["SPD"] == 2896271
        assert row["AfD"] == 1143155

    def test_non_numeric_cell_raises(self, layout):
        df = self._renamed(layout, {"3": {"FDP": "n/a?"}})

        with pytest.raises(CoercionError) as excinfo:
            coerce_vote_counts(df, layout)

        assert excinfo.value.column == "FDP"
        assert excinfo.value.row == "Niedersachsen"
        assert excinfo.value.value == "n/a?"

    def test_negative_count_raises(self, layout):
        df = self._renamed(layout, {"1": {"UEBRIGE": "-60"}})

        with pytest.raises(CoercionError) as excinfo:
            coerce_vote_counts(df, layout)

        assert excinfo.value.column == "UEBRIGE"
        assert excinfo.value.row == "Schleswig-Holstein"
        assert excinfo.value.value == "-60"

    @pytest.mark.parametrize("value", ["inf", "-inf", "Infinity"])
    def test_infinite_count_raises(self, layout, value):
        df = self._renamed(layout, {"9": {"CSU": value}})

        with pytest.raises(CoercionError) as excinfo:
            coerce_vote_counts(df, layout)

        assert excinfo.value.column == "CSU"
        assert excinfo.value.value == value

    def test_does_not_modify_input(self, layout):
        df = self._renamed(layout, {})
        before = df.copy()

        coerce_vote_counts(df, layout)

        pd.testing.assert_frame_equal(df, before)


class TestTidyStateResults:
    def test_exactly_sixteen_states(self, layout, raw_frame):
        states = tidy_state_results(raw_frame, layout)

        assert len(states) == 16
        assert set(states["state_name"]) == set(STATE_NAMES.values())

    def test_hand_computed_percentages(self, layout, raw_frame):
        states = tidy_state_results(raw_frame, layout)

        row = states.iloc[0]
        assert row["CDU_CSU"] == 50
        assert row["votes_total"] == 100
        assert row["CDU_CSU_perc"] == pytest.approx(50.0)
        assert row["SPD_perc"] == pytest.approx(20.0)
        assert row["DIE_LINKE_perc"] == pytest.approx(10.0)
        assert row["GRUENE_perc"] == pytest.approx(5.0)
        assert row["FDP_perc"] == pytest.approx(5.0)
        assert row["AfD_perc"] == pytest.approx(10.0)

    def test_minor_parties_count_in_denominator(self, layout):
        raw = make_raw_frame(layout, {"9": {"CDU": "-", "CSU": "40", "BP": "60", "UEBRIGE": "40"}})

        states = tidy_state_results(raw, layout)

        bayern = _state(states, "Bayern")
        # 40 CSU + 20 SPD + 10 + 5 + 5 + 10 + 60 BP + 40 other = 190
        assert bayern["votes_total"] == 190
        assert bayern["CDU_CSU_perc"] == pytest.approx(40 / 190 * 100)

    def test_tracked_shares_never_exceed_100(self, layout):
        raw = make_raw_frame(
            layout,
            {
                "2": {"UEBRIGE": "25"},
                "11": {"CDU": "0", "CSU": "0", "FREIE_WAEHLER": "7"},
                "16": {"AfD": "2.000", "DIE_LINKE": "1.500"},
            },
        )

        states = tidy_state_results(raw, layout)

        tracked = states[[f"{p}_perc" for p in TRACKED_PARTIES]].sum(axis=1)
        assert (tracked <= 100 + 1e-9).all()
        assert tracked.iloc[1] < 100

    def test_zero_total_raises(self, layout):
        zeros = {party: "0" for party in layout.party_columns}
        raw = make_raw_frame(layout, {"4": zeros})

        with pytest.raises(DerivationError) as excinfo:
            tidy_state_results(raw, layout)

        assert excinfo.value.state == "Bremen"

    def test_no_nan_or_infinity(self, layout, raw_frame):
        states = tidy_state_results(raw_frame, layout)

        values = states[[f"{p}_perc" for p in TRACKED_PARTIES]]
        assert values.notna().all().all()
        assert (values.abs() < float("inf")).all().all()

    def test_ids_are_recoded(self, layout, raw_frame):
        states = tidy_state_results(raw_frame, layout)

        assert _state(states, "Bayern")["state_id"] == "1"
        assert _state(states, "Saarland")["state_id"] == "11"
        assert _state(states, "Baden-Württemberg")["state_id"] == "0"
        assert sorted(states["state_id"], key=int) == [str(i) for i in range(16)]

    def test_raw_frame_untouched(self, layout, raw_frame):
        before = raw_frame.copy()

        tidy_state_results(raw_frame, layout)

        pd.testing.assert_frame_equal(raw_frame, before)


class TestRecode:
    def test_table_is_a_bijection(self, layout):
        table = layout.state_id_recode
        inverse = {target: raw for raw, target in table.items()}

        assert len(table) == 16
        assert len(inverse) == 16
        assert all(inverse[table[raw]] == raw for raw in table)

    def test_duplicate_target_rejected(self):
        with pytest.raises(RecodeError, match="both"):
            validate_recode_table({"1": "0", "2": "0"})

    def test_layout_rejects_duplicate_target(self, layout):
        table = dict(layout.state_id_recode)
        table["2"] = table["1"]

        with pytest.raises(RecodeError):
            SpreadsheetLayout(
                state_rows=layout.state_rows,
                column_names=layout.column_names,
                state_id_recode=table,
            )

    def test_unknown_id(self):
        df = pd.DataFrame({"state_id": ["1", "17"], "state_name": ["a", "b"]})

        with pytest.raises(RecodeError) as excinfo:
            recode_state_ids(df, {"1": "14"})

        assert excinfo.value.state_id == "17"

    def test_returns_new_frame(self):
        df = pd.DataFrame({"state_id": ["1", "9"], "state_name": ["a", "b"]})

        recoded = recode_state_ids(df, {"1": "14", "9": "1"})

        assert list(recoded["state_id"]) == ["14", "1"]
        assert list(df["state_id"]) == ["1", "9"]
