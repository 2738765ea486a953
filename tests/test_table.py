"""Unit tests for the summary table payload."""

from __future__ import annotations

from typing import Any

import pandas as pd
import pytest

from het.config import DEFAULT_COLUMN_HEADERS, TableConfig
from het.errors import DatasetFetchError
from het.table import build_table, compute_table, table_frame

pytestmark = pytest.mark.unit


def _rows_by_label(payload: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {row["label"]: row for row in payload["rows"]}


def test_rate_table_with_annotations() -> None:
    """Rate cells show the rounded value and the (count / population) pair."""

    frame = pd.DataFrame(
        [
            {"time_period": "2021", "race_and_ethnicity": "All", "hiv_prevalence_per_100k": 100, "hiv_prevalence_count": 500, "population": 50000},
            {"time_period": "2021", "race_and_ethnicity": "Black (NH)", "hiv_prevalence_per_100k": 150, "hiv_prevalence_count": 75, "population": 5000},
        ]
    )
    config = TableConfig(metric_fields=["hiv_prevalence_per_100k"], column_headers=["Prevalence"], time_filter="2021")

    payload = compute_table(config, frame)

    assert payload["state"] == "ok"
    assert payload["headers"] == ["Race And Ethnicity", "Prevalence"]
    assert [row["label"] for row in payload["rows"]] == ["All", "Black (NH)"]
    assert payload["rows"][0]["is_aggregate"] is True
    all_cell, black_cell = (row["cells"][0] for row in payload["rows"])
    assert (all_cell["value"], all_cell["annotation"], all_cell["unit"]) == ("100", "(500 / 50,000)", "")
    assert (black_cell["value"], black_cell["annotation"]) == ("150", "(75 / 5,000)")


def test_default_table_over_hiv_dataset(hiv_frame: pd.DataFrame) -> None:
    """Rates, derived shares and population shares are formatted per column."""

    payload = compute_table(TableConfig(), hiv_frame)
    rows = _rows_by_label(payload)

    assert payload["state"] == "ok"
    assert payload["period"] == "2021"
    assert payload["headers"] == ["Race And Ethnicity", *DEFAULT_COLUMN_HEADERS]
    assert list(rows) == ["All", "asian (NH)", "Black (NH)", "Hispanic", "White (NH)"]

    rate, share, population = rows["Black (NH)"]["cells"]
    assert (rate["value"], rate["annotation"]) == ("150", "(75 / 50,000)")
    assert (share["value"], share["unit"]) == ("15.0%", "of HIV prevalence")
    assert (population["value"], population["unit"]) == ("10.0%", "of population")

    rate, share, population = rows["Hispanic"]["cells"]
    assert (rate["value"], rate["annotation"], rate["unit"]) == ("—", "", "")
    assert share["value"] == "—"
    assert population["value"] == "20.0%"


def test_hidden_aggregate_row_still_feeds_shares(hiv_frame: pd.DataFrame) -> None:
    """Turning off the aggregate row leaves derived shares unchanged."""

    payload = compute_table(TableConfig(show_all_row=False), hiv_frame)
    rows = _rows_by_label(payload)

    assert "All" not in rows
    assert rows["White (NH)"]["cells"][1]["value"] == "20.0%"


def test_no_data_for_period(hiv_frame: pd.DataFrame) -> None:
    """A period with no records produces the no-data state, not an empty table."""

    payload = compute_table(TableConfig(time_filter="2019"), hiv_frame)

    assert payload["state"] == "no_data"
    assert payload["message"] == "No data available for 2019"
    assert payload["rows"] == []


def test_hidden_aggregate_as_only_record_is_no_data() -> None:
    """Hiding the only matching record leaves no rows, reported as no data."""

    frame = pd.DataFrame(
        [{"time_period": "2021", "race_and_ethnicity": "All", "hiv_prevalence_per_100k": 100}]
    )
    config = TableConfig(metric_fields=["hiv_prevalence_per_100k"], column_headers=["Rate"], show_all_row=False)

    payload = compute_table(config, frame)

    assert payload["state"] == "no_data"
    assert payload["message"] == "No data available for 2021"
    assert payload["rows"] == []


def test_mismatched_config_is_reported(hiv_frame: pd.DataFrame) -> None:
    """Three metrics with two headers surfaces a configuration error."""

    config = TableConfig(metric_fields=["a_per_100k", "b_per_100k", "c_per_100k"], column_headers=["A", "B"])

    payload = compute_table(config, hiv_frame)

    assert payload["state"] == "config_error"
    assert "3 metric fields" in payload["message"]


def test_build_table_reports_fetch_error() -> None:
    """A failed fetch becomes the error state with the failure message."""

    def failing(url: str) -> list[dict]:
        raise DatasetFetchError(url, "503 Service Unavailable")

    payload = build_table(TableConfig(dataset_url="https://example.test/d.json"), fetch=failing)

    assert payload["state"] == "error"
    assert "503" in payload["message"]
    assert payload["footer"]["sources"].startswith("Sources: ")


def test_build_table_and_flatten(hiv_records: list[dict]) -> None:
    """Fetched records flow through to a flat text frame for export."""

    payload = build_table(TableConfig(), fetch=lambda url: hiv_records)
    frame = table_frame(payload)

    assert list(frame.columns) == ["Race And Ethnicity", *DEFAULT_COLUMN_HEADERS]
    black = frame[frame["Race And Ethnicity"] == "Black (NH)"].iloc[0]
    assert black[DEFAULT_COLUMN_HEADERS[0]] == "150 (75 / 50,000)"
    assert black[DEFAULT_COLUMN_HEADERS[1]] == "15.0% of HIV prevalence"
    assert table_frame({"state": "no_data"}).empty
