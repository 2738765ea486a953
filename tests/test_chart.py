"""Unit tests for the bar chart payload and its Vega-Lite spec."""

from __future__ import annotations

import pandas as pd
import pytest

from het.chart import AGGREGATE_COLOR, GROUP_COLOR, build_chart, compute_chart, nice_ticks
from het.config import ChartConfig
from het.errors import DatasetFetchError
from het.formatting import EM_DASH

pytestmark = pytest.mark.unit


def _bars(payload: dict) -> dict[str, dict]:
    return {bar["label"]: bar for bar in payload["geometry"]["bars"]}


def test_rate_chart_geometry(hiv_frame: pd.DataFrame) -> None:
    """Bars follow selection order, the aggregate is highlighted and the axis is padded."""

    payload = compute_chart(ChartConfig(), hiv_frame)
    geometry = payload["geometry"]
    bars = _bars(payload)

    assert payload["state"] == "ok"
    assert geometry["categories"] == ["All", "asian (NH)", "Black (NH)", "White (NH)"]
    assert bars["All"]["color"] == AGGREGATE_COLOR
    assert bars["Black (NH)"]["color"] == GROUP_COLOR
    assert bars["Black (NH)"]["value"] == 150.0
    assert bars["Black (NH)"]["text"] == "150 per 100k"
    assert geometry["domain"][0] == 0.0
    assert geometry["domain"][1] == pytest.approx(165.0)
    assert [t["value"] for t in geometry["ticks"]] == [0, 20, 40, 60, 80, 100, 120, 140, 160]
    assert geometry["ticks"][1]["label"] == "20"
    assert geometry["x_title"] == "hiv prevalence per 100k"
    assert geometry["y_title"] == "race and ethnicity"


def test_value_sort_keeps_aggregate_first(hiv_frame: pd.DataFrame) -> None:
    """The value policy orders groups by height after the aggregate."""

    payload = compute_chart(ChartConfig(sort_by="value"), hiv_frame)

    assert payload["geometry"]["categories"] == ["All", "Black (NH)", "White (NH)", "asian (NH)"]


def test_hidden_aggregate_bar(hiv_frame: pd.DataFrame) -> None:
    """Without the aggregate bar the axis is scaled to the largest group."""

    payload = compute_chart(ChartConfig(show_all_bar=False), hiv_frame)

    assert "All" not in payload["geometry"]["categories"]
    assert payload["geometry"]["domain"][1] == pytest.approx(165.0)


def test_derived_share_chart(hiv_frame: pd.DataFrame) -> None:
    """Share metrics are derived per bar; underivable bars stay empty."""

    payload = compute_chart(ChartConfig(metric_field="hiv_prevalence_pct_share"), hiv_frame)
    bars = _bars(payload)

    assert bars["Black (NH)"]["value"] == pytest.approx(15.0)
    assert bars["Black (NH)"]["text"] == "15.0%"
    assert bars["Hispanic"]["value"] is None
    assert bars["Hispanic"]["text"] == EM_DASH
    assert payload["geometry"]["domain"][1] == pytest.approx(110.0)


def test_no_data_and_fetch_error(hiv_frame: pd.DataFrame) -> None:
    """Empty periods and failed fetches map to their display states."""

    assert compute_chart(ChartConfig(time_filter="1999"), hiv_frame)["state"] == "no_data"

    def failing(url: str) -> list[dict]:
        raise DatasetFetchError(url, "timed out")

    payload = build_chart(ChartConfig(), fetch=failing)
    assert payload["state"] == "error"
    assert payload["geometry"] == {}


def test_hidden_aggregate_as_only_record_is_no_data() -> None:
    """A period holding only the hidden aggregate has no bars to draw."""

    frame = pd.DataFrame(
        [{"time_period": "2021", "race_and_ethnicity": "All", "hiv_prevalence_per_100k": 100}]
    )

    payload = compute_chart(ChartConfig(show_all_bar=False), frame)

    assert payload["state"] == "no_data"
    assert payload["message"] == "No data available for 2021"
    assert payload["spec"] == {}
    assert compute_chart(ChartConfig(), frame)["geometry"]["categories"] == ["All"]


def test_vega_spec_layers_and_title(hiv_records: list[dict]) -> None:
    """The Vega-Lite output layers bars with value labels under the configured title."""

    config = ChartConfig(title="HIV prevalence", subtitle="Ages 13+", width=900, height=600)

    spec = build_chart(config, fetch=lambda url: hiv_records)["spec"]

    assert len(spec["layer"]) == 2
    assert spec["title"]["text"] == "HIV prevalence"
    assert spec["title"]["subtitle"] == "Ages 13+"
    assert spec["width"] == 660
    assert spec["height"] == 440


def test_nice_ticks() -> None:
    """Ticks step by 1, 2 or 5 times a power of ten."""

    assert nice_ticks(0) == [0.0]
    assert nice_ticks(11) == [0, 2, 4, 6, 8, 10]
    assert nice_ticks(5500)[-1] == 5000
