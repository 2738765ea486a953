from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from het.config import ChartConfig
from het.data import Fetcher, fetch_dataset, records_frame
from het.derived import augment, derivation_for
from het.errors import ConfigurationError, DatasetFetchError, NoDataForPeriodError
from het.formatting import (
    axis_label,
    format_rate_label,
    format_tick,
    format_value,
    is_missing,
    is_rate_field,
    to_number,
)
from het.selection import is_aggregate_label, select

alt.data_transformers.disable_max_rows()

AGGREGATE_COLOR = "#F5A623"
GROUP_COLOR = "#2C7873"
DOMAIN_PADDING = 1.1
TICK_COUNT = 6
MARGIN = {"top": 80, "right": 40, "bottom": 80, "left": 200}
TICK_LABEL_EXPR = "datum.value >= 1000 ? format(datum.value / 1000, '.1f') + 'k' : datum.label"


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def nice_ticks(upper: float, count: int = TICK_COUNT) -> List[float]:
    """Round tick values covering ``[0, upper]``, stepping by 1, 2 or 5 × 10^n."""
    if upper <= 0 or count <= 0:
        return [0.0]
    raw_step = upper / count
    power = math.floor(math.log10(raw_step))
    error = raw_step / 10**power
    if error >= math.sqrt(50):
        factor = 10
    elif error >= math.sqrt(10):
        factor = 5
    elif error >= math.sqrt(2):
        factor = 2
    else:
        factor = 1
    step = factor * 10**power
    return [round(i * step, 10) for i in range(int(math.floor(upper / step)) + 1)]


def bar_text(value: Any, metric_field: str) -> str:
    if is_rate_field(metric_field):
        return format_rate_label(value)
    return format_value(value, metric_field)


def chart_bars(records: pd.DataFrame, config: ChartConfig) -> List[Dict[str, Any]]:
    bars = []
    for _, record in records.iterrows():
        label = record.get(config.demographic_field)
        raw = record.get(config.metric_field)
        number = to_number(raw)
        is_agg = is_aggregate_label(label)
        bars.append(
            {
                "label": "" if is_missing(label) else str(label),
                "value": float(number) if number is not None else None,
                "is_aggregate": is_agg,
                "color": AGGREGATE_COLOR if is_agg else GROUP_COLOR,
                "text": bar_text(raw, config.metric_field),
            }
        )
    return bars


def chart_spec(bars: List[Dict[str, Any]], config: ChartConfig, upper: float, ticks: List[float]) -> Dict[str, Any]:
    data = pd.DataFrame(bars)
    data["series"] = data["is_aggregate"].map({True: "aggregate", False: "group"})

    y = alt.Y(
        "label:N",
        sort=[b["label"] for b in bars],
        title=axis_label(config.demographic_field),
        axis=alt.Axis(ticks=False, domain=False),
    )
    x = alt.X(
        "value:Q",
        title=axis_label(config.metric_field),
        scale=alt.Scale(domain=[0, upper]),
        axis=alt.Axis(values=ticks, labelExpr=TICK_LABEL_EXPR, gridColor="#e0e0e0"),
    )
    color = alt.Color(
        "series:N",
        scale=alt.Scale(domain=["aggregate", "group"], range=[AGGREGATE_COLOR, GROUP_COLOR]),
        legend=None,
    )

    base = alt.Chart(data).encode(y=y)
    bar_layer = base.mark_bar(cornerRadius=2).encode(
        x=x,
        color=color,
        tooltip=[alt.Tooltip("label:N", title=axis_label(config.demographic_field)), alt.Tooltip("text:N", title="Value")],
    )
    label_layer = base.mark_text(align="left", baseline="middle", dx=8, color="#333").encode(
        x=alt.X("value:Q"),
        text="text:N",
    )

    if config.subtitle:
        title = alt.TitleParams(text=config.title, subtitle=config.subtitle, anchor="middle")
    else:
        title = alt.TitleParams(text=config.title, anchor="middle")
    chart = alt.layer(bar_layer, label_layer).properties(
        width=max(100, config.width - MARGIN["left"] - MARGIN["right"]),
        height=max(100, config.height - MARGIN["top"] - MARGIN["bottom"]),
        title=title,
    )
    return to_vega_spec(chart)


def _payload(config: ChartConfig, state: str, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "state": state,
        "config": asdict(config),
        "title": config.title,
        "subtitle": config.subtitle,
        "geometry": {},
        "spec": {},
        "footer": config.attribution.footer(),
    }
    payload.update(extra)
    return payload


def compute_chart(config: ChartConfig, frame: pd.DataFrame) -> Dict[str, Any]:
    # Derivable share fields are computed after selection, so they cannot be
    # required to be numeric up front.
    derivable = derivation_for(config.metric_field) is not None
    try:
        config.validate()
        selection = select(
            frame,
            config.time_filter,
            config.demographic_field,
            config.show_all_bar,
            period_field=config.period_field,
            sort_by=config.sort_by,
            metric_field=config.metric_field,
            require_numeric=None if derivable else config.metric_field,
        )
    except (ConfigurationError, NoDataForPeriodError) as exc:
        return _payload(config, exc.state, message=str(exc))

    records = augment(selection.records, [config.metric_field], selection.aggregate)
    bars = chart_bars(records, config)
    if not bars:
        # Only the aggregate matched and it is hidden.
        return _payload(config, NoDataForPeriodError.state, message=str(NoDataForPeriodError(selection.period)))
    max_value = max((b["value"] for b in bars if b["value"] is not None), default=0.0)
    upper = max_value * DOMAIN_PADDING
    ticks = nice_ticks(upper)
    geometry = {
        "categories": [b["label"] for b in bars],
        "domain": [0.0, upper],
        "ticks": [{"value": t, "label": format_tick(t)} for t in ticks],
        "bars": bars,
        "x_title": axis_label(config.metric_field),
        "y_title": axis_label(config.demographic_field),
    }
    return _payload(config, "ok", geometry=geometry, spec=chart_spec(bars, config, upper, ticks), period=selection.period)


def build_chart(config: ChartConfig, *, fetch: Fetcher = fetch_dataset) -> Dict[str, Any]:
    try:
        records = fetch(config.dataset_url)
    except DatasetFetchError as exc:
        return _payload(config, exc.state, message=str(exc))
    return compute_chart(config, records_frame(records))
