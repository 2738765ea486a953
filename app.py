from contextlib import contextmanager
from typing import Any, Dict, Optional

import pandas as pd
import streamlit as st

from het.chart import compute_chart
from het.config import (
    DEFAULT_CHART_METRIC,
    DEFAULT_COLUMN_HEADERS,
    DEFAULT_DATASET_URL,
    DEFAULT_DEMOGRAPHIC_FIELD,
    DEFAULT_METRIC_FIELDS,
    DEFAULT_TIME_FILTER,
    normalize_chart_config,
    normalize_table_config,
)
from het.data import DatasetSlot, records_frame
from het.errors import DatasetFetchError
from het.selection import DEFAULT_PERIOD_FIELD, available_periods
from het.table import compute_table, table_frame


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def dataset_slot(key: str) -> DatasetSlot:
    # One slot per display instance so a failing instance cannot affect another.
    slot_key = f"_slot_{key}"
    if slot_key not in st.session_state:
        st.session_state[slot_key] = DatasetSlot()
    return st.session_state[slot_key]


def load_frame(key: str, url: str, *, reload: bool = False) -> Optional[pd.DataFrame]:
    slot = dataset_slot(key)
    try:
        records = slot.reload(url) if reload else slot.load(url)
    except DatasetFetchError as exc:
        st.error(f"Error loading data: {exc}")
        return None
    if records is None:
        st.info("Loading data...")
        return None
    return records_frame(records)


def render_state(payload: Dict[str, Any]) -> bool:
    state = payload.get("state")
    if state == "ok":
        return True
    if state == "no_data":
        st.info(payload.get("message", "No data available."))
    elif state == "config_error":
        st.warning(f"Configuration error: {payload.get('message', '')}")
    else:
        st.error(payload.get("message", "Something went wrong."))
    return False


def render_footer(footer: Dict[str, str]):
    methodology = f"[View methodology]({footer['methodology_url']})" if footer.get("methodology_url") else "View methodology"
    source = f"[{footer['source_text']}]({footer['source_url']})" if footer.get("source_url") else footer["source_text"]
    sources = footer["sources"].replace(footer["source_text"], source, 1)
    st.caption(f"{footer['note']} {methodology}.  \n{sources}  \n{footer['citation']}")


def render_table(payload: Dict[str, Any]):
    st.subheader(payload["title"])
    if payload.get("subtitle"):
        st.caption(payload["subtitle"])
    if render_state(payload):
        st.dataframe(table_frame(payload), use_container_width=True, hide_index=True)
    render_footer(payload["footer"])


def render_chart(payload: Dict[str, Any]):
    if render_state(payload):
        st.vega_lite_chart(payload["spec"], use_container_width=True)
    render_footer(payload["footer"])


# ---------- UI setup ----------
st.set_page_config(page_title="Health Equity Summaries", layout="wide")
inject_base_styles()
st.title("Health Equity Summaries")
st.caption("Demographic breakdowns for a single reporting period.")

with st.sidebar:
    st.markdown("### View")
    view = st.radio("View", ["Table", "Bar chart"], index=0)

    st.markdown("---")
    st.markdown("### Dataset")
    dataset_url = st.text_input("Dataset URL", DEFAULT_DATASET_URL)
    demographic_field = st.text_input("Demographic field", DEFAULT_DEMOGRAPHIC_FIELD)
    period_field = st.text_input("Time period field", DEFAULT_PERIOD_FIELD)
    reload_data = st.button("Reload data")

key = "table" if view == "Table" else "chart"
frame = load_frame(key, dataset_url, reload=reload_data)

with st.sidebar:
    periods = available_periods(frame, period_field) if frame is not None else []
    if periods:
        default_idx = periods.index(DEFAULT_TIME_FILTER) if DEFAULT_TIME_FILTER in periods else len(periods) - 1
        time_filter = st.selectbox("Time period", periods, index=default_idx)
    else:
        time_filter = st.text_input("Time period", DEFAULT_TIME_FILTER)

    st.markdown("---")
    with st.expander("Display settings", expanded=False):
        title = st.text_input("Title", "Summary" if view == "Table" else "Health Outcomes")
        subtitle = st.text_input("Subtitle", "Ages 13+")
        show_all = st.checkbox("Show 'All' row", value=True)
        if view == "Table":
            metric_fields = st.text_input("Metric fields (comma-separated)", ",".join(DEFAULT_METRIC_FIELDS))
            column_headers = st.text_input("Column headers (comma-separated)", ",".join(DEFAULT_COLUMN_HEADERS))
        else:
            metric_field = st.text_input("Metric field", DEFAULT_CHART_METRIC)
            sort_choice = st.selectbox("Sort bars by", ["Demographic (A-Z)", "Value (high to low)"])
            height = st.slider("Height", min_value=300, max_value=1200, value=600, step=50)

if frame is not None:
    with card(view):
        if view == "Table":
            config = normalize_table_config(
                {
                    "dataset_url": dataset_url,
                    "title": title,
                    "subtitle": subtitle,
                    "demographic_field": demographic_field,
                    "metric_fields": metric_fields,
                    "column_headers": column_headers,
                    "time_filter": time_filter,
                    "show_all_row": show_all,
                    "period_field": period_field,
                    "attribution": {"data_year": time_filter},
                }
            )
            render_table(compute_table(config, frame))
        else:
            config = normalize_chart_config(
                {
                    "dataset_url": dataset_url,
                    "title": title,
                    "subtitle": subtitle,
                    "metric_field": metric_field,
                    "demographic_field": demographic_field,
                    "time_filter": time_filter,
                    "height": height,
                    "show_all_bar": show_all,
                    "sort_by": "value" if sort_choice.startswith("Value") else "demographic",
                    "period_field": period_field,
                    "attribution": {"data_year": time_filter},
                }
            )
            render_chart(compute_chart(config, frame))
