from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Mapping

import pandas as pd

from het.config import TableConfig
from het.data import Fetcher, fetch_dataset, records_frame
from het.derived import augment
from het.errors import ConfigurationError, DatasetFetchError, NoDataForPeriodError
from het.formatting import annotate, format_value, humanize_field, is_missing, unit_suffix
from het.selection import is_aggregate_label, select


def table_cell(record: Mapping[str, Any], field: str) -> Dict[str, str]:
    annotation = annotate(record, field)
    return {
        "field": field,
        "value": format_value(record.get(field), field),
        "annotation": annotation,
        "unit": unit_suffix(record, field, annotation),
    }


def table_row(record: Mapping[str, Any], config: TableConfig) -> Dict[str, Any]:
    label = record.get(config.demographic_field)
    return {
        "label": "" if is_missing(label) else str(label),
        "is_aggregate": is_aggregate_label(label),
        "cells": [table_cell(record, field) for field in config.metric_fields],
    }


def _payload(config: TableConfig, state: str, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "state": state,
        "config": asdict(config),
        "title": config.title,
        "subtitle": config.subtitle,
        "headers": [],
        "rows": [],
        "footer": config.attribution.footer(),
    }
    payload.update(extra)
    return payload


def compute_table(config: TableConfig, frame: pd.DataFrame) -> Dict[str, Any]:
    try:
        config.validate()
        selection = select(
            frame,
            config.time_filter,
            config.demographic_field,
            config.show_all_row,
            period_field=config.period_field,
        )
    except (ConfigurationError, NoDataForPeriodError) as exc:
        return _payload(config, exc.state, message=str(exc))

    if selection.records.empty:
        return _payload(config, NoDataForPeriodError.state, message=str(NoDataForPeriodError(selection.period)))
    records = augment(selection.records, config.metric_fields, selection.aggregate)
    rows = [table_row(record, config) for _, record in records.iterrows()]
    headers = [humanize_field(config.demographic_field), *config.column_headers]
    return _payload(config, "ok", headers=headers, rows=rows, period=selection.period)


def build_table(config: TableConfig, *, fetch: Fetcher = fetch_dataset) -> Dict[str, Any]:
    try:
        records = fetch(config.dataset_url)
    except DatasetFetchError as exc:
        return _payload(config, exc.state, message=str(exc))
    return compute_table(config, records_frame(records))


def _cell_text(cell: Mapping[str, str]) -> str:
    return " ".join(part for part in (cell["value"], cell["unit"], cell["annotation"]) if part)


def table_frame(payload: Dict[str, Any]) -> pd.DataFrame:
    """Flatten an ``ok`` table payload into one text column per header."""
    headers: List[str] = payload.get("headers") or []
    rows = payload.get("rows") or []
    if not headers:
        return pd.DataFrame()
    data = [[row["label"], *[_cell_text(cell) for cell in row["cells"]]] for row in rows]
    return pd.DataFrame(data, columns=headers)
