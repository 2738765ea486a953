from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Literal, Optional, Union

from het.errors import ConfigurationError
from het.selection import DEFAULT_PERIOD_FIELD

DEFAULT_DATASET_URL = os.environ.get(
    "HET_DATASET_URL",
    "https://healthequitytracker.org/api/dataset?name=cdc_hiv_data-race_and_ethnicity_national_historical.json",
)
DEFAULT_DEMOGRAPHIC_FIELD = "race_and_ethnicity"
DEFAULT_TIME_FILTER = "2021"
DEFAULT_METRIC_FIELDS = ["hiv_prevalence_per_100k", "hiv_prevalence_pct_share", "population_pct"]
DEFAULT_COLUMN_HEADERS = [
    "HIV prevalence per 100k people",
    "Share of total HIV prevalence",
    "Population share (ages 13+)",
]
DEFAULT_CHART_METRIC = "hiv_prevalence_per_100k"
LIST_DELIMITER = ","

FieldList = Union[str, Iterable[str], None]


def _fetch_timeout() -> float:
    try:
        return float(os.environ.get("HET_FETCH_TIMEOUT", "15"))
    except ValueError:
        return 15.0


FETCH_TIMEOUT = _fetch_timeout()


@dataclass(frozen=True)
class Attribution:
    methodology_url: str = "https://healthequitytracker.org/exploredata?mls=1.hiv-3.00&group1=All"
    source_url: str = "https://www.cdc.gov/nchhstp/atlas/index.htm"
    source_text: str = "CDC NCHHSTP AtlasPlus"
    data_year: str = DEFAULT_TIME_FILTER

    def footer(self, *, year: Optional[int] = None) -> Dict[str, str]:
        year = year or date.today().year
        return {
            "note": "Note. (NH) indicates 'Non-Hispanic'.",
            "methodology_url": self.methodology_url,
            "source_text": self.source_text,
            "source_url": self.source_url,
            "sources": f"Sources: {self.source_text} (data from {self.data_year}).",
            "citation": (
                f"Health Equity Tracker. ({year}). Satcher Health Leadership Institute. "
                "Morehouse School of Medicine. https://healthequitytracker.org."
            ),
        }


@dataclass(frozen=True)
class TableConfig:
    dataset_url: str = DEFAULT_DATASET_URL
    title: str = "Summary"
    subtitle: str = ""
    demographic_field: str = DEFAULT_DEMOGRAPHIC_FIELD
    metric_fields: List[str] = field(default_factory=lambda: list(DEFAULT_METRIC_FIELDS))
    column_headers: List[str] = field(default_factory=lambda: list(DEFAULT_COLUMN_HEADERS))
    time_filter: str = DEFAULT_TIME_FILTER
    show_all_row: bool = True
    period_field: str = DEFAULT_PERIOD_FIELD
    attribution: Attribution = field(default_factory=Attribution)

    def validate(self) -> None:
        if not self.metric_fields:
            raise ConfigurationError("At least one metric field is required.")
        if len(self.metric_fields) != len(self.column_headers):
            raise ConfigurationError(
                f"Got {len(self.metric_fields)} metric fields but {len(self.column_headers)} column headers."
            )


@dataclass(frozen=True)
class ChartConfig:
    dataset_url: str = DEFAULT_DATASET_URL
    title: str = "Health Outcomes"
    subtitle: str = ""
    metric_field: str = DEFAULT_CHART_METRIC
    demographic_field: str = DEFAULT_DEMOGRAPHIC_FIELD
    time_filter: str = DEFAULT_TIME_FILTER
    width: int = 900
    height: int = 600
    show_all_bar: bool = True
    sort_by: Literal["demographic", "value"] = "demographic"
    period_field: str = DEFAULT_PERIOD_FIELD
    attribution: Attribution = field(default_factory=Attribution)

    def validate(self) -> None:
        if not self.metric_field:
            raise ConfigurationError("A metric field is required.")


def split_field_list(value: FieldList, delimiter: str = LIST_DELIMITER) -> List[str]:
    """Accept a native list or a delimited string; trim items and drop blanks."""
    if value is None:
        return []
    items = value.split(delimiter) if isinstance(value, str) else value
    return [str(x).strip() for x in items if x is not None and str(x).strip()]


def _as_text(value: object, default: str) -> str:
    if value is None:
        return default
    return str(value).strip()


def _as_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in {"false", "0", "no", "off", ""}
    return bool(value)


def _as_int(value: object, default: int, lo: int, hi: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except Exception:
        out = default
    return max(lo, min(hi, out))


def normalize_attribution(raw: Optional[dict]) -> Attribution:
    raw = raw or {}
    base = Attribution()
    return Attribution(
        methodology_url=_as_text(raw.get("methodology_url"), base.methodology_url),
        source_url=_as_text(raw.get("source_url"), base.source_url),
        source_text=_as_text(raw.get("source_text"), base.source_text),
        data_year=_as_text(raw.get("data_year"), base.data_year),
    )


def normalize_table_config(raw: dict) -> TableConfig:
    metric_fields = split_field_list(raw.get("metric_fields"))
    column_headers = split_field_list(raw.get("column_headers"))
    if raw.get("metric_fields") is None:
        metric_fields = list(DEFAULT_METRIC_FIELDS)
    if raw.get("column_headers") is None:
        column_headers = list(DEFAULT_COLUMN_HEADERS)

    return TableConfig(
        dataset_url=_as_text(raw.get("dataset_url"), DEFAULT_DATASET_URL),
        title=_as_text(raw.get("title"), "Summary"),
        subtitle=_as_text(raw.get("subtitle"), ""),
        demographic_field=_as_text(raw.get("demographic_field"), DEFAULT_DEMOGRAPHIC_FIELD) or DEFAULT_DEMOGRAPHIC_FIELD,
        metric_fields=metric_fields,
        column_headers=column_headers,
        time_filter=_as_text(raw.get("time_filter"), DEFAULT_TIME_FILTER),
        show_all_row=_as_bool(raw.get("show_all_row"), True),
        period_field=_as_text(raw.get("period_field"), DEFAULT_PERIOD_FIELD) or DEFAULT_PERIOD_FIELD,
        attribution=normalize_attribution(raw.get("attribution")),
    )


def normalize_chart_config(raw: dict) -> ChartConfig:
    sort_by = _as_text(raw.get("sort_by"), "demographic").lower()
    if sort_by not in {"demographic", "value"}:
        sort_by = "demographic"

    return ChartConfig(
        dataset_url=_as_text(raw.get("dataset_url"), DEFAULT_DATASET_URL),
        title=_as_text(raw.get("title"), "Health Outcomes"),
        subtitle=_as_text(raw.get("subtitle"), ""),
        metric_field=_as_text(raw.get("metric_field"), DEFAULT_CHART_METRIC),
        demographic_field=_as_text(raw.get("demographic_field"), DEFAULT_DEMOGRAPHIC_FIELD) or DEFAULT_DEMOGRAPHIC_FIELD,
        time_filter=_as_text(raw.get("time_filter"), DEFAULT_TIME_FILTER),
        width=_as_int(raw.get("width"), 900, 200, 4000),
        height=_as_int(raw.get("height"), 600, 150, 4000),
        show_all_bar=_as_bool(raw.get("show_all_bar"), True),
        sort_by=sort_by,  # type: ignore[arg-type]
        period_field=_as_text(raw.get("period_field"), DEFAULT_PERIOD_FIELD) or DEFAULT_PERIOD_FIELD,
        attribution=normalize_attribution(raw.get("attribution")),
    )
