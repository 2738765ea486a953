from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from het.config import (
    DEFAULT_CHART_METRIC,
    DEFAULT_COLUMN_HEADERS,
    DEFAULT_DATASET_URL,
    DEFAULT_DEMOGRAPHIC_FIELD,
    DEFAULT_METRIC_FIELDS,
    DEFAULT_TIME_FILTER,
)
from het.selection import DEFAULT_PERIOD_FIELD


class AttributionModel(BaseModel):
    methodology_url: str = "https://healthequitytracker.org/exploredata?mls=1.hiv-3.00&group1=All"
    source_url: str = "https://www.cdc.gov/nchhstp/atlas/index.htm"
    source_text: str = "CDC NCHHSTP AtlasPlus"
    data_year: Union[str, int] = DEFAULT_TIME_FILTER


class TableConfigModel(BaseModel):
    dataset_url: str = DEFAULT_DATASET_URL
    title: str = "Summary"
    subtitle: str = ""
    demographic_field: str = DEFAULT_DEMOGRAPHIC_FIELD
    # Either a list or a comma-separated string.
    metric_fields: Union[List[str], str] = Field(default_factory=lambda: list(DEFAULT_METRIC_FIELDS))
    column_headers: Union[List[str], str] = Field(default_factory=lambda: list(DEFAULT_COLUMN_HEADERS))
    time_filter: Union[str, int] = DEFAULT_TIME_FILTER
    show_all_row: bool = True
    period_field: str = DEFAULT_PERIOD_FIELD
    attribution: AttributionModel = Field(default_factory=AttributionModel)


class ChartConfigModel(BaseModel):
    dataset_url: str = DEFAULT_DATASET_URL
    title: str = "Health Outcomes"
    subtitle: str = ""
    metric_field: str = DEFAULT_CHART_METRIC
    demographic_field: str = DEFAULT_DEMOGRAPHIC_FIELD
    time_filter: Union[str, int] = DEFAULT_TIME_FILTER
    width: int = 900
    height: int = 600
    show_all_bar: bool = True
    sort_by: Literal["demographic", "value"] = "demographic"
    period_field: str = DEFAULT_PERIOD_FIELD
    attribution: AttributionModel = Field(default_factory=AttributionModel)


class MetaPeriodsResponse(BaseModel):
    periods: List[str]
    error: Optional[str] = None
