from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Literal, Optional

import pandas as pd

from het.errors import NoDataForPeriodError
from het.formatting import is_missing, to_number

logger = logging.getLogger(__name__)

AGGREGATE_LABEL = "All"
DEFAULT_PERIOD_FIELD = "time_period"

SortPolicy = Literal["demographic", "value"]


@dataclass(frozen=True)
class Selection:
    """One period's records in display order.

    ``aggregate`` is kept even when it is not part of ``records`` because it is
    the baseline for derived share fields.
    """

    records: pd.DataFrame
    aggregate: Optional[pd.Series]
    period: str

    @property
    def has_aggregate(self) -> bool:
        return self.aggregate is not None


def is_aggregate_label(value: Any) -> bool:
    return isinstance(value, str) and value.strip().casefold() == AGGREGATE_LABEL.casefold()


def _sort_text(value: Any) -> str:
    if is_missing(value):
        return ""
    return str(value).casefold()


def _numeric_or_nan(value: Any) -> float:
    number = to_number(value)
    return float(number) if number is not None else math.nan


def available_periods(frame: pd.DataFrame, period_field: str = DEFAULT_PERIOD_FIELD) -> List[str]:
    if frame.empty or period_field not in frame.columns:
        return []
    return sorted({v for v in frame[period_field].tolist() if isinstance(v, str)})


def select(
    frame: pd.DataFrame,
    time_period: str,
    demographic_field: str,
    include_aggregate: bool = True,
    *,
    period_field: str = DEFAULT_PERIOD_FIELD,
    sort_by: SortPolicy = "demographic",
    metric_field: Optional[str] = None,
    require_numeric: Optional[str] = None,
) -> Selection:
    period = str(time_period)
    if frame.empty or period_field not in frame.columns:
        raise NoDataForPeriodError(period)

    filtered = frame[frame[period_field] == period]
    if require_numeric is not None:
        if require_numeric in filtered.columns:
            numeric = filtered[require_numeric].map(lambda v: to_number(v) is not None).astype(bool)
            filtered = filtered[numeric]
        else:
            filtered = filtered.iloc[0:0]
    if filtered.empty:
        raise NoDataForPeriodError(period)

    if demographic_field in filtered.columns:
        is_agg = filtered[demographic_field].map(is_aggregate_label).astype(bool)
    else:
        is_agg = pd.Series(False, index=filtered.index)
    aggregates = filtered[is_agg]
    rest = filtered[~is_agg]
    if len(aggregates) > 1:
        logger.warning("Found %d aggregate records for period %s; using the first", len(aggregates), period)

    if sort_by == "value" and metric_field and metric_field in rest.columns:
        rest = rest.sort_values(
            metric_field,
            key=lambda s: s.map(_numeric_or_nan),
            ascending=False,
            kind="stable",
            na_position="last",
        )
    elif demographic_field in rest.columns:
        rest = rest.sort_values(demographic_field, key=lambda s: s.map(_sort_text), kind="stable")

    aggregate = aggregates.iloc[0] if not aggregates.empty else None
    parts = [aggregates.iloc[:1], rest] if include_aggregate and aggregate is not None else [rest]
    records = pd.concat(parts).reset_index(drop=True)
    return Selection(records=records, aggregate=aggregate, period=period)
