"""Pytest fixtures shared across the summary pipeline tests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pandas as pd
import pytest

from het.data import records_frame


def _row(period: str, group: str, rate: Any, count: Any, population: Any) -> dict[str, Any]:
    return {
        "time_period": period,
        "race_and_ethnicity": group,
        "hiv_prevalence_per_100k": rate,
        "hiv_prevalence_count": count,
        "population": population,
    }


@pytest.fixture
def hiv_records() -> list[dict[str, Any]]:
    """Return a two-period dataset in arbitrary source order.

    2021 holds the aggregate, a lower-case group name, and a group with no
    rate or count.
    """

    return [
        _row("2021", "White (NH)", 50, 100, 200000),
        _row("2020", "Black (NH)", 140, 70, 50000),
        _row("2021", "Black (NH)", 150, 75, 50000),
        _row("2021", "Hispanic", None, None, 100000),
        _row("2021", "All", 100, 500, 500000),
        _row("2020", "All", 90, 450, 500000),
        _row("2021", "asian (NH)", 20, 25, 25000),
    ]


@pytest.fixture
def hiv_frame(hiv_records: list[dict[str, Any]]) -> pd.DataFrame:
    """Return ``hiv_records`` as a DataFrame."""

    return records_frame(hiv_records)


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    - `unit`: pure, fast tests with no network or app server.
    - `integration`: tests that exercise the HTTP API.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            invalid.append(item.nodeid)

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            f"`@pytest.mark.integration`.\n{joined}"
        )
