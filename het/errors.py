from __future__ import annotations


class HETError(Exception):
    """Base class for errors surfaced as a display state."""

    state = "error"


class DatasetFetchError(HETError):
    """The dataset could not be fetched or its body could not be decoded."""

    state = "error"

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch data from {url}: {reason}")
        self.url = url
        self.reason = reason


class NoDataForPeriodError(HETError):
    state = "no_data"

    def __init__(self, period: str) -> None:
        super().__init__(f"No data available for {period}")
        self.period = period


class ConfigurationError(HETError):
    """Raised at render time when display settings are inconsistent."""

    state = "config_error"
