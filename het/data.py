from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
import requests

from het.config import FETCH_TIMEOUT
from het.errors import DatasetFetchError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Fetcher = Callable[[str], List[Record]]


def coerce_dataset(payload: Any) -> List[Record]:
    """Accept a JSON array or an object with a ``data`` array; anything else is empty."""
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        return []
    return [dict(item) for item in payload if isinstance(item, dict)]


def fetch_dataset(url: str, *, timeout: float = FETCH_TIMEOUT, session: Optional[requests.Session] = None) -> List[Record]:
    if not url:
        raise DatasetFetchError(url, "no dataset URL configured")
    http = session or requests
    logger.info("Fetching dataset %s", url)
    try:
        resp = http.get(url, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as exc:
        logger.warning("Dataset fetch failed for %s: %s", url, exc)
        raise DatasetFetchError(url, str(exc)) from exc
    except ValueError as exc:
        logger.warning("Dataset body for %s is not JSON", url)
        raise DatasetFetchError(url, "response body is not valid JSON") from exc
    return coerce_dataset(payload)


def records_frame(records: List[Record]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame()
    return pd.DataFrame(records)


class DatasetSlot:
    """Dataset holder for a single display instance.

    Every ``load`` of a new URL takes a ticket; a response is kept only when its
    ticket is still the newest one, so a slow response for a URL that has since
    changed is dropped rather than merged.
    """

    def __init__(self, fetch: Optional[Fetcher] = None) -> None:
        self._fetch = fetch or fetch_dataset
        self._lock = threading.Lock()
        self._ticket = 0
        self.url: Optional[str] = None
        self.records: Optional[List[Record]] = None
        self.error: Optional[DatasetFetchError] = None

    @property
    def state(self) -> str:
        if self.error is not None:
            return "error"
        if self.records is None:
            return "loading"
        return "ready"

    def begin(self, url: str) -> int:
        with self._lock:
            self._ticket += 1
            self.url = url
            self.records = None
            self.error = None
            return self._ticket

    def resolve(
        self,
        ticket: int,
        *,
        records: Optional[List[Record]] = None,
        error: Optional[DatasetFetchError] = None,
    ) -> bool:
        with self._lock:
            if ticket != self._ticket:
                logger.info("Discarding stale dataset response (ticket %d, latest %d)", ticket, self._ticket)
                return False
            self.records = records
            self.error = error
            return True

    def load(self, url: str) -> Optional[List[Record]]:
        """Return the records for ``url``, fetching only when the URL changed.

        A failed fetch is re-raised for the same URL without fetching again;
        use ``reload`` to try once more. Returns None when a newer ``load``
        superseded this one mid-flight.
        """
        if url == self.url:
            if self.error is not None:
                raise self.error
            if self.records is not None:
                return self.records
        return self.reload(url)

    def reload(self, url: str) -> Optional[List[Record]]:
        ticket = self.begin(url)
        try:
            records = self._fetch(url)
        except DatasetFetchError as exc:
            if self.resolve(ticket, error=exc):
                raise
            return None
        if not self.resolve(ticket, records=records):
            return None
        return records
