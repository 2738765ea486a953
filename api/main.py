from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import ChartConfigModel, TableConfigModel
from het.chart import build_chart
from het.config import ChartConfig, TableConfig, normalize_chart_config, normalize_table_config
from het.data import fetch_dataset, records_frame
from het.errors import DatasetFetchError
from het.selection import DEFAULT_PERIOD_FIELD, available_periods
from het.table import build_table, table_frame


app = FastAPI(title="HET Summaries API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# HTTP status per display state.
STATUS_BY_STATE = {"ok": 200, "no_data": 200, "config_error": 422, "error": 502}


def _table_config(model: TableConfigModel) -> TableConfig:
    return normalize_table_config(model.model_dump())


def _chart_config(model: ChartConfigModel) -> ChartConfig:
    return normalize_chart_config(model.model_dump())


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        ),
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _payload_response(payload: dict) -> JSONResponse:
    return _json(payload, status_code=STATUS_BY_STATE.get(payload.get("state", "ok"), 200))


@app.get("/meta/periods")
def meta_periods(url: str = Query(...), period_field: str = Query(default=DEFAULT_PERIOD_FIELD)):
    try:
        frame = records_frame(fetch_dataset(url))
        return _json({"periods": available_periods(frame, period_field)})
    except DatasetFetchError as exc:
        return _json({"periods": [], "error": str(exc)}, status_code=502)
    except Exception as exc:
        logger.exception("meta_periods failed")
        return _error(exc)


@app.post("/table")
def table(config: TableConfigModel):
    try:
        return _payload_response(build_table(_table_config(config), fetch=fetch_dataset))
    except Exception as exc:
        logger.exception("table failed")
        return _error(exc)


@app.post("/chart")
def chart(config: ChartConfigModel):
    try:
        return _payload_response(build_chart(_chart_config(config), fetch=fetch_dataset))
    except Exception as exc:
        logger.exception("chart failed")
        return _error(exc)


@app.post("/export/table")
def export_table(config: TableConfigModel):
    payload = build_table(_table_config(config), fetch=fetch_dataset)
    if payload["state"] != "ok":
        return _payload_response(payload)
    csv_bytes = table_frame(payload).to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=table.csv"})
