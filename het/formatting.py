"""Field-name driven display formatting.

A field's display rule is picked by substring matches on its name, never by the
runtime type of the value. The rules live in ordered tables so that the policy
can be read (and tested) in one place:

- ``FORMAT_RULES``: how a numeric value is rendered.
- ``UNIT_RULES``: the short unit text shown next to a rendered value.
"""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional, Tuple

import pandas as pd

EM_DASH = "—"
RATE_SUFFIX = "_per_100k"
POPULATION_FIELD = "population"


class _Unavailable:
    """Singleton marking a value that could be neither read nor derived."""

    _instance: Optional["_Unavailable"] = None

    def __new__(cls) -> "_Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __reduce__(self):
        return (_Unavailable, ())


UNAVAILABLE = _Unavailable()


def is_missing(value: Any) -> bool:
    if value is None or value is UNAVAILABLE:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_number(value: Any) -> Optional[Decimal]:
    """Return ``value`` as a Decimal, or None when it is missing or non-numeric."""
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    try:
        return Decimal(str(value)) if isinstance(value, str) else Decimal(str(number))
    except InvalidOperation:
        return None


def _is_non_finite(value: Any) -> bool:
    if isinstance(value, (str, bool)) or not isinstance(value, numbers.Real):
        return False
    return math.isinf(value) or math.isnan(value)


def _quantize(number: Decimal, ndigits: int) -> Decimal:
    q = Decimal(10) ** -ndigits
    return number.quantize(q, rounding=ROUND_HALF_UP)


def _grouped(number: Decimal, thousands_sep: str, decimals: int = 0) -> str:
    text = f"{_quantize(number, decimals):,.{decimals}f}"
    if thousands_sep == ",":
        return text
    return text.replace(",", thousands_sep)


# ---------------- Value rules ----------------
@dataclass(frozen=True)
class FormatRule:
    name: str
    matches: Callable[[str], bool]
    render: Callable[[Decimal, str], str]


def _render_percent(number: Decimal, thousands_sep: str) -> str:
    return f"{_quantize(number, 1):.1f}%"


def _render_rate(number: Decimal, thousands_sep: str) -> str:
    return f"{_quantize(number, 0):.0f}"


def _render_grouped(number: Decimal, thousands_sep: str) -> str:
    return _grouped(number, thousands_sep)


def is_percent_field(field_name: str) -> bool:
    return "pct" in field_name or "share" in field_name


def is_rate_field(field_name: str) -> bool:
    return "per_100k" in field_name


def is_count_field(field_name: str) -> bool:
    return "count" in field_name or "total" in field_name


# Evaluated in order; the first match wins.
FORMAT_RULES: Tuple[FormatRule, ...] = (
    FormatRule("percent", is_percent_field, _render_percent),
    FormatRule("rate", is_rate_field, _render_rate),
    FormatRule("count", is_count_field, _render_grouped),
)
FALLBACK_RULE = FormatRule("number", lambda _field: True, _render_grouped)


def rule_for(field_name: str) -> FormatRule:
    for rule in FORMAT_RULES:
        if rule.matches(field_name):
            return rule
    return FALLBACK_RULE


def format_value(value: Any, field_name: str, *, thousands_sep: str = ",") -> str:
    """Render one cell value for display.

    Missing or non-finite values (None, NaN, inf, ``UNAVAILABLE``) become an em-dash, strings that
    are not numbers are returned verbatim, and numbers go through the first
    matching rule of ``FORMAT_RULES``.
    """
    if is_missing(value) or _is_non_finite(value):
        return EM_DASH
    number = to_number(value)
    if number is None:
        return str(value)
    return rule_for(field_name).render(number, thousands_sep)


# ---------------- Annotations ----------------
def annotate(record: Mapping[str, Any], field_name: str, *, thousands_sep: str = ",") -> str:
    """Return ``"(count / population)"`` for a rate field when both siblings exist."""
    if not is_rate_field(field_name):
        return ""
    base = field_name.replace(RATE_SUFFIX, "")
    count = to_number(record.get(f"{base}_count"))
    population = to_number(record.get(POPULATION_FIELD))
    if count is None or population is None:
        return ""
    return f"({_grouped(count, thousands_sep)} / {_grouped(population, thousands_sep)})"


@dataclass(frozen=True)
class UnitRule:
    text: str
    matches: Callable[[str], bool]


UNIT_RULES: Tuple[UnitRule, ...] = (
    UnitRule("of HIV prevalence", lambda f: "prevalence" in f and "pct" in f),
    UnitRule("of population", lambda f: "population" in f and "pct" in f),
)


def unit_suffix(record: Mapping[str, Any], field_name: str, annotation: str = "") -> str:
    # The count/population annotation replaces the plain rate unit.
    if is_rate_field(field_name):
        if annotation or is_missing(record.get(field_name)):
            return ""
        return "per 100k"
    for rule in UNIT_RULES:
        if rule.matches(field_name):
            return rule.text
    return ""


# ---------------- Labels ----------------
def humanize_field(field_name: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), field_name.replace("_", " "))


def axis_label(field_name: str) -> str:
    return field_name.replace("_", " ")


def format_rate_label(value: Any, *, thousands_sep: str = ",") -> str:
    number = to_number(value)
    if number is None:
        return EM_DASH
    if number >= 1000:
        text = f"{_quantize(number, 3):,.3f}".rstrip("0").rstrip(".").replace(",", thousands_sep)
    else:
        text = f"{_quantize(number, 0):.0f}"
    return f"{text} per 100k"


def format_tick(value: float) -> str:
    if value >= 1000:
        return f"{value / 1000:.1f}k"
    return f"{value:g}"
