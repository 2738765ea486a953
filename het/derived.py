from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

import pandas as pd

from het.formatting import UNAVAILABLE, is_missing, to_number


@dataclass(frozen=True)
class DerivationRule:
    """Share of the aggregate for fields named ``<base><suffix>``.

    ``base_columns`` are templates for the metric the share is computed from;
    the first one present on the aggregate record is used.
    """

    suffix: str
    base_columns: Tuple[str, ...]

    def base_of(self, field_name: str) -> Optional[str]:
        if field_name.endswith(self.suffix) and len(field_name) > len(self.suffix):
            return field_name[: -len(self.suffix)]
        return None


# Checked in order: "_pct_share" must win over the shorter "_pct".
DERIVATION_RULES: Tuple[DerivationRule, ...] = (
    DerivationRule("_pct_share", ("{base}", "{base}_count")),
    DerivationRule("_pct", ("{base}",)),
)


def derivation_for(field_name: str) -> Optional[Tuple[DerivationRule, str]]:
    for rule in DERIVATION_RULES:
        base = rule.base_of(field_name)
        if base:
            return rule, base
    return None


def _is_falsy(value: Any) -> bool:
    if is_missing(value):
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, numbers.Number) and not isinstance(value, bool):
        return value == 0
    return False


def share_of_aggregate(
    record: Mapping[str, Any],
    aggregate: Optional[Mapping[str, Any]],
    rule: DerivationRule,
    base: str,
) -> Any:
    if aggregate is None:
        return 0.0
    for template in rule.base_columns:
        column = template.format(base=base)
        denominator = to_number(aggregate.get(column))
        if denominator is None:
            continue
        numerator = to_number(record.get(column))
        if numerator is None:
            return UNAVAILABLE
        if denominator == 0:
            return 0.0
        return float(numerator / denominator * 100)
    return UNAVAILABLE


def augment(
    records: pd.DataFrame,
    requested_fields: Iterable[str],
    aggregate: Optional[Mapping[str, Any]],
) -> pd.DataFrame:
    """Fill in requested fields the source did not supply.

    Returns a new frame; ``records`` and ``aggregate`` are left untouched.
    Known share fields are computed against ``aggregate`` when a record lacks
    them (or holds a falsy value); any other requested field without a value
    becomes ``UNAVAILABLE``.
    """
    out = records.copy()
    for field in dict.fromkeys(requested_fields):
        derivation = derivation_for(field)
        if field in out.columns:
            source = out[field]
        else:
            source = pd.Series([None] * len(out), index=out.index, dtype=object)

        values = []
        for pos in range(len(out)):
            current = source.iloc[pos]
            if derivation is not None and _is_falsy(current):
                values.append(share_of_aggregate(out.iloc[pos], aggregate, *derivation))
            elif is_missing(current):
                values.append(UNAVAILABLE)
            else:
                values.append(current)
        out[field] = pd.Series(values, index=out.index, dtype=object)
    return out
