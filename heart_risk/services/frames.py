"""
Tabular batch helpers.

This module lets callers hand the engine a ``pd.DataFrame`` instead of
individual records:

- ``align_columns(df) -> pd.DataFrame``: rename attribute-style columns to
  wire names and put the record columns first, in schema order.
- ``records_from_frame(df) -> list[ClinicalRecord]``
- ``assess_frame(df) -> pd.DataFrame``: input rows plus the outcome columns.

Every row goes through ``risk_engine.assess``; there is no vectorized
shortcut, so a batch can never disagree with a single assessment.
"""

import logging
from typing import List

import numpy as np
import pandas as pd

from ..risk_engine import InvalidFieldError, assess, parse_record
from ..schemas import ClinicalRecord

logger = logging.getLogger(__name__)

# Wire names in schema order, e.g. ["age", "gender", "chestPainType", ...]
RECORD_COLUMNS: List[str] = [
    info.alias or name for name, info in ClinicalRecord.model_fields.items()
]
_ATTR_TO_WIRE = {
    name: info.alias for name, info in ClinicalRecord.model_fields.items() if info.alias
}
OUTCOME_COLUMNS = ["riskScore", "probability", "riskLevel", "riskFactors", "recommendations"]


def align_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``df`` with wire-named record columns first.

    Extra columns (identifiers, dates, ...) are kept after the record
    columns.

    Raises
    ------
    InvalidFieldError
        If a record column is missing.
    """
    aligned = df.rename(columns=_ATTR_TO_WIRE)
    missing = [c for c in RECORD_COLUMNS if c not in aligned.columns]
    if missing:
        raise InvalidFieldError(missing[0], None, f"missing column(s): {', '.join(missing)}")

    extra = [c for c in aligned.columns if c not in RECORD_COLUMNS]
    return aligned[RECORD_COLUMNS + extra].copy()


def _to_python(value):
    # numpy scalars -> builtins so pydantic sees plain ints/floats/bools
    if isinstance(value, np.generic):
        return value.item()
    return value


def records_from_frame(df: pd.DataFrame) -> List[ClinicalRecord]:
    aligned = align_columns(df)
    rows = aligned[RECORD_COLUMNS].to_dict(orient="records")
    return [parse_record({k: _to_python(v) for k, v in row.items()}) for row in rows]


def assess_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Assess every row of ``df``.

    Returns
    -------
    pd.DataFrame
        The aligned input with ``riskScore``, ``probability``,
        ``riskLevel``, ``riskFactors`` and ``recommendations`` appended,
        index preserved.
    """
    aligned = align_columns(df)
    records = records_from_frame(aligned)
    outcomes = [assess(r) for r in records]
    logger.info("Assessed %d row(s)", len(outcomes))

    out = aligned.copy()
    out["riskScore"] = [o.risk_score for o in outcomes]
    out["probability"] = [o.probability for o in outcomes]
    out["riskLevel"] = [o.risk_level.value for o in outcomes]
    out["riskFactors"] = [list(o.risk_factors) for o in outcomes]
    out["recommendations"] = [list(o.recommendations) for o in outcomes]
    return out
