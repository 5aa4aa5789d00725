# heart_risk/services/explain.py
"""
Explainability utilities for the risk engine.

Two audit views over the rule table:

1) Contribution trace
   - Lists every fired tier for one record in evaluation order, with its
     weight, the factor it produced (if any) and the running total, then
     shows where the cap at 100 applied.

2) Partial Dependence (PDP) and optional ICE
   - Sweeps one numeric field over a grid while holding the other fields
     of each record fixed, and averages the resulting score and
     probability across the cohort.
   - ICE keeps the per-record curves for a sampled subset.

Notes
-----
- Both views call the same functions as ``risk_engine.assess``; they do not
  re-implement any weight.
- Randomness is used only to sample ICE rows.
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..risk_engine import (
    NUMERIC_FIELDS,
    SCORE_CAP,
    assess,
    rule_hits,
    validate_record,
)
from ..schemas import ClinicalRecord

_WIRE_TO_ATTR = {
    info.alias: name for name, info in ClinicalRecord.model_fields.items() if info.alias
}
# Swept values for these fields are rounded to whole numbers
_INTEGER_FIELDS = frozenset(
    name for name, info in ClinicalRecord.model_fields.items() if info.annotation is int
)


def contributions(record: ClinicalRecord) -> Dict[str, Any]:
    """Rule-by-rule breakdown of a record's score.

    Returns
    -------
    dict
        ``hits`` (list of ``group``, ``weight``, ``factor``, ``value``,
        ``running_total``), ``raw_score`` (uncapped), ``risk_score``
        (capped) and ``capped`` (True if the cap changed the score).
    """
    validate_record(record)
    rows: List[Dict[str, Any]] = []
    total = 0
    for hit in rule_hits(record):
        total += hit.weight
        rows.append({
            "group": hit.group,
            "weight": hit.weight,
            "factor": hit.factor.name if hit.factor else None,
            "value": hit.factor.value if hit.factor else None,
            "running_total": total,
        })
    return {
        "hits": rows,
        "raw_score": total,
        "risk_score": min(total, SCORE_CAP),
        "capped": total > SCORE_CAP,
    }


def _resolve_feature(feature: str) -> str:
    attr = _WIRE_TO_ATTR.get(feature, feature)
    if attr not in NUMERIC_FIELDS:
        allowed = sorted(NUMERIC_FIELDS)
        raise ValueError(f"Feature '{feature}' is not a numeric field. Available: {allowed}")
    return attr


def _sweep(record: ClinicalRecord, attr: str, grid: Sequence[float]):
    scores, probas = [], []
    for g in grid:
        outcome = assess(record.model_copy(update={attr: g}))
        scores.append(float(outcome.risk_score))
        probas.append(float(outcome.probability))
    return scores, probas


def partial_dependence(
    records: Sequence[ClinicalRecord],
    feature: str,
    grid: Optional[List[float]] = None,
    grid_size: int = 20,
    ice: bool = False,
    ice_count: int = 10,
    seed: int = 42,
) -> Dict[str, object]:
    """
    Compute 1D partial dependence of score and probability on a field.

    Args
    ----
    records:
        Background cohort; other fields are held at their observed values.
    feature:
        Numeric field to sweep (wire or attribute name, e.g. ``"restingBP"``
        or ``"resting_bp"``).
    grid:
        Optional explicit grid. If not provided, ``grid_size`` points are
        spread between the 1st and 99th percentiles of the field. Grids for
        integer fields (age, BP, cholesterol, max heart rate) are rounded
        and deduplicated, so they may hold fewer points.
    grid_size:
        Number of grid points when ``grid`` is not provided (min 2).
    ice:
        If True, also return per-record score curves.
    ice_count:
        Number of records to sample for ICE (capped at cohort size).
    seed:
        RNG seed for ICE sampling.

    Returns
    -------
    dict
        ``feature``, ``grid``, ``mean_score`` and ``mean_probability`` (one
        value per grid point), and optionally
        ``ice`` = list of ``{"row_index": int, "curve": list[float]}``.

    Raises
    ------
    ValueError
        If ``records`` is empty or ``feature`` is not a numeric field.
    InvalidFieldError
        If a grid value is outside the field's physical domain.
    """
    if not records:
        raise ValueError("Empty cohort.")
    attr = _resolve_feature(feature)

    col = np.array([float(getattr(r, attr)) for r in records])

    if grid is None or len(grid) == 0:
        vmin, vmax = np.percentile(col, [1, 99])
        if vmin == vmax:
            # Constant field: sweep a tiny band around the value
            vmin, vmax = float(vmin) - 1e-6, float(vmax) + 1e-6
        grid = list(np.linspace(float(vmin), float(vmax), int(max(grid_size, 2))))
    if attr in _INTEGER_FIELDS:
        # keep first occurrence of each rounded value
        grid = list(dict.fromkeys(int(round(g)) for g in grid))
    else:
        grid = [float(g) for g in grid]

    curves = [_sweep(r, attr, grid) for r in records]
    score_matrix = np.array([c[0] for c in curves])
    proba_matrix = np.array([c[1] for c in curves])

    result: Dict[str, object] = {
        "feature": feature,
        "grid": grid,
        "mean_score": score_matrix.mean(axis=0).tolist(),
        "mean_probability": proba_matrix.mean(axis=0).tolist(),
    }

    if ice:
        rng = np.random.default_rng(seed)
        n = len(records)
        take = min(int(ice_count), n)
        idxs = rng.choice(n, size=take, replace=False)
        result["ice"] = [
            {"row_index": int(i), "curve": score_matrix[int(i)].tolist()} for i in idxs
        ]

    return result
