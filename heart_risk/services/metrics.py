"""
Cohort summary statistics.

This module implements:
- `risk_distribution`: count of outcomes per risk level (all four levels
  always present).
- `top_risk_factors`: most frequent factor names across a cohort.
- `summarize_cohort`: the dashboard view of a list of records (totals,
  average age, gender split, level distribution, mean score/probability).

Notes
-----
- Levels come from ``risk_engine.assess``; no simplified re-scoring is
  done here, so a dashboard and a single assessment always agree.
- An empty cohort yields zero counts and 0.0 means, not an error.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union

import numpy as np
import pandas as pd

from ..risk_engine import assess, parse_record
from ..schemas import ClinicalRecord, Gender, PredictionOutcome, RiskLevel

logger = logging.getLogger(__name__)


def risk_distribution(outcomes: Iterable[PredictionOutcome]) -> Dict[str, int]:
    counts = {level.value: 0 for level in RiskLevel}
    for o in outcomes:
        counts[o.risk_level.value] += 1
    return counts


def top_risk_factors(outcomes: Sequence[PredictionOutcome], top_k: int = 5) -> List[Dict[str, Any]]:
    """Most frequent factor names, most common first.

    Ties keep first-seen order (``Counter.most_common`` is stable).
    """
    counter: Counter = Counter()
    for o in outcomes:
        counter.update(o.risk_factors)
    return [{"name": name, "count": int(n)} for name, n in counter.most_common(max(int(top_k), 0))]


def summarize_cohort(records: Sequence[Union[ClinicalRecord, Mapping[str, Any]]], top_k: int = 5) -> Dict[str, Any]:
    """Aggregate view of a cohort of records.

    Args
    ----
    records:
        Records (or wire-name mappings) to summarize; each one is assessed
        with the engine.
    top_k:
        Number of entries in ``top_risk_factors``.

    Returns
    -------
    dict
        Keys: ``total``, ``average_age``, ``gender_distribution``,
        ``risk_distribution``, ``high_risk_count``, ``mean_score``,
        ``mean_probability``, ``top_risk_factors``.

    Raises
    ------
    InvalidFieldError
        If any record fails validation.
    """
    records = [r if isinstance(r, ClinicalRecord) else parse_record(r) for r in records]
    outcomes = [assess(r) for r in records]
    dist = risk_distribution(outcomes)

    if not records:
        return {
            "total": 0,
            "average_age": 0,
            "gender_distribution": {g.value: 0 for g in Gender},
            "risk_distribution": dist,
            "high_risk_count": 0,
            "mean_score": 0.0,
            "mean_probability": 0.0,
            "top_risk_factors": [],
        }

    df = pd.DataFrame({
        "age": [r.age for r in records],
        "gender": [r.gender.value for r in records],
        "score": [o.risk_score for o in outcomes],
        "probability": [o.probability for o in outcomes],
    })
    genders = df["gender"].value_counts()

    summary = {
        "total": int(len(df)),
        "average_age": int(np.floor(df["age"].mean() + 0.5)),
        "gender_distribution": {g.value: int(genders.get(g.value, 0)) for g in Gender},
        "risk_distribution": dist,
        "high_risk_count": dist[RiskLevel.HIGH.value] + dist[RiskLevel.VERY_HIGH.value],
        "mean_score": float(df["score"].mean()),
        "mean_probability": float(df["probability"].mean()),
        "top_risk_factors": top_risk_factors(outcomes, top_k=top_k),
    }
    logger.debug("Summarized cohort of %d record(s)", summary["total"])
    return summary
