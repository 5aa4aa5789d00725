import pandas as pd
import pytest

from heart_risk.risk_engine import InvalidFieldError, assess
from heart_risk.services.explain import contributions, partial_dependence
from heart_risk.services.frames import RECORD_COLUMNS, align_columns, assess_frame, records_from_frame
from heart_risk.services.metrics import risk_distribution, summarize_cohort, top_risk_factors

from conftest import BASE, WORST, make_record


def _cohort():
    return [
        make_record(),
        make_record(WORST),
        make_record(smoking=True, diabetes=True, family_history=True),
    ]


# ---------------------------
# frames
# ---------------------------


def test_assess_frame_matches_single_assessment():
    records = _cohort()
    df = pd.DataFrame([r.model_dump(by_alias=True, mode="json") for r in records])
    out = assess_frame(df)

    assert list(out.columns[: len(RECORD_COLUMNS)]) == RECORD_COLUMNS
    for i, rec in enumerate(records):
        single = assess(rec)
        assert out["riskScore"].iloc[i] == single.risk_score
        assert out["probability"].iloc[i] == pytest.approx(single.probability)
        assert out["riskLevel"].iloc[i] == single.risk_level.value
        assert out["riskFactors"].iloc[i] == single.risk_factors
        assert out["recommendations"].iloc[i] == single.recommendations


def test_frame_accepts_attribute_names_and_keeps_extra_columns():
    df = pd.DataFrame([dict(BASE, patient_id="p-1"), dict(WORST, patient_id="p-2")])
    aligned = align_columns(df)
    assert list(aligned.columns) == RECORD_COLUMNS + ["patient_id"]

    out = assess_frame(df)
    assert out["patient_id"].tolist() == ["p-1", "p-2"]
    assert out["riskScore"].tolist() == [0, 100]


def test_frame_missing_column_is_reported():
    df = pd.DataFrame([{k: v for k, v in BASE.items() if k != "cholesterol"}])
    with pytest.raises(InvalidFieldError) as exc:
        align_columns(df)
    assert exc.value.field == "cholesterol"


def test_records_from_frame_validates_rows():
    df = pd.DataFrame([dict(BASE, gender="unknown")])
    with pytest.raises(InvalidFieldError):
        records_from_frame(df)


# ---------------------------
# metrics
# ---------------------------


def test_summarize_empty_cohort():
    summary = summarize_cohort([])
    assert summary["total"] == 0
    assert summary["average_age"] == 0
    assert summary["risk_distribution"] == {"low": 0, "moderate": 0, "high": 0, "very-high": 0}
    assert summary["gender_distribution"] == {"male": 0, "female": 0}
    assert summary["top_risk_factors"] == []


def test_summarize_cohort_uses_engine_levels():
    records = _cohort()
    summary = summarize_cohort(records, top_k=3)

    assert summary["total"] == 3
    assert summary["average_age"] == 43
    assert summary["gender_distribution"] == {"male": 1, "female": 2}
    assert summary["risk_distribution"] == {"low": 1, "moderate": 0, "high": 1, "very-high": 1}
    assert summary["high_risk_count"] == 2
    assert summary["mean_score"] == pytest.approx(50.0)

    expected_probs = [assess(r).probability for r in records]
    assert summary["mean_probability"] == pytest.approx(sum(expected_probs) / 3)

    assert summary["top_risk_factors"] == [
        {"name": "Current or former smoker", "count": 2},
        {"name": "Diabetes mellitus", "count": 2},
        {"name": "Family history of heart disease", "count": 2},
    ]


def test_summarize_accepts_mappings():
    summary = summarize_cohort([dict(BASE), dict(WORST)])
    assert summary["risk_distribution"]["very-high"] == 1


def test_distribution_and_top_factors_helpers():
    outcomes = [assess(r) for r in _cohort()]
    assert sum(risk_distribution(outcomes).values()) == 3
    assert top_risk_factors(outcomes, top_k=0) == []


# ---------------------------
# explain
# ---------------------------


def test_contributions_trace_worst_record(worst_record):
    trace = contributions(worst_record)
    assert trace["raw_score"] == 220
    assert trace["risk_score"] == 100
    assert trace["capped"] is True
    assert trace["hits"][0] == {
        "group": "age",
        "weight": 25,
        "factor": "Advanced age (≥70)",
        "value": 70,
        "running_total": 25,
    }
    assert trace["hits"][-1]["running_total"] == 220


def test_contributions_show_weight_only_tiers():
    trace = contributions(make_record(age=45, chest_pain_type="non-anginal"))
    assert [h["factor"] for h in trace["hits"]] == [None, None]
    assert trace["raw_score"] == 10
    assert trace["capped"] is False


def test_partial_dependence_explicit_grid():
    res = partial_dependence([make_record()], "restingBP", grid=[110, 130, 140, 180])
    assert res["feature"] == "restingBP"
    assert res["grid"] == [110.0, 130.0, 140.0, 180.0]
    assert res["mean_score"] == [0.0, 8.0, 15.0, 20.0]
    assert res["mean_probability"] == sorted(res["mean_probability"])
    assert "ice" not in res


def test_partial_dependence_auto_grid_and_ice():
    records = _cohort()
    res = partial_dependence(records, "oldpeak", grid_size=5, ice=True, ice_count=2, seed=0)
    assert len(res["grid"]) == 5
    assert len(res["mean_score"]) == 5
    assert len(res["ice"]) == 2
    for curve in res["ice"]:
        assert len(curve["curve"]) == 5
        assert 0 <= curve["row_index"] < 3


def test_partial_dependence_rejects_bad_input():
    with pytest.raises(ValueError):
        partial_dependence([], "age")
    with pytest.raises(ValueError):
        partial_dependence([make_record()], "gender")


def test_partial_dependence_rounds_integer_field_grids():
    records = [make_record(age=a, max_heart_rate=200) for a in (31, 40, 52, 67, 80)]
    res = partial_dependence(records, "age", grid_size=60)
    assert all(isinstance(g, int) for g in res["grid"])
    assert res["grid"] == sorted(set(res["grid"]))
    assert len(res["mean_score"]) == len(res["grid"])

    res = partial_dependence([make_record()], "maxHeartRate", grid=[150.4, 150.6, 151.2])
    assert res["grid"] == [150, 151]
