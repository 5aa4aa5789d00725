"""
Rule-based cardiovascular risk engine.

The engine turns a ``ClinicalRecord`` into a ``PredictionOutcome`` in three
stages that always run in the same order:

- Risk factor evaluation:
    * `rule_hits`: walk the fixed rule table and collect every fired tier.
    * `evaluate`: uncapped score plus the ordered list of named factors.

- Classification:
    * `risk_probability`: logistic curve centred at 40 with scale 15.
    * `risk_level`: four contiguous bands over [0, 100].
    * `classify`: both of the above.

- Assembly:
    * `assess`: validate -> evaluate -> cap -> classify -> recommend.

Validation (`parse_record`, `validate_record`) raises `InvalidFieldError`
for values outside the physical domain of a field. Clinically unusual but
physical values (BP 250, age 120, ...) are always scored.

All tables below are immutable module constants; nothing is cached or
mutated between calls, so every function here is safe to call concurrently.
"""

import logging
import math
from dataclasses import dataclass
from numbers import Real
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from pydantic import ValidationError

from .recommendations import recommend
from .schemas import (
    ChestPainType,
    ClinicalRecord,
    Gender,
    PredictionOutcome,
    RestingECG,
    RiskLevel,
    STSlope,
)

logger = logging.getLogger(__name__)

# ---------------------------
# Errors / validation
# ---------------------------


class InvalidFieldError(ValueError):
    """A record field holds a value outside its physical domain.

    Attributes
    ----------
    field : str
        Wire name of the offending field (e.g. ``"oldpeak"``).
    value : Any
        The rejected value.
    reason : str
        Short human-readable explanation.
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for '{field}': {value!r} ({reason})")


NUMERIC_FIELDS = ("age", "resting_bp", "cholesterol", "max_heart_rate", "oldpeak")
FLAG_FIELDS = ("fasting_bs", "exercise_angina", "smoking", "diabetes", "family_history")
ENUM_FIELDS = MappingProxyType({
    "gender": Gender,
    "chest_pain_type": ChestPainType,
    "resting_ecg": RestingECG,
    "st_slope": STSlope,
})

# Fields whose value must be strictly positive to be physical
POSITIVE_FIELDS = ("resting_bp", "cholesterol", "max_heart_rate")


def _wire_name(attr: str) -> str:
    info = ClinicalRecord.model_fields.get(attr)
    if info is not None and info.alias:
        return info.alias
    return attr


def parse_record(data: Mapping[str, Any]) -> ClinicalRecord:
    """Build a ``ClinicalRecord`` from a plain mapping.

    Both wire names (``restingBP``) and attribute names (``resting_bp``) are
    accepted. The first schema error is re-raised as ``InvalidFieldError``.
    """
    try:
        return ClinicalRecord.model_validate(dict(data))
    except ValidationError as e:
        err = e.errors()[0]
        loc = err.get("loc") or ("record",)
        field = ".".join(str(p) for p in loc)
        raise InvalidFieldError(field, err.get("input"), err.get("msg", "invalid value")) from e


def validate_record(record: ClinicalRecord) -> None:
    """Reject values that no real patient can have.

    Raises
    ------
    InvalidFieldError
        On a negative age, a non-positive BP/cholesterol/max heart rate, a
        non-finite number, a non-boolean flag or an unknown category.
    """
    for attr in NUMERIC_FIELDS:
        value = getattr(record, attr)
        if isinstance(value, bool) or not isinstance(value, Real):
            raise InvalidFieldError(_wire_name(attr), value, "expected a number")
        try:
            finite = math.isfinite(value)
        except OverflowError:
            # int too large to convert to float
            finite = False
        if not finite:
            raise InvalidFieldError(_wire_name(attr), value, "must be finite")

    if record.age < 0:
        raise InvalidFieldError("age", record.age, "must not be negative")
    for attr in POSITIVE_FIELDS:
        value = getattr(record, attr)
        if value <= 0:
            raise InvalidFieldError(_wire_name(attr), value, "must be positive")

    for attr in FLAG_FIELDS:
        value = getattr(record, attr)
        if not isinstance(value, bool):
            raise InvalidFieldError(_wire_name(attr), value, "expected true or false")

    for attr, enum_cls in ENUM_FIELDS.items():
        value = getattr(record, attr)
        if not isinstance(value, enum_cls):
            allowed = ", ".join(m.value for m in enum_cls)
            raise InvalidFieldError(_wire_name(attr), value, f"expected one of: {allowed}")


# ---------------------------
# Rule table
# ---------------------------


class Threshold(NamedTuple):
    bound: float
    weight: int
    name: Optional[str] = None


class Grade(NamedTuple):
    weight: int
    name: Optional[str] = None


# Tiers are listed most severe first; the first match wins.
AGE_TIERS = (
    Threshold(70, 25, "Advanced age (≥70)"),
    Threshold(60, 15, "Older age (60-69)"),
    Threshold(50, 10, "Middle age (50-59)"),
    Threshold(40, 5),
)
MALE_AGE_LIMIT = 65
MALE_GRADE = Grade(8, "Male gender (higher risk at younger age)")
BP_TIERS = (
    Threshold(180, 20, "Severe hypertension (≥180 mmHg)"),
    Threshold(140, 15, "High blood pressure (140-179 mmHg)"),
    Threshold(130, 8, "Elevated blood pressure (130-139 mmHg)"),
)
CHOLESTEROL_TIERS = (
    Threshold(300, 20, "Very high cholesterol (≥300 mg/dl)"),
    Threshold(240, 15, "High cholesterol (240-299 mg/dl)"),
    Threshold(200, 8, "Borderline high cholesterol (200-239 mg/dl)"),
)
CHEST_PAIN_GRADES = MappingProxyType({
    ChestPainType.TYPICAL: Grade(20, "Typical angina chest pain"),
    ChestPainType.ATYPICAL: Grade(12, "Atypical angina chest pain"),
    ChestPainType.NON_ANGINAL: Grade(5),
    ChestPainType.ASYMPTOMATIC: Grade(0),
})
FASTING_BS_GRADE = Grade(10, "Elevated fasting blood sugar (>120 mg/dl)")
ECG_GRADES = MappingProxyType({
    RestingECG.LEFT_VENTRICULAR_HYPERTROPHY: Grade(15, "Left ventricular hypertrophy on ECG"),
    RestingECG.ST_T_ABNORMALITY: Grade(10, "ST-T wave abnormalities on ECG"),
    RestingECG.NORMAL: Grade(0),
})
# Age-predicted maximum heart rate is MAX_HR_CEILING - age
MAX_HR_CEILING = 220
# Heart-rate reserve tiers match when ratio < bound
HR_RESERVE_TIERS = (
    Threshold(0.75, 12, "Poor exercise capacity (low max heart rate)"),
    Threshold(0.85, 6),
)
EXERCISE_ANGINA_GRADE = Grade(15, "Exercise-induced angina")
OLDPEAK_TIERS = (
    Threshold(3.0, 18, "Severe ST depression (≥3.0)"),
    Threshold(2.0, 12, "Moderate ST depression (2.0-2.9)"),
    Threshold(1.0, 6, "Mild ST depression (1.0-1.9)"),
)
ST_SLOPE_GRADES = MappingProxyType({
    STSlope.DOWN: Grade(15, "Downsloping ST segment"),
    STSlope.FLAT: Grade(8, "Flat ST segment"),
    STSlope.UP: Grade(0),
})
SMOKING_GRADE = Grade(20, "Current or former smoker")
DIABETES_GRADE = Grade(18, "Diabetes mellitus")
FAMILY_HISTORY_GRADE = Grade(12, "Family history of heart disease")

SCORE_CAP = 100
LOGISTIC_CENTER = 40.0
LOGISTIC_SCALE = 15.0
# Upper (exclusive) score bound of each level; anything above is VERY_HIGH
LEVEL_BOUNDS = (
    (25, RiskLevel.LOW),
    (50, RiskLevel.MODERATE),
    (75, RiskLevel.HIGH),
)


@dataclass(frozen=True)
class RiskFactor:
    """Named, weighted condition detected in a record."""

    name: str
    value: Any
    weight: int


@dataclass(frozen=True)
class RuleHit:
    """One fired tier. ``factor`` is None for weight-only tiers."""

    group: str
    weight: int
    factor: Optional[RiskFactor] = None


# A rule returns (weight, factor name or None, raw value) or None.
Match = Optional[Tuple[int, Optional[str], Any]]


class Rule(NamedTuple):
    group: str
    match: Callable[[ClinicalRecord], Match]
    tiers: Tuple[Tuple[str, Grade], ...]


def heart_rate_reserve(age: float, max_heart_rate: float) -> float:
    """Achieved / age-predicted max heart rate.

    When the predicted maximum is not positive (age >= 220) the ratio is
    reported as 0.0, which lands in the worst tier.
    """
    expected = MAX_HR_CEILING - age
    if expected <= 0:
        return 0.0
    return max_heart_rate / expected


def _at_or_above(attr: str, tiers: Tuple[Threshold, ...]) -> Rule:
    def match(record: ClinicalRecord) -> Match:
        value = getattr(record, attr)
        for t in tiers:
            if value >= t.bound:
                return t.weight, t.name, value
        return None

    table = tuple((f"{attr} >= {t.bound:g}", Grade(t.weight, t.name)) for t in tiers)
    return Rule(attr, match, table)


def _categorical(attr: str, grades: Mapping[Any, Grade]) -> Rule:
    def match(record: ClinicalRecord) -> Match:
        value = getattr(record, attr)
        grade = grades[value]
        return grade.weight, grade.name, value.value

    table = tuple((f"{attr} = {k.value}", g) for k, g in grades.items())
    return Rule(attr, match, table)


def _flag(attr: str, grade: Grade) -> Rule:
    def match(record: ClinicalRecord) -> Match:
        if getattr(record, attr):
            return grade.weight, grade.name, True
        return None

    return Rule(attr, match, ((f"{attr} = true", grade),))


def _male_under_limit(record: ClinicalRecord) -> Match:
    if record.gender is Gender.MALE and record.age < MALE_AGE_LIMIT:
        return MALE_GRADE.weight, MALE_GRADE.name, record.gender.value
    return None


def _low_heart_rate_reserve(record: ClinicalRecord) -> Match:
    ratio = heart_rate_reserve(record.age, record.max_heart_rate)
    for t in HR_RESERVE_TIERS:
        if ratio < t.bound:
            return t.weight, t.name, record.max_heart_rate
    return None


RULES: Tuple[Rule, ...] = (
    _at_or_above("age", AGE_TIERS),
    Rule("gender", _male_under_limit, ((f"gender = male and age < {MALE_AGE_LIMIT}", MALE_GRADE),)),
    _at_or_above("resting_bp", BP_TIERS),
    _at_or_above("cholesterol", CHOLESTEROL_TIERS),
    _categorical("chest_pain_type", CHEST_PAIN_GRADES),
    _flag("fasting_bs", FASTING_BS_GRADE),
    _categorical("resting_ecg", ECG_GRADES),
    Rule(
        "heart_rate_reserve",
        _low_heart_rate_reserve,
        tuple(
            (f"max_heart_rate / ({MAX_HR_CEILING} - age) < {t.bound:g}", Grade(t.weight, t.name))
            for t in HR_RESERVE_TIERS
        ),
    ),
    _flag("exercise_angina", EXERCISE_ANGINA_GRADE),
    _at_or_above("oldpeak", OLDPEAK_TIERS),
    _categorical("st_slope", ST_SLOPE_GRADES),
    _flag("smoking", SMOKING_GRADE),
    _flag("diabetes", DIABETES_GRADE),
    _flag("family_history", FAMILY_HISTORY_GRADE),
)


def describe_rules() -> List[Dict[str, Any]]:
    """JSON-friendly view of the rule table, in evaluation order."""
    return [
        {
            "group": rule.group,
            "tiers": [
                {"condition": cond, "weight": grade.weight, "factor": grade.name}
                for cond, grade in rule.tiers
            ],
        }
        for rule in RULES
    ]


# ---------------------------
# Evaluation
# ---------------------------


def rule_hits(record: ClinicalRecord) -> List[RuleHit]:
    """Fired tiers in rule-table order, weight-only tiers included.

    Zero-weight tiers (asymptomatic chest pain, normal ECG, upsloping ST)
    are not reported.
    """
    hits: List[RuleHit] = []
    for rule in RULES:
        matched = rule.match(record)
        if matched is None:
            continue
        weight, name, value = matched
        if weight <= 0:
            continue
        factor = RiskFactor(name, value, weight) if name else None
        hits.append(RuleHit(rule.group, weight, factor))
    return hits


def evaluate(record: ClinicalRecord) -> Tuple[int, List[RiskFactor]]:
    """Accumulate the uncapped score and the ordered named factors."""
    hits = rule_hits(record)
    score = sum(h.weight for h in hits)
    factors = [h.factor for h in hits if h.factor is not None]
    return score, factors


def risk_probability(score: float) -> float:
    """Logistic transform of a score in [0, SCORE_CAP]; never 0 or 1."""
    return 1.0 / (1.0 + math.exp(-(score - LOGISTIC_CENTER) / LOGISTIC_SCALE))


def risk_level(score: float) -> RiskLevel:
    for upper, level in LEVEL_BOUNDS:
        if score < upper:
            return level
    return RiskLevel.VERY_HIGH


def classify(score: int) -> Tuple[float, RiskLevel]:
    """Map a capped score to ``(probability, level)``.

    Raises
    ------
    ValueError
        If ``score`` is outside [0, SCORE_CAP].
    """
    if not 0 <= score <= SCORE_CAP:
        raise ValueError(f"score must be in [0, {SCORE_CAP}], got {score}")
    return risk_probability(score), risk_level(score)


def assess(record: Union[ClinicalRecord, Mapping[str, Any]]) -> PredictionOutcome:
    """Run the full assessment for one record.

    Parameters
    ----------
    record:
        A ``ClinicalRecord`` or a mapping accepted by ``parse_record``.

    Returns
    -------
    PredictionOutcome
        Capped score, probability, level, factor names and recommendations.

    Raises
    ------
    InvalidFieldError
        If any field is outside its physical domain.
    """
    if not isinstance(record, ClinicalRecord):
        if not isinstance(record, Mapping):
            raise TypeError(f"Expected ClinicalRecord or mapping, got {type(record).__name__}")
        record = parse_record(record)
    validate_record(record)

    raw_score, factors = evaluate(record)
    score = min(raw_score, SCORE_CAP)
    probability, level = classify(score)
    logger.debug("raw_score=%d score=%d level=%s factors=%d", raw_score, score, level.value, len(factors))

    return PredictionOutcome(
        risk_score=score,
        probability=probability,
        risk_level=level,
        risk_factors=[f.name for f in factors],
        recommendations=recommend(record, level, factors),
    )
