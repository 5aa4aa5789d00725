"""
Data schemas for the cardiovascular risk engine.

This module defines the Pydantic models exchanged with the engine and the
API, plus the closed enumerations used by the categorical fields. The
feature set follows the classic UCI Heart Disease dataset, extended with
three lifestyle/comorbidity flags.

Notes
-----
- Units:
    * resting_bp: mm Hg (resting blood pressure)
    * cholesterol: mg/dL (serum cholesterol)
    * max_heart_rate: bpm (maximum heart rate achieved)
    * oldpeak: ST depression (unitless, relative to rest)
- Wire names are camelCase (``restingBP``, ``chestPainType``, ...); Python
  attribute names are snake_case. Both spellings are accepted on input and
  outputs are serialized with the wire names (``by_alias=True``).
- Only types are enforced here (booleans are not accepted as numbers). Domain checks (negative age, non-finite
  oldpeak, ...) belong to ``risk_engine.validate_record`` so that slightly
  out-of-range clinical values still get scored.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class ChestPainType(str, Enum):
    TYPICAL = "typical"
    ATYPICAL = "atypical"
    NON_ANGINAL = "non-anginal"
    ASYMPTOMATIC = "asymptomatic"


class RestingECG(str, Enum):
    NORMAL = "normal"
    ST_T_ABNORMALITY = "st-t-abnormality"
    LEFT_VENTRICULAR_HYPERTROPHY = "left-ventricular-hypertrophy"


class STSlope(str, Enum):
    UP = "up"
    FLAT = "flat"
    DOWN = "down"


class RiskLevel(str, Enum):
    """Ordered risk categories, lowest first."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very-high"

    @property
    def rank(self) -> int:
        return list(RiskLevel).index(self)


class ClinicalRecord(BaseModel):
    """Single patient record submitted for risk assessment.

    Attributes
    ----------
    age : int
        Age in years.
    gender : Gender
        Biological sex.
    chest_pain_type : ChestPainType
        Chest pain classification.
    resting_bp : int
        Resting blood pressure on admission (mm Hg).
    cholesterol : int
        Serum cholesterol (mg/dL).
    fasting_bs : bool
        Fasting blood sugar above 120 mg/dL.
    resting_ecg : RestingECG
        Resting electrocardiographic result.
    max_heart_rate : int
        Maximum heart rate achieved (bpm).
    exercise_angina : bool
        Exercise-induced angina.
    oldpeak : float
        ST depression induced by exercise relative to rest.
    st_slope : STSlope
        Slope of the peak exercise ST segment.
    smoking, diabetes, family_history : bool
        Lifestyle and comorbidity flags.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # Age in years
    age: int
    gender: Gender
    chest_pain_type: ChestPainType = Field(alias="chestPainType")
    # Resting blood pressure (mm Hg)
    resting_bp: int = Field(alias="restingBP")
    # Serum cholesterol (mg/dL)
    cholesterol: int
    # True if fasting blood sugar > 120 mg/dL
    fasting_bs: bool = Field(alias="fastingBS")
    resting_ecg: RestingECG = Field(alias="restingECG")
    # Maximum heart rate achieved (bpm)
    max_heart_rate: int = Field(alias="maxHeartRate")
    exercise_angina: bool = Field(alias="exerciseAngina")
    # ST depression (relative to rest)
    oldpeak: float
    st_slope: STSlope = Field(alias="stSlope")
    smoking: bool
    diabetes: bool
    family_history: bool = Field(alias="familyHistory")

    @field_validator("age", "resting_bp", "cholesterol", "max_heart_rate", "oldpeak", mode="before")
    @classmethod
    def _reject_boolean_measurement(cls, value):
        # lax mode would turn true/false into 1/0
        if isinstance(value, bool):
            raise ValueError("expected a number, got a boolean")
        return value


class PredictionOutcome(BaseModel):
    """Assessment returned by ``risk_engine.assess``.

    Attributes
    ----------
    risk_score : int
        Capped accumulated weight, 0..100.
    probability : float
        Logistic transform of the score, strictly inside (0, 1).
    risk_level : RiskLevel
        Category derived from the score.
    risk_factors : list[str]
        Triggered factor names in rule-table order.
    recommendations : list[str]
        Advisory items; the first is always the check-up reminder.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    risk_score: int = Field(alias="riskScore")
    probability: float
    risk_level: RiskLevel = Field(alias="riskLevel")
    risk_factors: List[str] = Field(alias="riskFactors")
    recommendations: List[str]
