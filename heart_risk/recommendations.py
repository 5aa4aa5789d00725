"""
Advisory text generation.

`recommend` builds the ordered recommendation list for an assessed record:

1. The universal check-up reminder (always first).
2. Level-gated guidance: lifestyle maintenance for LOW, otherwise a
   cardiologist consult, plus urgent-evaluation items for HIGH and above.
3. Field-specific guidance, gated on the raw record values. These gates use
   their own strict thresholds (``BP > 140``, ``cholesterol > 240``,
   ``oldpeak > 2``, ``age > 60``), which differ from the scoring tiers.
4. General lifestyle block for any level above LOW.

Items are appended only; nothing is deduplicated or reordered.
"""

from typing import Any, List, Sequence

from .schemas import ClinicalRecord, RiskLevel

CHECKUP_REMINDER = "Schedule regular check-ups with your cardiologist"

LOW_RISK_ADVICE = (
    "Continue maintaining a healthy lifestyle",
    "Exercise regularly (150 minutes moderate activity per week)",
    "Follow a heart-healthy diet rich in fruits and vegetables",
)
CONSULT_ADVICE = "Consult with a cardiologist for comprehensive evaluation"
URGENT_ADVICE = (
    "Consider immediate medical evaluation",
    "May require cardiac stress testing or imaging",
)

BP_GATE = 140
CHOLESTEROL_GATE = 240
OLDPEAK_GATE = 2.0
AGE_GATE = 60

BP_ADVICE = (
    "Blood pressure management is critical - discuss medications with your doctor",
    "Reduce sodium intake and maintain healthy weight",
)
CHOLESTEROL_ADVICE = (
    "Cholesterol management required - consider statin therapy",
    "Follow a low-cholesterol, low-saturated fat diet",
)
SMOKING_ADVICE = (
    "Smoking cessation is the single most important step",
    "Consider nicotine replacement therapy or counseling",
)
DIABETES_ADVICE = (
    "Optimal diabetes control is essential for heart health",
    "Monitor HbA1c levels regularly",
)
ISCHEMIA_ADVICE = (
    "Avoid strenuous exercise until cleared by cardiologist",
    "Consider cardiac rehabilitation program",
)
AGE_ADVICE = (
    "Consider annual cardiac screening",
    "Monitor for symptoms: chest pain, breathlessness, fatigue",
)
LIFESTYLE_ADVICE = (
    "Adopt Mediterranean diet or DASH diet",
    "Maintain healthy weight (BMI 18.5-25)",
    "Limit alcohol consumption",
    "Manage stress through relaxation techniques",
)


def recommend(record: ClinicalRecord, level: RiskLevel, factors: Sequence[Any] = ()) -> List[str]:
    """Build the recommendation list for ``record`` at ``level``.

    ``factors`` is accepted for call-site symmetry with the evaluator but
    the field gates read the raw record only.
    """
    level = RiskLevel(level)
    out: List[str] = [CHECKUP_REMINDER]

    if level is RiskLevel.LOW:
        out.extend(LOW_RISK_ADVICE)
    else:
        out.append(CONSULT_ADVICE)
        if level.rank >= RiskLevel.HIGH.rank:
            out.extend(URGENT_ADVICE)

    if record.resting_bp > BP_GATE:
        out.extend(BP_ADVICE)
    if record.cholesterol > CHOLESTEROL_GATE:
        out.extend(CHOLESTEROL_ADVICE)
    if record.smoking:
        out.extend(SMOKING_ADVICE)
    if record.diabetes:
        out.extend(DIABETES_ADVICE)
    if record.exercise_angina or record.oldpeak > OLDPEAK_GATE:
        out.extend(ISCHEMIA_ADVICE)
    if record.age > AGE_GATE:
        out.extend(AGE_ADVICE)

    if level is not RiskLevel.LOW:
        out.extend(LIFESTYLE_ADVICE)

    return out
