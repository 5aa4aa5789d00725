"""
Shared fixtures: a baseline record that scores 0 and a record that fires
the most severe tier of every rule group.
"""

import pytest

from heart_risk.schemas import ClinicalRecord

BASE = {
    "age": 30,
    "gender": "female",
    "chest_pain_type": "asymptomatic",
    "resting_bp": 110,
    "cholesterol": 180,
    "fasting_bs": False,
    "resting_ecg": "normal",
    "max_heart_rate": 190,
    "exercise_angina": False,
    "oldpeak": 0.0,
    "st_slope": "up",
    "smoking": False,
    "diabetes": False,
    "family_history": False,
}

WORST = {
    "age": 70,
    "gender": "male",
    "chest_pain_type": "typical",
    "resting_bp": 180,
    "cholesterol": 300,
    "fasting_bs": True,
    "resting_ecg": "left-ventricular-hypertrophy",
    "max_heart_rate": 100,
    "exercise_angina": True,
    "oldpeak": 3.0,
    "st_slope": "down",
    "smoking": True,
    "diabetes": True,
    "family_history": True,
}


def make_record(base=None, **overrides) -> ClinicalRecord:
    d = dict(BASE if base is None else base)
    d.update(overrides)
    return ClinicalRecord(**d)


@pytest.fixture
def low_record() -> ClinicalRecord:
    return make_record()


@pytest.fixture
def worst_record() -> ClinicalRecord:
    return make_record(WORST)
