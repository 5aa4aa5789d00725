"""Rule-based cardiovascular risk assessment."""

from .risk_engine import InvalidFieldError, assess, classify, evaluate
from .recommendations import recommend
from .schemas import ClinicalRecord, PredictionOutcome, RiskLevel

__all__ = [
    "ClinicalRecord",
    "InvalidFieldError",
    "PredictionOutcome",
    "RiskLevel",
    "assess",
    "classify",
    "evaluate",
    "recommend",
]
