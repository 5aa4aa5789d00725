"""
Cardiovascular Risk Assessment API.

This module exposes a FastAPI application over the rule-based risk engine.

Endpoints
---------
- GET  `/`                      : Liveness/health check.
- GET  `/version`               : App + rule-table version info.
- GET  `/rules`                 : The scoring rule table, in evaluation order.
- POST `/predict`               : Assess one record or a list of records.
- POST `/summary`               : Cohort statistics (dashboard view).
- POST `/explain/contributions` : Rule-by-rule score breakdown for one record.
- POST `/explain/pdp`           : Partial dependence (and optional ICE).

Notes
-----
- Request bodies are validated by the Pydantic models in ``.schemas`` and
  here; type errors surface as FastAPI's own 422 responses.
- Records that parse but are physically impossible raise
  ``InvalidFieldError`` in the engine and are returned as 422 with the
  offending field named.
- No scoring logic lives in this layer; every endpoint delegates to
  ``risk_engine`` or the service layer.
"""

import logging
import os
from typing import Annotated, Any, Dict, List, Optional, Union

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .risk_engine import InvalidFieldError, assess, describe_rules
from .schemas import ClinicalRecord
from .services.explain import contributions as svc_contributions
from .services.explain import partial_dependence as svc_pdp
from .services.metrics import summarize_cohort

APP_VERSION = "0.4"
RULES_VERSION = "rules-v1"
LOG_LEVEL = os.getenv("HEART_RISK_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Instantiate the FastAPI app with descriptive metadata for the OpenAPI schema.
app = FastAPI(
    title="Cardiovascular Risk Assessment API",
    version=APP_VERSION,
    description="Auditable rule-based heart disease risk scoring with recommendations",
)

# -----------------------------
# Pydantic models (API schemas)
# -----------------------------


class SummaryRequest(BaseModel):
    """Request payload for cohort statistics.

    Attributes
    ----------
    data:
        Records to summarize.
    top_k:
        Number of most frequent risk factors to report.
    """
    data: List[ClinicalRecord]
    top_k: Annotated[int, Field(ge=0)] = 5


class PDPRequest(BaseModel):
    """Request payload for Partial Dependence (and optional ICE) computation.

    Attributes
    ----------
    data:
        Records used as background; their other fields are held fixed.
    feature:
        Numeric field to sweep (e.g. ``restingBP``).
    grid:
        (Optional) Explicit grid values. If omitted, a grid is generated
        automatically.
    grid_size:
        Number of grid points to generate if ``grid`` is not provided.
    ice:
        Whether to include ICE (individual conditional expectation) curves.
    ice_count:
        Number of records to sample for ICE curves (if enabled).
    seed:
        Random seed for reproducible sampling.
    """
    data: List[ClinicalRecord]
    feature: str
    grid: Optional[List[float]] = None
    grid_size: Annotated[int, Field(ge=2)] = 20
    ice: bool = False
    ice_count: Annotated[int, Field(ge=1)] = 10
    seed: int = 42


class PDPResponse(BaseModel):
    feature: str
    grid: List[float]
    mean_score: List[float]
    mean_probability: List[float]
    ice: Optional[List[Dict[str, Any]]] = None


def _invalid(e: InvalidFieldError) -> HTTPException:
    logger.warning("Rejected record: %s", e)
    return HTTPException(status_code=422, detail={"field": e.field, "reason": e.reason})


# -----------
# Endpoints
# -----------


@app.get("/")
async def health_check():
    """Liveness probe.

    Returns
    -------
    dict
        App version, status and rule-table version.
    """
    return {"version": APP_VERSION, "status": "OK", "rules": RULES_VERSION}


@app.get("/version")
async def version():
    return {"app_version": APP_VERSION, "rules_version": RULES_VERSION}


@app.get("/rules")
async def rules():
    """Expose the scoring rule table (groups, conditions, weights, factors)."""
    return {"version": RULES_VERSION, "rules": describe_rules()}


@app.post("/predict")
async def predict(data: Union[ClinicalRecord, List[ClinicalRecord]]):
    """Assess one record or a batch.

    Parameters
    ----------
    data:
        A single record or a list of records following ``ClinicalRecord``.

    Returns
    -------
    dict | list[dict]
        One ``PredictionOutcome`` per record, serialized with wire names
        (``riskScore``, ``riskLevel``, ``riskFactors``, ...).

    Raises
    ------
    HTTPException
        422 if a record is physically impossible, 400 on other failures.
    """
    try:
        if isinstance(data, list):
            logger.info("Assessing batch of %d record(s)", len(data))
            return [assess(r).model_dump(by_alias=True, mode="json") for r in data]
        return assess(data).model_dump(by_alias=True, mode="json")

    except InvalidFieldError as e:
        raise _invalid(e)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error during prediction: {str(e)}")


@app.post("/summary")
async def summary(payload: SummaryRequest):
    """Cohort statistics computed with the same engine as ``/predict``."""
    try:
        return summarize_cohort(payload.data, top_k=payload.top_k)

    except InvalidFieldError as e:
        raise _invalid(e)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error during summary: {str(e)}")


@app.post("/explain/contributions")
async def explain_contributions(record: ClinicalRecord):
    """Rule-by-rule breakdown of one record's score, including weight-only tiers."""
    try:
        return svc_contributions(record)

    except InvalidFieldError as e:
        raise _invalid(e)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error in contributions: {e}")


@app.post("/explain/pdp", response_model=PDPResponse)
async def explain_pdp(payload: PDPRequest):
    """Compute Partial Dependence (and optional ICE) for a single numeric field.

    Raises
    ------
    HTTPException
        With status 400 if input is empty or the feature is unknown, 422 if
        a grid value is physically impossible.
    """
    try:
        res = svc_pdp(
            payload.data,
            feature=payload.feature,
            grid=payload.grid,
            grid_size=int(payload.grid_size),
            ice=bool(payload.ice),
            ice_count=int(payload.ice_count),
            seed=int(payload.seed),
        )
        return PDPResponse(**res)

    except InvalidFieldError as e:
        raise _invalid(e)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error in PDP/ICE: {e}")


def main() -> None:
    """Serve the app with uvicorn (``heart-risk-api`` console script)."""
    host = os.getenv("HEART_RISK_HOST", "127.0.0.1")
    port = int(os.getenv("HEART_RISK_PORT", "8000"))
    logger.info("Starting API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
