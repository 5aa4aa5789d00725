import pytest
from fastapi.testclient import TestClient

from heart_risk.api import APP_VERSION, app

from conftest import WORST, make_record


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _payload(**overrides):
    return make_record(**overrides).model_dump(by_alias=True, mode="json")


def test_health_and_version(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "OK"
    assert client.get("/version").json()["app_version"] == APP_VERSION


def test_rules_endpoint(client):
    body = client.get("/rules").json()
    assert len(body["rules"]) == 14
    assert body["rules"][1]["group"] == "gender"


def test_predict_single(client):
    r = client.post("/predict", json=_payload())
    assert r.status_code == 200
    body = r.json()
    assert body["riskScore"] == 0
    assert body["riskLevel"] == "low"
    assert body["riskFactors"] == []
    assert body["recommendations"][0] == "Schedule regular check-ups with your cardiologist"
    assert 0 < body["probability"] < 1


def test_predict_batch(client):
    worst = make_record(WORST).model_dump(by_alias=True, mode="json")
    r = client.post("/predict", json=[_payload(), worst])
    assert r.status_code == 200
    assert [o["riskLevel"] for o in r.json()] == ["low", "very-high"]


def test_predict_rejects_impossible_record(client):
    r = client.post("/predict", json=_payload(age=-4))
    assert r.status_code == 422
    assert r.json()["detail"] == {"field": "age", "reason": "must not be negative"}


def test_predict_rejects_unknown_category(client):
    body = _payload()
    body["chestPainType"] = "crushing"
    r = client.post("/predict", json=body)
    assert r.status_code == 422


def test_summary_endpoint(client):
    worst = make_record(WORST).model_dump(by_alias=True, mode="json")
    r = client.post("/summary", json={"data": [_payload(), worst], "top_k": 2})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert body["risk_distribution"]["very-high"] == 1
    assert len(body["top_risk_factors"]) == 2


def test_contributions_endpoint(client):
    r = client.post("/explain/contributions", json=_payload(age=45))
    assert r.status_code == 200
    assert r.json()["raw_score"] == 5


def test_pdp_endpoint(client):
    r = client.post(
        "/explain/pdp",
        json={"data": [_payload()], "feature": "cholesterol", "grid": [180, 200, 240, 300]},
    )
    assert r.status_code == 200
    assert r.json()["mean_score"] == [0.0, 8.0, 15.0, 20.0]


def test_pdp_unknown_feature(client):
    r = client.post("/explain/pdp", json={"data": [_payload()], "feature": "gender"})
    assert r.status_code == 400


def test_predict_rejects_boolean_measurements(client):
    body = _payload()
    body["oldpeak"] = True
    body["maxHeartRate"] = True
    r = client.post("/predict", json=body)
    assert r.status_code == 422
    bad = {err["loc"][-1] for err in r.json()["detail"]}
    assert {"oldpeak", "maxHeartRate"} <= bad


def test_predict_rejects_oversized_integer(client):
    r = client.post("/predict", json=_payload(age=10**400))
    assert r.status_code == 422
    assert r.json()["detail"] == {"field": "age", "reason": "must be finite"}


def test_main_serves_app_with_uvicorn(monkeypatch):
    import heart_risk.api as api

    calls = {}

    def fake_run(served, **kwargs):
        calls["app"] = served
        calls.update(kwargs)

    monkeypatch.setenv("HEART_RISK_HOST", "0.0.0.0")
    monkeypatch.setenv("HEART_RISK_PORT", "9001")
    monkeypatch.setattr(api.uvicorn, "run", fake_run)
    api.main()

    assert calls["app"] is app
    assert calls["host"] == "0.0.0.0"
    assert calls["port"] == 9001
