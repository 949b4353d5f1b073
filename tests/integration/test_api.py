"""
Integration tests for the FastAPI surface

Tests:
- POST /api/assess response shape and processing metadata
- Typed rejection of invalid input (HTTP 400)
- Vocabulary violations surfaced as server errors (HTTP 500)
- System endpoints
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from api.app import app, get_engine
from carrier_screening.core.config import Settings
from carrier_screening.engine import ScreeningEngine
from carrier_screening.exceptions import VocabularyViolationError
from carrier_screening.extraction.llm_extractor import LlmExtractor

SCENARIO = "G3P2, 32yo, BMI 24.5, SVD x2, no complications"

screening_engine = ScreeningEngine(settings=Settings(enable_ai_extraction=False), llm_extractor=LlmExtractor(None))

# Create client without entering the lifespan; the engine comes from the override
client = TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def override_engine():
    app.dependency_overrides[get_engine] = lambda: screening_engine
    yield
    app.dependency_overrides.clear()


# ============================================================================
# ASSESSMENT
# ============================================================================

def test_assess_structured_record():
    response = client.post("/api/assess", json={"text": SCENARIO})

    assert response.status_code == 200
    data = response.json()
    assert data["candidate_record"]["age"] == 32
    assert data["candidate_record"]["pregnancy_history"]["total_deliveries"] == 2
    assert data["extraction_confidence"] == 82
    assert data["source_layers"] == ["narrative", "pattern"]
    assert data["ai_used"] is False

    clinics = data["clinic_assessments"]
    assert clinics["strict"]["score"] == 95
    assert clinics["moderate"]["score"] == 92
    assert clinics["lenient"]["score"] == 95
    assert clinics["strict"]["acceptance_label"] == "Likely to Approve"
    assert clinics["recommendations"][-1] == "Best match: STRICT clinics - Likely to Approve"

    specialist = data["specialist_assessment"]
    assert specialist["review_level"] == "not_required"
    assert specialist["consultation_needed"] is False

    eligibility = data["eligibility_assessment"]
    assert eligibility["overall_status"] == "eligible"
    assert eligibility["missing_categories"] == ["Infectious Disease Screening"]
    assert eligibility["criteria"][0] == {
        "category": "Age Requirements",
        "status": "eligible",
        "message": "Age is within ideal range",
        "guideline": "ASRM 2022: Ideally younger than 35",
    }
    assert eligibility["category_summaries"]["Medical Evaluation"] == ["eligible"]

    metadata = data["processing_metadata"]
    assert metadata["engine_version"] == "1.0.0"
    assert metadata["ai_failure_reason"] == "disabled"
    assert "total_ms" in metadata["timings_ms"]


def test_assess_with_explicit_fields():
    response = client.post("/api/assess", json={
        "text": SCENARIO,
        "explicit_fields": {"age": 44},
        "use_ai": False,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["candidate_record"]["age"] == 44
    assert data["clinic_assessments"]["strict"]["score"] == 53
    assert data["clinic_assessments"]["strict"]["acceptance_level"] == "may_approve_with_records"
    assert "explicit" in data["source_layers"]


@pytest.mark.parametrize("payload", [
    {"text": "   "},
    {"text": "?!?!"},
    {"text": SCENARIO, "explicit_fields": {"age": 5}},
    {"text": SCENARIO, "explicit_fields": {"bmi": 120.0}},
])
def test_invalid_input_returns_400(payload):
    response = client.post("/api/assess", json=payload)

    assert response.status_code == 400
    data = response.json()
    assert data["error_type"] == "invalid_input"
    assert data["status_code"] == 400
    assert "timestamp" in data


def test_missing_text_fails_request_validation():
    response = client.post("/api/assess", json={"use_ai": False})

    assert response.status_code == 422


def test_vocabulary_violation_returns_500():
    broken_engine = Mock()
    broken_engine.assess = AsyncMock(side_effect=VocabularyViolationError("unknown tag 'x'"))
    app.dependency_overrides[get_engine] = lambda: broken_engine

    response = client.post("/api/assess", json={"text": SCENARIO})

    assert response.status_code == 500
    data = response.json()
    assert data["error_type"] == "vocabulary_violation"
    assert data["error"] == "Internal data error"


def test_unexpected_error_returns_500():
    broken_engine = Mock()
    broken_engine.assess = AsyncMock(side_effect=RuntimeError("boom"))
    app.dependency_overrides[get_engine] = lambda: broken_engine

    response = client.post("/api/assess", json={"text": SCENARIO})

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"


# ============================================================================
# SYSTEM ENDPOINTS
# ============================================================================

def test_health_check():
    response = client.get("/api/system/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["ai_available"] is False


def test_engine_not_initialized_returns_503():
    app.dependency_overrides.clear()

    response = client.get("/api/system/health")

    assert response.status_code == 503
    assert response.json()["error"] == "Screening engine not initialized"


def test_root():
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Carrier Screening Hybrid API"
    assert data["status"] == "operational"
