"""
FastAPI Application for the Carrier Screening Hybrid System

Provides the assessment surface:
- POST /api/assess: cascading extraction + clinic scoring + specialist review
  + guideline eligibility
- GET /api/system/health: engine status and AI availability
- GET /: service banner

Rejected input returns HTTP 400 with error_type "invalid_input". A record
carrying a tag outside the closed vocabulary is a server-side data error
and returns HTTP 500.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import logging

from carrier_screening.core.config import get_settings
from carrier_screening.core.data_models import ExplicitFields, assessment_to_dict
from carrier_screening.engine import ScreeningEngine
from carrier_screening.exceptions import InvalidInputError, ScreeningError, VocabularyViolationError


# ========================= CONFIGURATION =========================

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ========================= APPLICATION SETUP =========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the screening engine on startup"""
    app.state.engine = ScreeningEngine(settings=settings)
    logger.info("Carrier screening engine initialized and ready")
    yield
    app.state.engine = None
    logger.info("Engine shutdown complete")


app = FastAPI(
    title="Carrier Screening Hybrid API",
    description="Gestational carrier eligibility screening with cascading extraction",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engine(request: Request) -> ScreeningEngine:
    """Dependency returning the engine created in the lifespan"""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Screening engine not initialized")
    return engine


# ========================= PYDANTIC MODELS =========================

class ExplicitFieldsModel(BaseModel):
    age: Optional[int] = None
    bmi: Optional[float] = None
    notes: Optional[str] = None
    candidate_name: Optional[str] = None

    def to_explicit_fields(self) -> ExplicitFields:
        return ExplicitFields(
            age=self.age,
            bmi=self.bmi,
            notes=self.notes,
            candidate_name=self.candidate_name,
        )


class AssessmentRequest(BaseModel):
    text: str = Field(..., description="Free-text or semi-structured medical record")
    explicit_fields: Optional[ExplicitFieldsModel] = None
    use_ai: bool = True


# ========================= ASSESSMENT ENDPOINTS =========================

@app.post("/api/assess")
async def assess_candidate(
    request_data: AssessmentRequest,
    engine: ScreeningEngine = Depends(get_engine)
) -> Dict[str, Any]:
    """
    Main assessment endpoint

    Process:
    1. Validate input (typed rejection)
    2. Cascading extraction (pattern || narrative, merge, optional AI)
    3. Clinic scoring, specialist review and guideline eligibility
    4. Return combined assessment
    """
    explicit = request_data.explicit_fields.to_explicit_fields() if request_data.explicit_fields else None

    result = await engine.assess(
        request_data.text,
        explicit_fields=explicit,
        use_ai=request_data.use_ai
    )

    output = assessment_to_dict(result)
    output["processing_metadata"] = {
        "timestamp": datetime.utcnow().isoformat(),
        "engine_version": engine.get_version(),
        "ai_failure_reason": result.extraction.ai_failure_reason,
        "timings_ms": {name: round(value, 1) for name, value in result.timings_ms.items()},
    }
    return output


# ========================= SYSTEM ENDPOINTS =========================

@app.get("/api/system/health")
async def health_check(engine: ScreeningEngine = Depends(get_engine)):
    """
    Health check endpoint

    Returns engine status and AI availability.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": engine.get_version(),
        "ai_available": engine.is_ai_available()
    }


@app.get("/")
async def root():
    """API root - returns welcome message"""
    return {
        "message": "Carrier Screening Hybrid API",
        "version": "1.0.0",
        "status": "operational",
        "documentation": "/api/docs",
        "features": [
            "Cascading extraction (pattern + narrative + optional AI)",
            "Multi-profile clinic scoring (strict / moderate / lenient)",
            "Specialist review prediction",
            "ASRM guideline eligibility assessment",
            "Graceful degradation without AI"
        ]
    }


# ========================= ERROR HANDLERS =========================

def _error_body(status_code: int, error: str, **extra) -> Dict[str, Any]:
    body = {
        "error": error,
        "status_code": status_code,
        "timestamp": datetime.utcnow().isoformat()
    }
    body.update(extra)
    return body


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request, exc):
    """Rejected request: never enters the pipeline"""
    return JSONResponse(
        status_code=400,
        content=_error_body(400, str(exc), error_type="invalid_input")
    )


@app.exception_handler(VocabularyViolationError)
async def vocabulary_violation_handler(request, exc):
    logger.error(f"Vocabulary violation: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body(500, "Internal data error", error_type="vocabulary_violation")
    )


@app.exception_handler(ScreeningError)
async def screening_error_handler(request, exc):
    logger.error(f"Screening error: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body(500, "Screening failed", error_type="screening_error")
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom HTTP exception handler"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """General exception handler"""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body(500, "Internal server error")
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower()
    )
