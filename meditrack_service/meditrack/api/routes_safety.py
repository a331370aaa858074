from fastapi import APIRouter, Depends, HTTPException

from meditrack.schemas.models import RiskAssessment, SafetyCheckRequest, SafetyCheckResponse
from meditrack.services.safety_check import run_safety_check
from meditrack.services.safety_interpreter import to_wire
from meditrack.services.security import verify_internal_service

router = APIRouter(tags=["safety"])

@router.post("/run-safety-check", response_model=SafetyCheckResponse)
def run_check(req: SafetyCheckRequest, _=Depends(verify_internal_service)):
    assessment = run_safety_check(req)
    if assessment.verdict == "ERROR":
        raise HTTPException(status_code=502, detail=assessment.diagnostic or "AI analysis failed")
    return to_wire(assessment)

@router.post("/safety-check/assess", response_model=RiskAssessment)
def assess(req: SafetyCheckRequest, _=Depends(verify_internal_service)):
    # always 200: the doctor UI renders ERROR like any other verdict
    return run_safety_check(req)
