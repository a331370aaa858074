# meditrack/agent/nodes.py
import logging
from typing import Any, Dict

from langgraph.types import interrupt

from meditrack.agent.state import WorkflowState
from meditrack.schemas.models import PatientProfile, Prescription, SafetyCheckRequest
from meditrack.services.safety_check import run_safety_check
from meditrack.services.safety_request import build_safety_request
from meditrack.services.schedule import expand_schedule
from meditrack.services.store import get_store

logger = logging.getLogger(__name__)

def _audit(state: WorkflowState, event: str, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    audit = list(state.get("audit") or [])
    audit.append({"event": event, **(extra or {})})
    return {"audit": audit}

def build_request_node(state: WorkflowState) -> Dict[str, Any]:
    prescription = Prescription.model_validate(state["prescription"])
    profile = PatientProfile.model_validate(state["profile"])

    req = build_safety_request(profile, prescription)
    return {
        "safety_request": req.model_dump(mode="json"),
        **_audit(state, "safety_request.built", {"drugs": len(req.new_prescriptions)}),
    }

def safety_check_node(state: WorkflowState) -> Dict[str, Any]:
    req = SafetyCheckRequest.model_validate(state["safety_request"])
    assessment = run_safety_check(req)

    extra: Dict[str, Any] = {"verdict": assessment.verdict, "flags": len(assessment.flags)}
    if assessment.diagnostic:
        extra["diagnostic"] = assessment.diagnostic
    return {"assessment": assessment.model_dump(mode="json"), **_audit(state, "safety_check.done", extra)}

def approval_node(state: WorkflowState) -> Dict[str, Any]:
    """
    Pause until the doctor confirms or rejects.
    Resume payload expected: {"approve": bool, "actor_id": str}.
    """
    payload = {
        "type": "APPROVAL_REQUIRED",
        "prescription_id": state["prescription_id"],
        "assessment": state.get("assessment"),
        "instructions": "Review the safety check, then confirm or reject the prescription.",
    }

    resume_value = interrupt(payload)
    approval = resume_value if isinstance(resume_value, dict) else {"approve": bool(resume_value)}
    return {"approval": approval, **_audit(state, "approval.resumed", {"approve": bool(approval.get("approve"))})}

def finalize_node(state: WorkflowState) -> Dict[str, Any]:
    store = get_store()
    prescription = Prescription.model_validate(state["prescription"])
    approve = bool((state.get("approval") or {}).get("approve"))

    if not approve:
        cancelled = prescription.model_copy(update={"status": "cancelled"})
        store.save_prescription(cancelled)
        logger.info("Prescription %s rejected at review", prescription.id)
        return {
            "prescription": cancelled.model_dump(mode="json"),
            "dose_count": 0,
            **_audit(state, "finalize.cancelled"),
        }

    active = prescription.model_copy(update={"status": "active"})
    events = expand_schedule(active)
    store.save_prescription(active)
    store.add_dose_events(events)
    logger.info("Prescription %s activated with %d dose events", active.id, len(events))

    return {
        "prescription": active.model_dump(mode="json"),
        "dose_count": len(events),
        **_audit(state, "finalize.activated", {"dose_count": len(events)}),
    }
