# meditrack/api/routes_prescriptions.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from langgraph.types import Command

from meditrack.agent.graph import get_prescription_graph
from meditrack.api.errors import http_errors
from meditrack.schemas.models import (
    ConfirmRequest,
    ConfirmResponse,
    DoseEvent,
    DraftRequest,
    DraftResponse,
    Identity,
    PatientProfile,
    Prescription,
    RiskAssessment,
    SafetyCheckRequest,
    StatusUpdateRequest,
)
from meditrack.services.schedule import ensure_schedulable, sort_by_schedule
from meditrack.services.security import current_identity, require_role
from meditrack.services.store import MemoryStore, NotFoundError, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])

def _config(prescription_id: str):
    return {"configurable": {"thread_id": prescription_id}}

def _pending_interrupt_type(snap):
    interrupts = list(getattr(snap, "interrupts", None) or ())
    if not interrupts:
        for task in getattr(snap, "tasks", None) or ():
            interrupts.extend(getattr(task, "interrupts", None) or ())
    if not interrupts:
        return None
    payload = interrupts[-1].value
    return payload.get("type") if isinstance(payload, dict) else None

def _profile_snapshot(req: DraftRequest, who: Identity, store: MemoryStore) -> PatientProfile:
    if req.profile is not None:
        if req.profile.patient_id != req.draft.patient_id:
            raise HTTPException(status_code=400, detail="profile.patient_id does not match draft.patient_id")
        return req.profile
    try:
        return store.get_profile(who, req.draft.patient_id)
    except NotFoundError:
        # safety check still runs; history fields fall back to "None provided"
        return PatientProfile(patient_id=req.draft.patient_id)

@router.post("/draft", response_model=DraftResponse)
def draft_prescription(
    req: DraftRequest,
    who: Identity = Depends(require_role("doctor")),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        store.check_can_prescribe(who, req.draft.patient_id)
        prescription = req.draft.to_prescription(doctor_id=who.user_id)
        ensure_schedulable(prescription)
        profile = _profile_snapshot(req, who, store)
        store.save_prescription(prescription)

    initial_state = {
        "prescription_id": prescription.id,
        "doctor_id": who.user_id,
        "prescription": prescription.model_dump(mode="json"),
        "profile": profile.model_dump(mode="json"),
        "audit": [],
    }
    get_prescription_graph().invoke(initial_state, config=_config(prescription.id))

    snap = get_prescription_graph().get_state(_config(prescription.id))
    state = snap.values or {}
    if "assessment" not in state:
        raise HTTPException(status_code=500, detail="Safety check missing from workflow state.")

    next_step = "NEED_APPROVAL" if _pending_interrupt_type(snap) == "APPROVAL_REQUIRED" else None
    logger.info(
        "Draft %s for patient %s: verdict=%s next_step=%s",
        prescription.id, prescription.patient_id, state["assessment"].get("verdict"), next_step,
    )
    return DraftResponse(
        prescription=prescription,
        safety_request=SafetyCheckRequest.model_validate(state["safety_request"]),
        assessment=RiskAssessment.model_validate(state["assessment"]),
        next_step=next_step,
    )

@router.post("/confirm", response_model=ConfirmResponse)
def confirm_prescription(
    req: ConfirmRequest,
    who: Identity = Depends(require_role("doctor")),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        prescription = store.get_prescription(who, req.prescription_id)

    graph = get_prescription_graph()
    itype = _pending_interrupt_type(graph.get_state(_config(prescription.id)))
    if itype != "APPROVAL_REQUIRED":
        raise HTTPException(
            status_code=409,
            detail=f"Prescription not waiting for approval. interrupt_type={itype}"
        )

    final_state = graph.invoke(
        Command(resume={"approve": req.approve, "actor_id": who.user_id}),
        config=_config(prescription.id),
    )

    final = final_state.get("prescription")
    if not final:
        raise HTTPException(status_code=500, detail="Prescription missing after confirm.")

    return ConfirmResponse(
        prescription=Prescription.model_validate(final),
        dose_count=int(final_state.get("dose_count") or 0),
    )

@router.get("", response_model=List[Prescription])
def list_prescriptions(
    patient_id: Optional[str] = None,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    return store.list_prescriptions(who, patient_id=patient_id)

@router.get("/{prescription_id}", response_model=Prescription)
def get_prescription(
    prescription_id: str,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        return store.get_prescription(who, prescription_id)

@router.get("/{prescription_id}/doses", response_model=List[DoseEvent])
def prescription_doses(
    prescription_id: str,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        p = store.get_prescription(who, prescription_id)
        return sort_by_schedule(store.list_dose_events(who, prescription_id=p.id))

@router.get("/{prescription_id}/audit")
def prescription_audit(
    prescription_id: str,
    who: Identity = Depends(require_role("doctor", "system")),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        store.get_prescription(who, prescription_id)
    snap = get_prescription_graph().get_state(_config(prescription_id))
    return {"prescription_id": prescription_id, "audit": (snap.values or {}).get("audit", [])}

@router.patch("/{prescription_id}/status", response_model=Prescription)
def update_status(
    prescription_id: str,
    req: StatusUpdateRequest,
    who: Identity = Depends(require_role("doctor")),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        current = store.get_prescription(who, prescription_id)
        if current.status != "active":
            raise HTTPException(
                status_code=409,
                detail=f"Only active prescriptions can be {req.status}; this one is {current.status}."
            )
        return store.set_prescription_status(who, prescription_id, req.status)

@router.delete("/{prescription_id}")
def delete_prescription(
    prescription_id: str,
    who: Identity = Depends(require_role("doctor")),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        removed = store.delete_prescription(who, prescription_id)
    return {"ok": True, "prescription_id": prescription_id, "doses_deleted": removed}
