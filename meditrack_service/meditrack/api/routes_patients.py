from fastapi import APIRouter, Depends, HTTPException

from meditrack.api.errors import http_errors
from meditrack.schemas.models import Identity, PatientProfile
from meditrack.services.security import current_identity, require_role
from meditrack.services.store import MemoryStore, get_store

router = APIRouter(prefix="/patients", tags=["patients"])

@router.put("/{patient_id}/profile", response_model=PatientProfile)
def put_profile(
    patient_id: str,
    profile: PatientProfile,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    if profile.patient_id != patient_id:
        raise HTTPException(status_code=400, detail="patient_id in path and body differ.")
    with http_errors():
        return store.save_profile(who, profile)

@router.get("/{patient_id}/profile", response_model=PatientProfile)
def get_profile(
    patient_id: str,
    who: Identity = Depends(current_identity),
    store: MemoryStore = Depends(get_store),
):
    with http_errors():
        return store.get_profile(who, patient_id)

@router.post("/{patient_id}/doctors/{doctor_id}")
def link_doctor(
    patient_id: str,
    doctor_id: str,
    who: Identity = Depends(require_role("doctor", "system")),
    store: MemoryStore = Depends(get_store),
):
    if who.role == "doctor" and who.user_id != doctor_id:
        raise HTTPException(status_code=403, detail="Doctors can only link patients to themselves.")
    store.link(doctor_id, patient_id)
    return {"ok": True, "doctor_id": doctor_id, "patient_id": patient_id}
