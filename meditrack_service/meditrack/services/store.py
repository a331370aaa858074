"""
In-process stand-in for the relational store (profiles, doctor-patient links,
prescriptions, medication logs). Row ownership is checked here the way the
managed store's row-level policies check it; callers never filter by hand.
"""
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from meditrack.schemas.models import DoseEvent, Identity, PatientProfile, Prescription

logger = logging.getLogger(__name__)

class NotFoundError(LookupError):
    pass

class PermissionDeniedError(PermissionError):
    pass

class MemoryStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._profiles: Dict[str, PatientProfile] = {}
        self._links: Set[Tuple[str, str]] = set()  # (doctor_id, patient_id)
        self._prescriptions: Dict[str, Prescription] = {}
        self._doses: Dict[str, DoseEvent] = {}

    def reset(self) -> None:
        with self._lock:
            self._profiles.clear()
            self._links.clear()
            self._prescriptions.clear()
            self._doses.clear()

    # ---------------------------
    # ownership rules
    # ---------------------------
    def is_linked(self, doctor_id: str, patient_id: str) -> bool:
        return (doctor_id, patient_id) in self._links

    def _can_see_patient(self, who: Identity, patient_id: str) -> bool:
        if who.role == "system":
            return True
        if who.role == "patient":
            return who.user_id == patient_id
        return self.is_linked(who.user_id, patient_id)

    def _can_see_prescription(self, who: Identity, p: Prescription) -> bool:
        if who.role == "system":
            return True
        if who.role == "patient":
            return p.patient_id == who.user_id
        return p.doctor_id == who.user_id

    # ---------------------------
    # profiles + links
    # ---------------------------
    def link(self, doctor_id: str, patient_id: str) -> None:
        with self._lock:
            self._links.add((doctor_id, patient_id))

    def save_profile(self, who: Identity, profile: PatientProfile) -> PatientProfile:
        with self._lock:
            if who.role == "patient" and who.user_id != profile.patient_id:
                raise PermissionDeniedError("Patients can only update their own profile.")
            if who.role == "doctor" and not self.is_linked(who.user_id, profile.patient_id):
                raise PermissionDeniedError("Doctor is not linked to this patient.")
            self._profiles[profile.patient_id] = profile
            return profile

    def get_profile(self, who: Identity, patient_id: str) -> PatientProfile:
        with self._lock:
            if not self._can_see_patient(who, patient_id):
                raise PermissionDeniedError("Not allowed to view this patient.")
            profile = self._profiles.get(patient_id)
            if profile is None:
                raise NotFoundError(f"No profile for patient {patient_id}.")
            return profile

    # ---------------------------
    # prescriptions
    # ---------------------------
    def check_can_prescribe(self, who: Identity, patient_id: str) -> None:
        if who.role != "doctor":
            raise PermissionDeniedError("Only doctors can create prescriptions.")
        if not self.is_linked(who.user_id, patient_id):
            raise PermissionDeniedError("Doctor is not linked to this patient.")

    def save_prescription(self, p: Prescription) -> Prescription:
        with self._lock:
            self._prescriptions[p.id] = p
            return p

    def get_prescription(self, who: Identity, prescription_id: str) -> Prescription:
        with self._lock:
            p = self._prescriptions.get(prescription_id)
            if p is None or not self._can_see_prescription(who, p):
                raise NotFoundError(f"Prescription {prescription_id} not found.")
            return p

    def list_prescriptions(self, who: Identity, patient_id: Optional[str] = None) -> List[Prescription]:
        with self._lock:
            return [
                p for p in self._prescriptions.values()
                if self._can_see_prescription(who, p) and (patient_id is None or p.patient_id == patient_id)
            ]

    def set_prescription_status(self, who: Identity, prescription_id: str, status: str) -> Prescription:
        with self._lock:
            p = self.get_prescription(who, prescription_id)
            if who.role != "doctor":
                raise PermissionDeniedError("Only the prescribing doctor can change status.")
            updated = p.model_copy(update={"status": status})
            self._prescriptions[p.id] = updated
            return updated

    def delete_prescription(self, who: Identity, prescription_id: str) -> int:
        """Deletes the prescription and all of its dose events. Returns the dose count removed."""
        with self._lock:
            p = self.get_prescription(who, prescription_id)
            if who.role != "doctor":
                raise PermissionDeniedError("Only the prescribing doctor can delete a prescription.")
            del self._prescriptions[p.id]
            dose_ids = [d.id for d in self._doses.values() if d.prescription_id == p.id]
            for did in dose_ids:
                del self._doses[did]
            logger.info("Deleted prescription %s with %d dose events", p.id, len(dose_ids))
            return len(dose_ids)

    # ---------------------------
    # dose events
    # ---------------------------
    def add_dose_events(self, events: Iterable[DoseEvent]) -> int:
        with self._lock:
            n = 0
            for ev in events:
                self._doses[ev.id] = ev
                n += 1
            return n

    def list_dose_events(
        self,
        who: Identity,
        patient_id: Optional[str] = None,
        prescription_id: Optional[str] = None,
    ) -> List[DoseEvent]:
        with self._lock:
            if patient_id is not None and not self._can_see_patient(who, patient_id):
                raise PermissionDeniedError("Not allowed to view this patient.")
            return [
                d for d in self._doses.values()
                if self._can_see_patient(who, d.patient_id)
                and (patient_id is None or d.patient_id == patient_id)
                and (prescription_id is None or d.prescription_id == prescription_id)
            ]

    def get_dose_event(self, who: Identity, dose_id: str) -> DoseEvent:
        with self._lock:
            d = self._doses.get(dose_id)
            if d is None or not self._can_see_patient(who, d.patient_id):
                raise NotFoundError(f"Dose {dose_id} not found.")
            return d

    def update_dose_event(self, who: Identity, ev: DoseEvent) -> DoseEvent:
        with self._lock:
            current = self.get_dose_event(who, ev.id)
            if who.role == "doctor":
                raise PermissionDeniedError("Doctors cannot update medication logs.")
            if current.patient_id != ev.patient_id:
                raise PermissionDeniedError("Dose ownership cannot change.")
            self._doses[ev.id] = ev
            return ev

    def modify_dose_event(self, who: Identity, dose_id: str, change: Callable[[DoseEvent], DoseEvent]) -> DoseEvent:
        """Read, change and write one dose under the store lock (same-row updates serialize)."""
        with self._lock:
            return self.update_dose_event(who, change(self.get_dose_event(who, dose_id)))

STORE = MemoryStore()

def get_store() -> MemoryStore:
    return STORE
